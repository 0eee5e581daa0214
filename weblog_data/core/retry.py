# weblog_data/core/retry.py
"""Bounded retry with backoff for transient store failures."""
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pymongo.errors import (
    AutoReconnect, NetworkTimeout, ServerSelectionTimeoutError, WriteConcernError
)
from tenacity import (
    AsyncRetrying, RetryError, before_sleep_log, retry_if_exception_type,
    stop_after_attempt, wait_random_exponential
)

from weblog_data.core.config import Settings
from weblog_data.core.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# AutoReconnect covers NotPrimaryError and connection resets
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    AutoReconnect, NetworkTimeout, ServerSelectionTimeoutError, WriteConcernError
)


class RetryPolicy:
    """
    Retry an async store operation on transient errors.

    Any other exception propagates on its first occurrence. When the attempt
    budget runs out, TransientStoreError is raised from the last failure.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        min_wait: float = 0.5,
        max_wait: float = 10.0,
        retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    ):
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.retry_on = retry_on

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            min_wait=settings.RETRY_MIN_WAIT_SECONDS,
            max_wait=settings.RETRY_MAX_WAIT_SECONDS,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], description: Optional[str] = None) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await operation()
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise TransientStoreError(
                f"{description or 'Store operation'} failed after {self.max_attempts} attempts: {cause}"
            ) from cause
        raise TransientStoreError(f"{description or 'Store operation'} was never attempted")
