import pytest
from pymongo.errors import AutoReconnect, NetworkTimeout

from weblog_data.core.config import Settings
from weblog_data.core.errors import TransientStoreError
from weblog_data.core.retry import RetryPolicy


@pytest.fixture(name="policy")
def policy_fixture():
    return RetryPolicy(max_attempts=3, min_wait=0, max_wait=0)


class Flaky:
    def __init__(self, failures, error=AutoReconnect):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("primary stepped down")
        return "done"


class TestRetryPolicy:
    async def test_succeeds_first_time(self, policy):
        operation = Flaky(0)
        assert await policy.run(operation) == "done"
        assert operation.calls == 1

    async def test_retries_transient_failures(self, policy):
        operation = Flaky(2, NetworkTimeout)
        assert await policy.run(operation) == "done"
        assert operation.calls == 3

    async def test_gives_up_after_max_attempts(self, policy):
        operation = Flaky(5)
        with pytest.raises(TransientStoreError) as exc_info:
            await policy.run(operation, "save post")
        assert operation.calls == 3
        assert "save post failed after 3 attempts" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, AutoReconnect)

    async def test_other_errors_are_not_retried(self, policy):
        operation = Flaky(1, ValueError)
        with pytest.raises(ValueError):
            await policy.run(operation)
        assert operation.calls == 1

    def test_from_settings(self):
        policy = RetryPolicy.from_settings(Settings(_env_file=None, RETRY_MAX_ATTEMPTS=7, RETRY_MIN_WAIT_SECONDS=1))
        assert policy.max_attempts == 7
        assert policy.min_wait == 1
