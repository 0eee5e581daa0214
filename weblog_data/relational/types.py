# weblog_data/relational/types.py
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from weblog_data.schemas.common import format_instant, parse_instant


class Instant(TypeDecorator):
    """
    A UTC timestamp stored as fixed-width ISO-8601 text ("2024-01-02T03:04:05Z").

    Text sorts chronologically on every backend, and the fixed format pins
    stored values to whole seconds.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Optional[Union[datetime, str]], dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            value = parse_instant(value)
        return format_instant(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return parse_instant(value)
