# Multi-tenant web log persistence: one contract, three storage adapters
from weblog_data.core.errors import (
    ConstraintViolationError, MigrationError, OpResult, TransientStoreError, WebLogDataError
)
from weblog_data.data.interfaces import IData

__all__ = [
    "ConstraintViolationError",
    "IData",
    "MigrationError",
    "OpResult",
    "TransientStoreError",
    "WebLogDataError",
]
