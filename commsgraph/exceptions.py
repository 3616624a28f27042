"""
Exception types for commsgraph.

Absence of a row is never an error: lookups return None. Anything that goes
wrong inside the store is surfaced as a CommunicationsStoreError carrying the
operation that was running, with the underlying sqlite3 error chained.
"""

from typing import Optional


class CommunicationsStoreError(Exception):
    """A read or write against the case database failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Error {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DuplicateRowError(CommunicationsStoreError):
    """A write violated a uniqueness constraint (usually a concurrent creator)."""


class UnknownAccountTypeError(LookupError):
    """An account type was used for a write before being registered."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Account type not registered: {type_name!r}")
