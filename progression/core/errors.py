"""
Error taxonomy for the progression subsystem.

Only NotFound-class errors leave the controller. Storage and remote sync
errors are raised by the lower layers and absorbed at the controller or
store boundary, where they are logged.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for all progression errors."""
    pass


# =============================================================================
# Not found (propagated to callers)
# =============================================================================


class NotFoundError(ProgressionError):
    """Raised when an attempt, test, or question set cannot be located."""
    pass


class AttemptNotFoundError(NotFoundError):
    """Raised when an attempt id does not resolve to a stored attempt."""

    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__(f"Test attempt not found: {attempt_id}")


class TestNotFoundError(NotFoundError):
    """Raised when the catalog has no test definition for a test id."""

    __test__ = False  # not a pytest test class

    def __init__(self, test_id: int):
        self.test_id = test_id
        super().__init__(f"Test not found: {test_id}")


# =============================================================================
# Storage (absorbed by the local store)
# =============================================================================


class StorageError(ProgressionError):
    """Raised by a storage backend when it cannot complete an operation."""
    pass


class StorageReadError(StorageError):
    """Persisted data could not be read or decoded."""
    pass


class StorageWriteError(StorageError):
    """Data could not be persisted."""
    pass


# =============================================================================
# Remote sync (absorbed by the controller)
# =============================================================================


class RemoteSyncError(ProgressionError):
    """Raised when the hosted table API rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
