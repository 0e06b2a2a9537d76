"""Failures raised by the persistence layer."""
from typing import Dict, List, Optional

from core.models.view import ViewType


class SyncError(Exception):
    """Base class for anything that prevented a remote read or write."""


class NetworkError(SyncError):
    """The request never got an HTTP answer (offline, DNS, timeout)."""


class ServerError(SyncError):
    """The remote answered with an error status or rejected the payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class PartialSaveError(SyncError):
    """One of the two view records was written, the other was not."""

    def __init__(self, succeeded: List[ViewType], failures: Dict[ViewType, Exception]):
        failed = "; ".join(f"{view.value} failed: {error}" for view, error in failures.items())
        super().__init__(f"Partial save, {failed}")
        self.succeeded = succeeded
        self.failures = failures


def describe_error(error: BaseException) -> str:
    """Human readable message for a status banner."""
    if isinstance(error, ServerError) and error.status_code is not None:
        return f"Server error {error.status_code}: {error}"
    message = str(error)
    return message if message else "An unknown error occurred."
