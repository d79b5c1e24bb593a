"""Error taxonomy for upload and listing operations."""
from typing import Optional


class DriveUpError(Exception):
    """Base class for driveup errors."""


class TransportFailure(DriveUpError):
    """Non-2xx response or network error while uploading a file."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(TransportFailure):
    """Malformed or unexpected response body."""


class UserCancellation(DriveUpError):
    """Upload aborted by the user. Never surfaced as an error message."""


class APIError(DriveUpError):
    """Request to the drive API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadNotAllowed(DriveUpError):
    """Uploading is not possible from the current listing view."""


class InvalidTransition(AssertionError):
    """Illegal task state change, e.g. starting the same file twice."""
