"""HTTP adapters for the drive API."""
from .api_client import DirectoryClient, error_message
from .transport import HTTPTransport, UploadHandle

__all__ = [
    "DirectoryClient",
    "HTTPTransport",
    "UploadHandle",
    "error_message",
]
