"""
Protocols (Interfaces) for Dependency Inversion.

The queue only knows these small interfaces; HTTP details live in services.
"""
from typing import Any, Callable, Dict, Protocol, runtime_checkable

from .models import TransportEvent, UploadTask


EventSink = Callable[[TransportEvent], None]


@runtime_checkable
class IUploadHandle(Protocol):
    """One in-flight upload."""

    task_id: str

    def abort(self) -> None:
        """Stop the upload. Idempotent; no event reaches the sink afterwards."""
        ...


@runtime_checkable
class ITransport(Protocol):
    """Starts exactly one outbound upload per call."""

    def start(self, task: UploadTask, sink: EventSink) -> IUploadHandle:
        """Begin uploading task; progress and the terminal event go to sink."""
        ...


@runtime_checkable
class IDirectoryClient(Protocol):
    """Read side of the drive API."""

    async def get_directory(self) -> Dict[str, Any]:
        """Fetch the listing of the configured directory."""
        ...


@runtime_checkable
class IListingRefresher(Protocol):
    """Collaborator that replaces the displayed listing with server truth."""

    async def refresh(self) -> None:
        ...
