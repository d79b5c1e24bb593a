"""
Displayed directory listing.

Holds what the user currently sees: server entries plus optimistic
placeholders for files that are queued or uploading. A refresh replaces
everything with server truth.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .errors import APIError
from .models import ListingView, UploadTask
from .protocols import IDirectoryClient

log = logging.getLogger(__name__)

ROOT_NAME = "My Drive"

_KINDS = {
    "pdf": "pdf",
    "png": "image", "jpg": "image", "jpeg": "image", "gif": "image",
    "mp4": "video", "mov": "video", "avi": "video",
    "zip": "archive", "rar": "archive", "tar": "archive", "gz": "archive",
    "js": "code", "jsx": "code", "ts": "code", "tsx": "code", "html": "code",
    "css": "code", "py": "code", "java": "code",
}


def file_kind(filename: str) -> str:
    """Icon family for a file name, by extension."""
    ext = filename.rsplit(".", 1)[-1].lower()
    return _KINDS.get(ext, "alt")


@dataclass
class DirectoryEntry:
    id: str
    name: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DirectoryEntry":
        return cls(id=str(data.get("id", "")), name=str(data.get("name", "")), extra=dict(data))


@dataclass
class FileEntry:
    id: str
    name: str
    size: Optional[int] = None
    placeholder: bool = False
    is_uploading: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return file_kind(self.name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileEntry":
        size = data.get("size")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            size=int(size) if isinstance(size, (int, float)) else None,
            extra=dict(data),
        )

    @classmethod
    def placeholder_for(cls, task: UploadTask) -> "FileEntry":
        return cls(id=task.id, name=task.name, size=task.size, placeholder=True)


@dataclass
class DirectoryListing:
    name: str = ROOT_NAME
    directories: List[DirectoryEntry] = field(default_factory=list)
    files: List[FileEntry] = field(default_factory=list)
    path: List[Dict[str, Any]] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def placeholders(self) -> List[FileEntry]:
        return [f for f in self.files if f.placeholder]

    @property
    def is_empty(self) -> bool:
        return not self.directories and not self.files

    def insert_placeholders(self, tasks: Iterable[UploadTask]) -> None:
        """Show freshly selected files on top, in selection order."""
        self.files[:0] = [FileEntry.placeholder_for(t) for t in tasks]

    def mark_uploading(self, task_id: str) -> None:
        for entry in self.files:
            if entry.placeholder and entry.id == task_id:
                entry.is_uploading = True

    def remove_placeholder(self, task_id: str) -> bool:
        before = len(self.files)
        self.files = [f for f in self.files if not (f.placeholder and f.id == task_id)]
        return len(self.files) != before

    def replace(self, data: Dict[str, Any], at_root: bool) -> None:
        """Swap in the server's view of the directory."""
        self.name = ROOT_NAME if at_root else str(data.get("name") or ROOT_NAME)
        self.directories = [DirectoryEntry.from_dict(d) for d in data.get("directories") or []]
        self.files = [FileEntry.from_dict(f) for f in data.get("files") or []]
        if "path" in data:
            self.path = list(data.get("path") or [])

    def show_error(self, error: Exception) -> None:
        self.error_message = str(error)

    def clear_error(self) -> None:
        self.error_message = None


class ListingRefresher:
    """
    Reloads the listing from the drive API.

    Implements IListingRefresher protocol. Errors are raised to the caller
    after the listing's banner has been cleared; the caller decides how to
    surface them.
    """

    def __init__(self, client: IDirectoryClient, listing: DirectoryListing, directory_id: Optional[str] = None,
                 view: ListingView = ListingView.USER):
        self._client = client
        self.listing = listing
        self._directory_id = directory_id
        self._view = view

    async def refresh(self) -> None:
        self.listing.clear_error()
        try:
            data = await self._client.get_directory()
        except APIError as e:
            log.warning(f"Could not load {self._view.value} listing: {e}")
            raise
        self.listing.replace(data, at_root=not self._directory_id)
        log.debug(
            f"Listing refreshed: {len(self.listing.directories)} directories, "
            f"{len(self.listing.files)} files"
        )
