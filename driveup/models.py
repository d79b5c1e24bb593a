"""
Models for driveup module.

Value objects for files, upload tasks and their outcomes. Only
``UploadTask`` is mutable, and only through its validated transitions.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

from .errors import InvalidTransition, TransportFailure, UploadNotAllowed, UserCancellation


DEFAULT_CHUNK_SIZE = 64 * 1024


class TaskStatus(Enum):
    """Lifecycle status of one upload task."""
    QUEUED = "queued"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class ListingView(Enum):
    """Which flavour of the drive the listing is showing."""
    USER = "user"
    ADMIN = "admin"
    PUBLIC = "public"


def generate_task_id() -> str:
    return f"temp-{uuid.uuid4().hex}"


def _read_at(path: Path, offset: int, size: int) -> bytes:
    # the file is closed inside the worker, even when the awaiting task is cancelled
    with open(path, "rb") as f:
        f.seek(offset)
        return f.read(size)


@dataclass(frozen=True)
class FileRef:
    """Local file payload: a path on disk or bytes already in memory."""
    name: str
    size: int
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self):
        if (self.path is None) == (self.data is None):
            raise ValueError("FileRef needs exactly one of path or data")
        if self.size < 0:
            raise ValueError(f"negative size for {self.name}: {self.size}")

    @classmethod
    def from_path(cls, path) -> "FileRef":
        path = Path(path)
        return cls(name=path.name, size=path.stat().st_size, path=path)

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "FileRef":
        return cls(name=name, size=len(data), data=data)

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the payload in chunks. Disk reads run in a worker thread."""
        if self.data is not None:
            for offset in range(0, len(self.data), chunk_size):
                yield self.data[offset:offset + chunk_size]
            return

        offset = 0
        while True:
            chunk = await asyncio.to_thread(_read_at, self.path, offset, chunk_size)
            if not chunk:
                break
            offset += len(chunk)
            yield chunk


@dataclass(frozen=True)
class UploadOutcome:
    """Terminal outcome reported for one task."""
    status: TaskStatus
    error: Optional[str] = None
    payload: Optional[Any] = None

    def __post_init__(self):
        if not self.status.is_terminal:
            raise ValueError(f"outcome status must be terminal, got {self.status.value}")

    @classmethod
    def ok(cls, payload: Any = None) -> "UploadOutcome":
        return cls(status=TaskStatus.COMPLETED, payload=payload)

    @classmethod
    def fail(cls, error: str) -> "UploadOutcome":
        return cls(status=TaskStatus.FAILED, error=error)

    @classmethod
    def cancelled(cls) -> "UploadOutcome":
        return cls(status=TaskStatus.CANCELLED)


@dataclass(eq=False)
class UploadTask:
    """
    One file's upload attempt.

    Allowed transitions:
        QUEUED -> UPLOADING                       start()
        UPLOADING -> COMPLETED|FAILED|CANCELLED   finish(outcome)
        QUEUED -> CANCELLED                       cancel_queued()

    Anything else raises InvalidTransition.
    """
    file: FileRef
    id: str = field(default_factory=generate_task_id)
    status: TaskStatus = TaskStatus.QUEUED
    error: Optional[str] = None

    @classmethod
    def from_path(cls, path) -> "UploadTask":
        return cls(file=FileRef.from_path(path))

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "UploadTask":
        return cls(file=FileRef.from_bytes(name, data))

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def size(self) -> int:
        return self.file.size

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def start(self) -> None:
        self._require(TaskStatus.QUEUED, "start")
        self.status = TaskStatus.UPLOADING

    def finish(self, outcome: UploadOutcome) -> None:
        self._require(TaskStatus.UPLOADING, f"finish as {outcome.status.value}")
        self.status = outcome.status
        self.error = outcome.error

    def cancel_queued(self) -> None:
        self._require(TaskStatus.QUEUED, "cancel before start")
        self.status = TaskStatus.CANCELLED

    def _require(self, expected: TaskStatus, action: str) -> None:
        if self.status != expected:
            raise InvalidTransition(
                f"cannot {action} task {self.id} ({self.name}): "
                f"status is {self.status.value}, expected {expected.value}"
            )


@dataclass(frozen=True)
class UploadResult:
    """Immutable record of a finished task."""
    task_id: str
    filename: str
    size: int
    status: TaskStatus
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def raise_for_error(self) -> None:
        """Raise TransportFailure or UserCancellation unless the upload completed."""
        if self.status == TaskStatus.FAILED:
            raise TransportFailure(f"{self.filename}: {self.error}")
        if self.status == TaskStatus.CANCELLED:
            raise UserCancellation(f"{self.filename}: cancelled")

    @classmethod
    def from_task(cls, task: UploadTask) -> "UploadResult":
        if not task.is_terminal:
            raise ValueError(f"task {task.id} has not finished")
        return cls(
            task_id=task.id,
            filename=task.name,
            size=task.size,
            status=task.status,
            error=task.error,
        )


@dataclass
class DrainSummary:
    """Outcome of one complete drain of the queue."""
    results: List[UploadResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def completed(self) -> int:
        return sum(1 for r in self.results if r.status == TaskStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == TaskStatus.FAILED)

    @property
    def cancelled(self) -> int:
        return sum(1 for r in self.results if r.status == TaskStatus.CANCELLED)

    @property
    def all_success(self) -> bool:
        return self.total > 0 and self.completed == self.total

    @property
    def task_ids(self) -> List[str]:
        return [r.task_id for r in self.results]


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    api_url: str
    directory_id: Optional[str] = None
    view: ListingView = ListingView.USER
    refresh_delay: float = 1.0  # lets the backend finish post-processing
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout: float = 60.0

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")

    def upload_url(self) -> str:
        """Endpoint a file in the current directory is POSTed to."""
        if self.view == ListingView.PUBLIC:
            raise UploadNotAllowed("public listings are read-only")
        prefix = "admin/upload/user/file" if self.view == ListingView.ADMIN else "file"
        return f"{self.base_url}/{prefix}/{self.directory_id or ''}"

    def listing_url(self) -> str:
        prefix = {
            ListingView.USER: "directory",
            ListingView.ADMIN: "admin/read/user/directory",
            ListingView.PUBLIC: "public/directory",
        }[self.view]
        return f"{self.base_url}/{prefix}/{self.directory_id or ''}"


class TransportEventKind(Enum):
    PROGRESS = "progress"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class TransportEvent:
    """One event reported by a transport handle."""
    task_id: str
    kind: TransportEventKind
    bytes_sent: int = 0
    bytes_total: int = 0
    error: Optional[str] = None
    payload: Optional[Any] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind != TransportEventKind.PROGRESS

    @classmethod
    def progress(cls, task_id: str, bytes_sent: int, bytes_total: int) -> "TransportEvent":
        return cls(task_id, TransportEventKind.PROGRESS, bytes_sent, bytes_total)

    @classmethod
    def success(cls, task_id: str, payload: Any = None) -> "TransportEvent":
        return cls(task_id, TransportEventKind.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, task_id: str, error: str) -> "TransportEvent":
        return cls(task_id, TransportEventKind.FAILURE, error=error)

    def to_outcome(self) -> UploadOutcome:
        if self.kind == TransportEventKind.SUCCESS:
            return UploadOutcome.ok(self.payload)
        if self.kind == TransportEventKind.FAILURE:
            return UploadOutcome.fail(self.error or "upload failed")
        raise ValueError("progress events carry no outcome")
