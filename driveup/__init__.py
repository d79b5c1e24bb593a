"""
driveup - serialized upload queue for a remote drive.

Files selected by the user are uploaded one at a time into the current
directory, with per-file progress, cancellation and a single listing
refresh once the queue drains.

Usage:
    from driveup import UploadOrchestrator, UploadConfig

    config = UploadConfig("https://drive.example.com/api", directory_id="42")
    async with UploadOrchestrator(config, cookies={"sid": "..."}) as drive:
        await drive.load()
        tasks = drive.upload([Path("a.txt"), Path("b.txt")])
        drive.cancel(tasks[1].id)
        summary = await drive.wait()
"""
from .errors import (
    APIError,
    DriveUpError,
    InvalidTransition,
    ProtocolError,
    TransportFailure,
    UploadNotAllowed,
    UserCancellation,
)
from .listing import DirectoryListing, FileEntry, file_kind
from .models import (
    DrainSummary,
    FileRef,
    ListingView,
    TaskStatus,
    UploadConfig,
    UploadOutcome,
    UploadResult,
    UploadTask,
)
from .orchestrator import (
    ProgressEntry,
    ProgressRegistry,
    QueueState,
    ReconciliationTrigger,
    UploadOrchestrator,
    UploadQueue,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadQueue",
    "QueueState",
    "ProgressRegistry",
    "ProgressEntry",
    "ReconciliationTrigger",
    # Models
    "UploadTask",
    "UploadOutcome",
    "UploadResult",
    "DrainSummary",
    "TaskStatus",
    "FileRef",
    "UploadConfig",
    "ListingView",
    # Listing
    "DirectoryListing",
    "FileEntry",
    "file_kind",
    # Errors
    "DriveUpError",
    "TransportFailure",
    "ProtocolError",
    "UserCancellation",
    "APIError",
    "UploadNotAllowed",
    "InvalidTransition",
]
