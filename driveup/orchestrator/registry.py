"""Progress/status registry read by renderers."""
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional
import logging

from ..models import TaskStatus, UploadTask

logger = logging.getLogger(__name__)


_LABELS = {
    TaskStatus.QUEUED: "queued",
    TaskStatus.COMPLETED: "done",
}


@dataclass(frozen=True)
class ProgressEntry:
    """What the rendering layer knows about one task."""
    task_id: str
    filename: str
    status: TaskStatus
    percent: float = 0.0

    @property
    def label(self) -> str:
        if self.status == TaskStatus.UPLOADING:
            return f"uploading ({self.percent:.0f}%)"
        return _LABELS[self.status]


class ProgressRegistry:
    """
    Task id -> ProgressEntry.

    Written only by the upload queue. Percentages never move backwards while
    a task is uploading; a regressive write is ignored.
    """

    def __init__(self):
        self._entries: Dict[str, ProgressEntry] = {}

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, task_id: str) -> Optional[ProgressEntry]:
        return self._entries.get(task_id)

    def snapshot(self) -> Mapping[str, ProgressEntry]:
        """Read-only copy for renderers."""
        return MappingProxyType(dict(self._entries))

    def add(self, task: UploadTask) -> ProgressEntry:
        entry = ProgressEntry(task.id, task.name, TaskStatus.QUEUED, 0.0)
        self._entries[task.id] = entry
        return entry

    def start(self, task_id: str) -> ProgressEntry:
        return self._put(task_id, status=TaskStatus.UPLOADING, percent=0.0)

    def update(self, task_id: str, bytes_sent: int, bytes_total: int) -> Optional[ProgressEntry]:
        """Record a progress tick; returns the entry only if it changed."""
        entry = self._entries.get(task_id)
        if entry is None or entry.status != TaskStatus.UPLOADING:
            logger.debug(f"Ignoring progress for {task_id}: not uploading")
            return None
        if bytes_total <= 0:
            return None

        percent = min(max(bytes_sent / bytes_total * 100.0, 0.0), 100.0)
        if percent < entry.percent:
            logger.debug(f"Ignoring regressive progress for {task_id}: {percent:.1f} < {entry.percent:.1f}")
            return None
        if percent == entry.percent:
            return None
        return self._put(task_id, percent=percent)

    def settle(self, task_id: str, status: TaskStatus) -> Optional[ProgressEntry]:
        """
        Terminal status.

        A completed task stays at 100% until its drain is reconciled. Failed
        and cancelled tasks are removed right away; returns None for them.
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        if status != TaskStatus.COMPLETED:
            self.remove(task_id)
            return None
        return self._put(task_id, status=status, percent=100.0)

    def remove(self, task_id: str) -> None:
        self._entries.pop(task_id, None)

    def prune(self, task_ids: Iterable[str]) -> None:
        """Drop completed entries once their drain has been reconciled."""
        for task_id in task_ids:
            entry = self._entries.get(task_id)
            if entry is not None and entry.status == TaskStatus.COMPLETED:
                del self._entries[task_id]

    def _put(self, task_id: str, **changes) -> ProgressEntry:
        entry = self._entries.get(task_id)
        if entry is None:
            raise KeyError(f"unknown task {task_id}")
        entry = replace(entry, **changes)
        self._entries[task_id] = entry
        return entry
