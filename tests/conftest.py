"""Shared fakes for queue tests."""
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

from driveup.models import TransportEvent, UploadTask
from driveup.orchestrator.reconcile import ReconciliationTrigger
from driveup.orchestrator.registry import ProgressRegistry


class FakeHandle:
    """Transport handle driven by the test."""

    def __init__(self, task: UploadTask, sink):
        self.task_id = task.id
        self.task = task
        self.sink = sink
        self.aborted = 0
        self.closed = False

    def abort(self):
        self.aborted += 1
        self.closed = True

    def progress(self, sent: int, total: int):
        if not self.closed:
            self.sink(TransportEvent.progress(self.task_id, sent, total))

    def succeed(self, payload=None):
        if not self.closed:
            self.closed = True
            self.sink(TransportEvent.success(self.task_id, payload))

    def fail(self, error: str):
        if not self.closed:
            self.closed = True
            self.sink(TransportEvent.failure(self.task_id, error))


class FakeTransport:
    """Records every start; never touches the network."""

    def __init__(self, broken: Optional[str] = None):
        self.handles: List[FakeHandle] = []
        self._broken = broken

    def start(self, task: UploadTask, sink) -> FakeHandle:
        if self._broken and task.name == self._broken:
            raise RuntimeError(f"cannot open connection for {task.name}")
        handle = FakeHandle(task, sink)
        self.handles.append(handle)
        return handle

    @property
    def started(self) -> List[str]:
        return [h.task.name for h in self.handles]

    @property
    def current(self) -> FakeHandle:
        return self.handles[-1]


def make_task(name: str, size: int = 10) -> UploadTask:
    return UploadTask.from_bytes(name, b"x" * size)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return ProgressRegistry()


@pytest.fixture
def refresh():
    return AsyncMock()


@pytest.fixture
def trigger(refresh, registry):
    return ReconciliationTrigger(refresh, delay=0, on_reconciled=registry.prune)
