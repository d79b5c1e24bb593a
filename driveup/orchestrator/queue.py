"""
Upload queue - strictly serialized, FIFO upload scheduling.

All state changes happen on the event loop, one reaction at a time:
``enqueue`` and ``cancel`` are synchronous, transport events arrive through
a single channel consumed by one dispatcher coroutine. Listener
notifications go through the same channel, so observers see a single total
order (start, progress..., terminal, next start, ..., drain).
"""
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple, Union
import asyncio
import logging

from ..errors import InvalidTransition
from ..models import (
    DrainSummary,
    TaskStatus,
    TransportEvent,
    TransportEventKind,
    UploadOutcome,
    UploadResult,
    UploadTask,
)
from ..protocols import ITransport, IUploadHandle
from ..utils.events import EventEmitter
from .reconcile import ReconciliationTrigger
from .registry import ProgressRegistry

logger = logging.getLogger(__name__)


class QueueState(Enum):
    """State of the queue as a whole."""
    IDLE = "idle"
    DRAINING = "draining"


@dataclass(frozen=True)
class _Notice:
    event_name: str
    args: Tuple[Any, ...]


_TERMINAL_EVENTS = {
    TaskStatus.COMPLETED: "task_complete",
    TaskStatus.FAILED: "task_fail",
    TaskStatus.CANCELLED: "task_cancel",
}


class UploadQueue:
    """
    Ordered pending/active upload tasks with one transport slot.

    Usage:
        async with UploadQueue(transport, registry, trigger) as queue:
            queue.on("task_progress", lambda task, entry: print(entry.label))
            queue.enqueue([UploadTask.from_path(p) for p in paths])
            summary = await queue.wait_idle()

    Events: task_start(task), task_progress(task, entry),
    task_complete(result), task_fail(result), task_cancel(result),
    drain(summary).
    """

    def __init__(
        self,
        transport: ITransport,
        registry: Optional[ProgressRegistry] = None,
        trigger: Optional[ReconciliationTrigger] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._transport = transport
        self._registry = registry if registry is not None else ProgressRegistry()
        self._trigger = trigger
        self._events = events if events is not None else EventEmitter()

        self._pending: Deque[UploadTask] = deque()
        self._active: Optional[UploadTask] = None
        self._handle: Optional[IUploadHandle] = None

        self._channel: "asyncio.Queue[Union[TransportEvent, _Notice]]" = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

        self._drain = DrainSummary()
        self.last_drain: Optional[DrainSummary] = None

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    # State

    @property
    def state(self) -> QueueState:
        if self._active is not None or self._pending:
            return QueueState.DRAINING
        return QueueState.IDLE

    @property
    def is_idle(self) -> bool:
        return self.state == QueueState.IDLE

    @property
    def active(self) -> Optional[UploadTask]:
        return self._active

    @property
    def pending(self) -> Tuple[UploadTask, ...]:
        return tuple(self._pending)

    @property
    def tasks(self) -> List[UploadTask]:
        """Active task first, then waiting tasks in start order."""
        head = [self._active] if self._active is not None else []
        return head + list(self._pending)

    @property
    def registry(self) -> ProgressRegistry:
        return self._registry

    def __len__(self) -> int:
        return len(self._pending) + (1 if self._active is not None else 0)

    def __contains__(self, task_id: str) -> bool:
        return self._find(task_id) is not None

    def on(self, event_name: str, callback: Callable):
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable):
        self._events.off(event_name, callback)

    # Lifecycle

    def start(self) -> None:
        """Start the dispatcher. Must be called from the running event loop."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch(), name="upload-queue-dispatcher")

    async def close(self) -> None:
        """Cancel everything still queued, deliver pending notices, stop."""
        self.cancel_all()
        if self._dispatcher is not None and not self._dispatcher.done():
            await self.flush()
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
        self._dispatcher = None

    async def flush(self) -> None:
        """Wait until everything currently on the channel has been handled."""
        self.start()
        await self._channel.join()

    async def wait_idle(self) -> Optional[DrainSummary]:
        """Wait for the queue to drain; returns the summary of the last drain."""
        await self._idle.wait()
        await self.flush()
        return self.last_drain

    # Operations

    def enqueue(self, tasks: Iterable[UploadTask]) -> None:
        """
        Append tasks in selection order.

        Starts the head immediately when idle. While draining the new tasks
        just wait; a second transport is never started.
        """
        tasks = list(tasks)
        for task in tasks:
            if task.status != TaskStatus.QUEUED:
                raise InvalidTransition(f"cannot enqueue task {task.id} in status {task.status.value}")
            if self._find(task.id) is not None:
                raise ValueError(f"task {task.id} is already queued")
        if not tasks:
            return

        self.start()
        for task in tasks:
            self._pending.append(task)
            self._registry.add(task)
        self._idle.clear()
        logger.info(f"Queued {len(tasks)} file(s), {len(self)} in queue")

        if self._active is None:
            self._promote_head()

    def on_terminal(self, task_id: str, outcome: UploadOutcome) -> None:
        """Record the active task's outcome and advance the queue."""
        task = self._active
        if task is None or task.id != task_id:
            active_id = task.id if task is not None else None
            raise InvalidTransition(f"terminal outcome for {task_id} but active task is {active_id}")

        task.finish(outcome)
        self._active = None
        self._handle = None
        self._record(task)
        self._registry.settle(task.id, task.status)

        if self._pending:
            self._promote_head()
        else:
            self._go_idle()

    def cancel(self, task_id: str) -> bool:
        """
        Cancel one task. Returns False when the task is not in the queue.

        The active task's transport is aborted and the queue advances.
        A task that has not started is dropped without touching the network.
        """
        if self._active is not None and self._active.id == task_id:
            if self._handle is not None:
                self._handle.abort()
            logger.info(f"Cancelled upload of {self._active.name}")
            self.on_terminal(task_id, UploadOutcome.cancelled())
            return True

        for task in self._pending:
            if task.id == task_id:
                self._pending.remove(task)
                task.cancel_queued()
                self._registry.remove(task_id)
                self._record(task)
                logger.info(f"Removed {task.name} from queue before start")
                return True

        logger.debug(f"Cancel ignored for {task_id}: not in queue")
        return False

    def cancel_all(self) -> int:
        """Cancel waiting tasks first, then the active one."""
        cancelled = 0
        for task in list(self._pending):
            cancelled += self.cancel(task.id)
        if self._active is not None:
            cancelled += self.cancel(self._active.id)
        return cancelled

    # Internals

    def _find(self, task_id: str) -> Optional[UploadTask]:
        if self._active is not None and self._active.id == task_id:
            return self._active
        for task in self._pending:
            if task.id == task_id:
                return task
        return None

    def _promote_head(self) -> None:
        task = self._pending.popleft()
        task.start()
        self._active = task
        self._registry.start(task.id)
        self._publish("task_start", task)

        try:
            self._handle = self._transport.start(task, self._channel.put_nowait)
        except Exception as e:
            logger.error(f"Could not start upload of {task.name}: {e}")
            self._channel.put_nowait(TransportEvent.failure(task.id, str(e) or type(e).__name__))

    def _record(self, task: UploadTask) -> None:
        result = UploadResult.from_task(task)
        self._drain.results.append(result)
        if result.status == TaskStatus.FAILED:
            logger.warning(f"Upload failed: {result.filename}: {result.error}")
        else:
            logger.info(f"Upload {result.status.value}: {result.filename}")
        self._publish(_TERMINAL_EVENTS[result.status], result)

    def _go_idle(self) -> None:
        summary, self._drain = self._drain, DrainSummary()
        self.last_drain = summary
        logger.info(
            f"Queue drained: {summary.completed} completed, "
            f"{summary.failed} failed, {summary.cancelled} cancelled"
        )
        self._publish("drain", summary)
        self._idle.set()
        if self._trigger is not None:
            self._trigger.fire(summary.task_ids)

    def _publish(self, event_name: str, *args) -> None:
        self._channel.put_nowait(_Notice(event_name, args))

    def _on_transport_event(self, event: TransportEvent) -> None:
        task = self._active
        if task is None or task.id != event.task_id:
            logger.debug(f"Dropping {event.kind.value} event for inactive task {event.task_id}")
            return

        if event.kind == TransportEventKind.PROGRESS:
            entry = self._registry.update(task.id, event.bytes_sent, event.bytes_total)
            if entry is not None:
                self._publish("task_progress", task, entry)
            return

        self.on_terminal(task.id, event.to_outcome())

    async def _dispatch(self) -> None:
        while True:
            item = await self._channel.get()
            try:
                if isinstance(item, _Notice):
                    await self._events.emit(item.event_name, *item.args)
                else:
                    self._on_transport_event(item)
            except Exception as e:
                logger.error(f"Upload queue failed to handle {item!r}: {e}", exc_info=True)
            finally:
                self._channel.task_done()
