"""Listing refresh after the upload queue drains."""
from typing import Awaitable, Callable, List, Optional, Set
import asyncio
import logging

logger = logging.getLogger(__name__)


class ReconciliationTrigger:
    """
    Fires one listing refresh per drain.

    ``fire()`` is called by the queue on the draining -> idle edge. The
    refresh runs after ``delay`` seconds so the backend can finish
    thumbnailing and quota accounting. A pending refresh is never
    suppressed by later enqueues. Refresh errors are reported through
    ``on_error`` and never reach the queue.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        delay: float = 1.0,
        on_reconciled: Optional[Callable[[List[str]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._refresh = refresh
        self._delay = delay
        self._on_reconciled = on_reconciled
        self._on_error = on_error
        self._pending: Set[asyncio.Task] = set()
        self.fired = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def fire(self, task_ids: List[str]) -> asyncio.Task:
        self.fired += 1
        logger.debug(f"Listing refresh scheduled in {self._delay}s for {len(task_ids)} task(s)")
        task = asyncio.create_task(self._run(list(task_ids)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait(self) -> None:
        """Wait until every scheduled refresh has run."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, task_ids: List[str]) -> None:
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        try:
            await self._refresh()
        except Exception as e:
            logger.error(f"Listing refresh failed: {e}")
            if self._on_error:
                self._on_error(e)
        if self._on_reconciled:
            self._on_reconciled(task_ids)
