"""Core orchestrator - wires transport, queue, registry and listing."""
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Union

import httpx

from ..errors import APIError, UploadNotAllowed
from ..listing import DirectoryListing, ListingRefresher
from ..models import DrainSummary, FileRef, ListingView, UploadConfig, UploadTask
from ..protocols import IDirectoryClient, ITransport
from ..services.api_client import DirectoryClient
from ..services.transport import HTTPTransport
from .queue import UploadQueue
from .reconcile import ReconciliationTrigger
from .registry import ProgressEntry, ProgressRegistry

FileSource = Union[FileRef, Path, str]


class UploadOrchestrator:
    """
    Upload files into the current directory, one at a time.

    Follows:
    - Dependency Injection (transport and directory client injectable)
    - Single Responsibility (queue schedules, registry tracks, trigger refreshes)

    Usage:
        config = UploadConfig(api_url, directory_id="abc")
        async with UploadOrchestrator(config) as drive:
            await drive.load()
            tasks = drive.upload([Path("a.txt"), Path("b.txt")])
            drive.on("task_progress", lambda task, entry: print(entry.label))
            summary = await drive.wait()
            print(drive.listing.files)
    """

    def __init__(
        self,
        config: UploadConfig,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[ITransport] = None,
        directory_client: Optional[IDirectoryClient] = None,
        cookies: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            client: Shared HTTP client carrying credentials; created if omitted
            transport: Upload transport (defaults to HTTPTransport)
            directory_client: Listing client (defaults to DirectoryClient)
            cookies: Session cookies for a client created here
        """
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._cookies = cookies
        self._transport = transport
        self._directory_client = directory_client

        self.listing = DirectoryListing()
        self.registry = ProgressRegistry()

        # Initialized in __aenter__
        self._refresher: Optional[ListingRefresher] = None
        self._trigger: Optional[ReconciliationTrigger] = None
        self._queue: Optional[UploadQueue] = None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout, cookies=self._cookies)
        if self._transport is None:
            self._transport = HTTPTransport(self._client, self._config)
        if self._directory_client is None:
            self._directory_client = DirectoryClient(self._client, self._config)

        self._refresher = ListingRefresher(
            self._directory_client,
            self.listing,
            directory_id=self._config.directory_id,
            view=self._config.view,
        )
        self._trigger = ReconciliationTrigger(
            self._refresher.refresh,
            delay=self._config.refresh_delay,
            on_reconciled=self.registry.prune,
            on_error=self.listing.show_error,
        )
        self._queue = UploadQueue(self._transport, self.registry, self._trigger)
        self._queue.on("task_start", self._on_task_start)
        self._queue.start()
        return self

    async def __aexit__(self, *args):
        if self._queue is not None:
            await self._queue.close()
        if self._trigger is not None:
            await self._trigger.close()
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    @property
    def queue(self) -> UploadQueue:
        assert self._queue is not None, "use 'async with UploadOrchestrator(...)'"
        return self._queue

    @property
    def progress(self) -> Mapping[str, ProgressEntry]:
        return self.registry.snapshot()

    def on(self, event_name: str, callback: Callable):
        self.queue.on(event_name, callback)

    async def load(self) -> DirectoryListing:
        """Fetch the current directory. Failures end up in listing.error_message."""
        assert self._refresher is not None
        try:
            await self._refresher.refresh()
        except APIError as e:
            self.listing.show_error(e)
        return self.listing

    def upload(self, files: Iterable[FileSource]) -> List[UploadTask]:
        """Queue files for upload and show them in the listing right away."""
        if self._config.view == ListingView.PUBLIC:
            raise UploadNotAllowed("cannot upload into a public listing")
        tasks = [UploadTask(file=f if isinstance(f, FileRef) else FileRef.from_path(f)) for f in files]
        if not tasks:
            return []
        self.listing.insert_placeholders(tasks)
        self.queue.enqueue(tasks)
        return tasks

    def cancel(self, task_id: str) -> bool:
        """Cancel one upload and drop its placeholder from the listing."""
        cancelled = self.queue.cancel(task_id)
        if cancelled:
            self.listing.remove_placeholder(task_id)
        return cancelled

    def cancel_all(self) -> int:
        cancelled = 0
        for task in reversed(self.queue.tasks):  # waiting tasks first, so nothing new starts
            cancelled += self.cancel(task.id)
        return cancelled

    async def wait(self) -> Optional[DrainSummary]:
        """Wait for the queue to drain and the listing refresh to finish."""
        summary = await self.queue.wait_idle()
        assert self._trigger is not None
        await self._trigger.wait()
        return summary

    def _on_task_start(self, task: UploadTask) -> None:
        self.listing.mark_uploading(task.id)
