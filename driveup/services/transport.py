"""
HTTP transport - one streamed POST per upload task.

The raw file bytes are the request body. Name and size travel as the
``filename`` / ``filesize`` headers so the server can start writing before
the body has arrived.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx

from ..models import TransportEvent, UploadConfig, UploadTask
from ..protocols import EventSink
from ..errors import TransportFailure
from .api_client import raise_for_upload

log = logging.getLogger(__name__)


class UploadHandle:
    """
    One in-flight upload.

    Emits progress ticks and exactly one terminal event to the sink, unless
    aborted first. After ``abort()`` returns nothing more is delivered.
    """

    def __init__(self, task_id: str, sink: EventSink):
        self.task_id = task_id
        self._sink = sink
        self._closed = False
        self._runner: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, runner: asyncio.Task) -> None:
        self._runner = runner

    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        log.debug(f"Aborting upload {self.task_id}")
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()

    async def wait(self) -> None:
        """Wait for the underlying request to wind down."""
        if self._runner is None:
            return
        try:
            await self._runner
        except asyncio.CancelledError:
            pass

    def progress(self, bytes_sent: int, bytes_total: int) -> None:
        if not self._closed:
            self._sink(TransportEvent.progress(self.task_id, bytes_sent, bytes_total))

    def finish(self, event: TransportEvent) -> None:
        if self._closed:
            return
        self._closed = True
        self._sink(event)


class HTTPTransport:
    """
    Starts uploads against the drive API.

    Implements ITransport protocol. Never retries: a failed upload is
    reported once and the queue moves on.
    """

    def __init__(self, client: httpx.AsyncClient, config: UploadConfig):
        self._client = client
        self._config = config

    def start(self, task: UploadTask, sink: EventSink) -> UploadHandle:
        url = self._config.upload_url()
        handle = UploadHandle(task.id, sink)
        runner = asyncio.create_task(self._run(task, url, handle), name=f"upload-{task.id}")
        handle.attach(runner)
        log.info(f"Uploading {task.name} ({task.size} bytes) to {url}")
        return handle

    async def _body(self, task: UploadTask, handle: UploadHandle) -> AsyncIterator[bytes]:
        sent = 0
        total = task.size
        async for chunk in task.file.iter_chunks(self._config.chunk_size):
            yield chunk
            sent += len(chunk)
            handle.progress(sent, total)

    async def _run(self, task: UploadTask, url: str, handle: UploadHandle) -> None:
        headers = {
            "filename": task.name.encode("utf-8"),
            "filesize": str(task.size),
            "Content-Length": str(task.size),
        }
        try:
            response = await self._client.post(
                url,
                content=self._body(task, handle),
                headers=headers,
                timeout=self._config.timeout,
            )
        except (httpx.HTTPError, OSError) as exc:
            reason = str(exc) or type(exc).__name__
            log.warning(f"Upload of {task.name} failed: {reason}")
            handle.finish(TransportEvent.failure(task.id, reason))
            return

        try:
            raise_for_upload(response)
        except TransportFailure as exc:
            log.warning(f"Upload of {task.name} rejected ({exc.status_code}): {exc}")
            handle.finish(TransportEvent.failure(task.id, str(exc)))
            return

        handle.finish(TransportEvent.success(task.id, _json_or_none(response)))


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None
