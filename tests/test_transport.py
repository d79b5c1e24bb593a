"""Tests for the HTTP upload transport."""
import asyncio

import httpx
import pytest

from driveup.models import ListingView, TransportEventKind, UploadConfig, UploadTask
from driveup.services.transport import HTTPTransport


API_URL = "http://drive.test/api"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _upload(handler, task, config=None):
    events = []
    config = config or UploadConfig(API_URL, directory_id="dir1", chunk_size=4)
    async with _client(handler) as client:
        handle = HTTPTransport(client, config).start(task, events.append)
        await handle.wait()
    return handle, events


class TestHTTPTransport:
    @pytest.mark.asyncio
    async def test_streams_body_with_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["filename"] = request.headers["filename"]
            seen["filesize"] = request.headers["filesize"]
            seen["body"] = request.content
            return httpx.Response(201, json={"id": "file-1"})

        task = UploadTask.from_bytes("a.txt", b"0123456789")
        handle, events = await _upload(handler, task)

        assert seen == {
            "method": "POST",
            "url": f"{API_URL}/file/dir1",
            "filename": "a.txt",
            "filesize": "10",
            "body": b"0123456789",
        }
        progress = [(e.bytes_sent, e.bytes_total) for e in events if not e.is_terminal]
        assert progress == [(4, 10), (8, 10), (10, 10)]
        assert events[-1].kind == TransportEventKind.SUCCESS
        assert events[-1].payload == {"id": "file-1"}
        assert sum(1 for e in events if e.is_terminal) == 1
        assert handle.closed

    @pytest.mark.asyncio
    async def test_uploads_file_from_disk(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_bytes(b"# hello\n")
        bodies = []

        def handler(request):
            bodies.append(request.content)
            return httpx.Response(200)

        _, events = await _upload(handler, UploadTask.from_path(path))

        assert bodies == [b"# hello\n"]
        assert events[-1].kind == TransportEventKind.SUCCESS
        assert events[-1].payload is None

    @pytest.mark.asyncio
    async def test_admin_endpoint_at_root(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(201)

        config = UploadConfig(API_URL + "/", view=ListingView.ADMIN)
        await _upload(handler, UploadTask.from_bytes("a.txt", b"a"), config)

        assert urls == [f"{API_URL}/admin/upload/user/file/"]

    @pytest.mark.asyncio
    async def test_error_field_becomes_reason(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Storage quota exceeded"})

        _, events = await _upload(handler, UploadTask.from_bytes("a.txt", b"abc"))

        assert events[-1].kind == TransportEventKind.FAILURE
        assert events[-1].error == "Storage quota exceeded"

    @pytest.mark.asyncio
    async def test_unreadable_body_gets_generic_reason(self):
        def handler(request):
            return httpx.Response(502, text="<html>bad gateway</html>")

        _, events = await _upload(handler, UploadTask.from_bytes("a.txt", b"abc"))

        assert events[-1].error == "Request failed with status 502"

    @pytest.mark.asyncio
    async def test_network_error_is_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        _, events = await _upload(handler, UploadTask.from_bytes("a.txt", b"abc"))

        assert events[-1].kind == TransportEventKind.FAILURE
        assert events[-1].error == "connection refused"
        assert sum(1 for e in events if e.is_terminal) == 1

    @pytest.mark.asyncio
    async def test_abort_silences_handle(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(201)

        events = []
        config = UploadConfig(API_URL, chunk_size=4)
        async with _client(handler) as client:
            handle = HTTPTransport(client, config).start(
                UploadTask.from_bytes("a.txt", b"0123456789"), events.append
            )
            await started.wait()
            count = len(events)

            handle.abort()
            handle.abort()
            await handle.wait()

        assert len(events) == count
        assert not any(e.is_terminal for e in events)
        assert handle.closed

    @pytest.mark.asyncio
    async def test_abort_after_completion_is_noop(self):
        def handler(request):
            return httpx.Response(201)

        handle, events = await _upload(handler, UploadTask.from_bytes("a.txt", b"abc"))
        handle.abort()

        assert sum(1 for e in events if e.is_terminal) == 1
