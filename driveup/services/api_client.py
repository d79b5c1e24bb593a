"""HTTP adapter for drive API read operations."""
from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from ..errors import APIError, ProtocolError, TransportFailure
from ..models import UploadConfig

log = logging.getLogger(__name__)


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def error_message(response: httpx.Response) -> str:
    """
    Message for a failed response.

    Uses the JSON body's ``error`` field when present, otherwise a generic
    message with the status code. A body that is not a JSON object falls
    back to the generic message too.
    """
    default = f"Request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return default


def raise_for_upload(response: httpx.Response) -> None:
    """Raise TransportFailure for a rejected upload, ProtocolError if the body is unreadable."""
    if is_success(response):
        return
    try:
        body = response.json()
    except ValueError as exc:
        raise ProtocolError(error_message(response), response.status_code) from exc
    if not isinstance(body, dict):
        raise ProtocolError(error_message(response), response.status_code)
    raise TransportFailure(error_message(response), response.status_code)


class DirectoryClient:
    """
    HTTP client adapter for listing the current directory.

    Implements IDirectoryClient protocol. Shares the caller's
    ``httpx.AsyncClient`` so credentials (cookies, auth headers) travel with
    every request.
    """

    def __init__(self, client: httpx.AsyncClient, config: UploadConfig):
        self._client = client
        self._config = config

    async def get_directory(self) -> Dict[str, Any]:
        """Fetch the listing once. Failures are reported, never retried."""
        url = self._config.listing_url()
        try:
            response = await self._client.get(url)
        except httpx.RequestError as exc:
            log.debug(f"GET {url} failed: {exc}")
            raise APIError(str(exc) or type(exc).__name__) from exc

        if not is_success(response):
            raise APIError(error_message(response), response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise APIError(f"Malformed listing response from {url}") from exc
        if not isinstance(data, dict):
            raise APIError(f"Malformed listing response from {url}")
        return data
