"""
Remote data source: the HTTP API behind the coordinator.

The coordinator only sees the :class:`RemoteDataSource` protocol: reads and
writes that return ``Ok(payload)`` or ``Err(error)``. Nothing in here ever
raises for a transport problem; failures come back as typed errors.

Envelope:
    The API answers with ``{"data": <payload>, "error": null}`` on success
    and ``{"data": null, "error": {"code": ..., "message": ...}}`` on
    failure. Bodies without an envelope are taken as the payload itself.

Error mapping:
    ::

        httpx.TimeoutException   → TimeoutError   (retryable)
        httpx.TransportError     → NetworkError   (retryable)
        other httpx.HTTPError    → NetworkError   (retryable)
        envelope error / non-2xx → SourceError    (SourceNotFoundError on 404)
        undecodable body         → ParseError

Examples:
    >>> source = HttpDataSource("http://localhost:8000/api", token="…")
    >>> result = await source.get("work-orders", {"status": "open", "page": 1})
    >>> result.unwrap_or([])
    [...]
    >>> await source.aclose()

Tags:
    http, httpx, api-client, envelope, workpro

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import httpx

from workpro.core.errors import (
    NetworkError,
    ParseError,
    SourceError,
    SourceNotFoundError,
    TimeoutError,
)
from workpro.core.fingerprint import FilterSet, normalize_filters
from workpro.core.logging import get_logger
from workpro.core.result import Err, Ok, Result

logger = get_logger(__name__)


@runtime_checkable
class RemoteDataSource(Protocol):
    """Contract for the remote API the coordinator reads from and writes to."""

    async def get(self, path: str, params: FilterSet | None = None) -> Result[Any]:
        """Read a resource. ``params`` are the query filters."""
        ...

    async def patch(self, path: str, body: Any = None) -> Result[Any]:
        """Partially update a resource."""
        ...

    async def delete(self, path: str) -> Result[Any]:
        """Delete a resource."""
        ...

    async def aclose(self) -> None:
        """Release connections."""
        ...


def _error_message(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if not error:
        return None
    if isinstance(error, Mapping):
        return str(error.get("message") or error.get("code") or "Request failed")
    return str(error)


class HttpDataSource:
    """:class:`RemoteDataSource` over an ``httpx.AsyncClient``.

    Args:
        base_url: API root, e.g. ``http://localhost:8000/api``.
        token: Bearer token sent on every request.
        timeout: Per-request timeout in seconds.
        transport: Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def get(self, path: str, params: FilterSet | None = None) -> Result[Any]:
        return await self._request("GET", path, params=normalize_filters(params))

    async def patch(self, path: str, body: Any = None) -> Result[Any]:
        return await self._request("PATCH", path, json=body)

    async def delete(self, path: str) -> Result[Any]:
        return await self._request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Result[Any]:
        url = path.lstrip("/")
        try:
            response = await self._client.request(method, url, params=params or None, json=json)
        except httpx.TimeoutException as e:
            logger.warning("remote_timeout", method=method, path=path)
            return Err(TimeoutError("Request timed out", cause=e).with_context(resource=path))
        except httpx.TransportError as e:
            logger.warning("remote_unreachable", method=method, path=path, error=str(e))
            return Err(NetworkError("Network request failed", cause=e).with_context(resource=path))
        except httpx.HTTPError as e:
            # Undecodable content encodings, redirect loops and the like.
            logger.warning("remote_request_failed", method=method, path=path, error=str(e))
            return Err(NetworkError("Network request failed", cause=e).with_context(resource=path))

        return self._unwrap(response, path)

    def _unwrap(self, response: httpx.Response, path: str) -> Result[Any]:
        status = response.status_code
        url = str(response.request.url)

        if not response.content:
            if response.is_success:
                return Ok(None)
            return Err(
                SourceError(f"Request failed with status {status}").with_context(
                    resource=path, url=url, http_status=status
                )
            )

        try:
            body = response.json()
        except ValueError as e:
            return Err(
                ParseError("Response was not valid JSON", cause=e).with_context(
                    resource=path, url=url, http_status=status
                )
            )

        message = _error_message(body)
        if message is not None or not response.is_success:
            error_cls = SourceNotFoundError if status == 404 else SourceError
            error = error_cls(message or f"Request failed with status {status}")
            return Err(error.with_context(resource=path, url=url, http_status=status))

        if isinstance(body, Mapping) and "data" in body:
            return Ok(body["data"])
        return Ok(body)


__all__ = [
    "HttpDataSource",
    "RemoteDataSource",
]
