"""Low-level HTTP transport layer wrapping httpx."""

from __future__ import annotations

from typing import Any

import httpx

from f1x.exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamTimeoutError,
)

DEFAULT_TIMEOUT = 30.0


def build_query_params(**kwargs: Any) -> list[tuple[str, str]]:
    """Build a list of query parameter tuples from keyword arguments.

    ``None`` values are dropped; everything else is stringified.
    """
    return [(key, str(value)) for key, value in kwargs.items() if value is not None]


def _handle_response(response: httpx.Response) -> Any:
    """Validate response status and return parsed JSON."""
    if not response.is_success:
        raise UpstreamError(
            status_code=response.status_code,
            message=response.text or response.reason_phrase,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamError(
            status_code=response.status_code,
            message=f"Response body is not valid JSON: {exc}",
        ) from exc


class AsyncTransport:
    """Asynchronous JSON-over-HTTP transport using httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def get(self, endpoint: str, params: list[tuple[str, str]]) -> Any:
        """Perform an async GET request and return parsed JSON."""
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise UpstreamConnectionError(str(exc)) from exc
        return _handle_response(response)

    async def close(self) -> None:
        await self._client.aclose()
