"""HTTP transport layer - wraps httpx with auth and error mapping."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ProtocolError,
    RateLimitError,
    ServerError,
    TransportError,
    WPConvergeError,
)

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[int, type[WPConvergeError]] = {
    401: AuthenticationError,
    403: ForbiddenError,
    404: NotFoundError,
}

DEFAULT_BASE_URL = "https://api.wpengineapi.com/v1"
DEFAULT_TIMEOUT = 30.0


def _build_headers(api_token: str, user_agent: str | None) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {api_token}",
        "Accept": "application/json",
    }
    if user_agent:
        headers["User-Agent"] = user_agent
    return headers


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"Undecodable response body: {exc}",
            status_code=response.status_code,
            body=response.text,
        ) from exc


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or response.reason_phrase
    else:
        message = str(body) or response.reason_phrase
    status = response.status_code

    if status == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            wait = float(retry_after) if retry_after else None
        except ValueError:
            wait = None
        raise RateLimitError(message, retry_after=wait, status_code=status, body=body)

    exc_cls = _STATUS_MAP.get(status)
    if exc_cls is None:
        if status >= 500:
            exc_cls = ServerError
        elif status >= 400:
            exc_cls = ConflictError
        else:
            exc_cls = ProtocolError

    raise exc_cls(message, status_code=status, body=body)


class SyncTransport:
    """Synchronous HTTP transport using httpx.

    Holds no per-request state, so one instance can be shared between threads.
    Each call to :meth:`request` is exactly one round trip.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            headers=_build_headers(api_token, user_agent),
            timeout=timeout,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
    ) -> Any:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TransportError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Connection failed: {exc}") from exc

        logger.debug("%s %s -> %s", method, path, response.status_code)
        _raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return _decode(response)

    def close(self) -> None:
        self._client.close()
