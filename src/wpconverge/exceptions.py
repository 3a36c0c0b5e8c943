"""Typed exceptions for reconciliation and remote API errors."""

from __future__ import annotations

from typing import Any


class WPConvergeError(Exception):
    """Base exception for all wpconverge errors.

    ``kind`` and ``remote_id`` are filled in by the resource client so the
    caller can tell which resource a failure belongs to.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        kind: str | None = None,
        remote_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.kind = kind
        self.remote_id = remote_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.kind:
            parts.append(f"kind={self.kind}")
        if self.remote_id:
            parts.append(f"remote_id={self.remote_id}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class ValidationError(WPConvergeError):
    """Desired state violates the resource schema. Raised before any remote call."""


class NotFoundError(WPConvergeError):
    """404 Not Found - the remote entity does not exist."""


class ConflictError(WPConvergeError):
    """4xx other than 404 - the remote service rejected the request."""


class AuthenticationError(ConflictError):
    """401 Unauthorized - invalid or missing API token."""


class ForbiddenError(ConflictError):
    """403 Forbidden - insufficient permissions."""


class RateLimitError(ConflictError):
    """429 Too Many Requests - rate limit exceeded."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int | None = 429,
        body: Any = None,
        kind: str | None = None,
        remote_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            body=body,
            kind=kind,
            remote_id=remote_id,
        )
        self.retry_after = retry_after


class TransportError(WPConvergeError):
    """Network failure or timeout. The same call may be retried."""

    retryable = True


class ServerError(TransportError):
    """5xx Server Error - something went wrong on the server."""


class ProtocolError(WPConvergeError):
    """Malformed or unexpected response (undecodable body, missing identifier)."""


class RequiresReplacementError(WPConvergeError):
    """An attribute that cannot be updated in place differs from the remote value.

    ``attributes`` lists every offending attribute name. Whether to replace the
    resource (delete then create) is left to the caller.
    """

    def __init__(
        self,
        message: str,
        *,
        attributes: list[str],
        kind: str | None = None,
        remote_id: str | None = None,
    ) -> None:
        super().__init__(message, kind=kind, remote_id=remote_id)
        self.attributes = attributes
