"""Generic resource client - create, read, update, delete for one resource kind."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from ..exceptions import ProtocolError, ValidationError, WPConvergeError

if TYPE_CHECKING:
    from ..schema import ResourceKind
    from ._transport import SyncTransport


class ResourceClient:
    """CRUD calls for a single :class:`~wpconverge.schema.ResourceKind`.

    Every method is one HTTP round trip with no retries. Errors are raised as
    :class:`~wpconverge.exceptions.WPConvergeError` subclasses annotated with
    the kind name and the remote identifier involved.
    """

    def __init__(self, transport: SyncTransport, kind: ResourceKind) -> None:
        self._t = transport
        self.kind = kind

    def create(self, desired: dict[str, Any]) -> dict[str, Any]:
        """Create the resource. Only non-computed attributes are sent."""
        params = self.kind.path_params(desired)
        missing = sorted(k for k, v in params.items() if v in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing path attributes: {', '.join(missing)}", kind=self.kind.name
            )
        path = self.kind.collection_path.format(
            **{k: self._segment(str(v)) for k, v in params.items()}
        )
        return self._call("POST", path, json=self.kind.payload(desired))

    def read(self, remote_id: str) -> dict[str, Any]:
        return self._call("GET", self._item(remote_id), remote_id=remote_id)

    def update(self, remote_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Send only ``changes`` and return the refreshed representation."""
        return self._call(
            "PATCH", self._item(remote_id), remote_id=remote_id, json=changes
        )

    def delete(self, remote_id: str) -> None:
        self._call("DELETE", self._item(remote_id), remote_id=remote_id, expect_body=False)

    # -- Internals -------------------------------------------------------------

    def _item(self, remote_id: str) -> str:
        return self.kind.item_path.format(id=self._segment(remote_id))

    def _segment(self, value: str) -> str:
        """Escape a value for use as a single URL path segment."""
        if value in ("", ".", ".."):
            raise ValidationError(f"Invalid path segment: {value!r}", kind=self.kind.name)
        return quote(value, safe="")

    def _call(
        self,
        method: str,
        path: str,
        *,
        remote_id: str | None = None,
        json: Any | None = None,
        expect_body: bool = True,
    ) -> Any:
        try:
            body = self._t.request(method, path, json=json)
            if expect_body and not isinstance(body, dict):
                raise ProtocolError(
                    f"Expected a JSON object from {method} {path}, "
                    f"got {type(body).__name__}",
                    body=body,
                )
        except WPConvergeError as exc:
            exc.kind = self.kind.name
            exc.remote_id = remote_id
            raise
        return body if expect_body else None

    def __repr__(self) -> str:
        return f"<ResourceClient: {self.kind.name}>"
