"""WP Engine API client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._transport import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, SyncTransport
from .resource import ResourceClient

if TYPE_CHECKING:
    from ..config import Settings
    from ..schema import ResourceKind


class ApiClient:
    """Synchronous client for the WP Engine management API.

    Usage::

        client = ApiClient(api_token="...")
        sites = client.resource("site")
        site = sites.read("b3c5...")
        client.close()

    Or as a context manager::

        with ApiClient.from_env() as client:
            user = client.account_users.read("42")

    The client holds only the shared transport and read-only credentials, so
    one instance can serve reconciles of different resources concurrently.
    """

    def __init__(
        self,
        *,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        from .. import __version__

        self._transport = SyncTransport(
            base_url=base_url,
            api_token=api_token,
            timeout=timeout,
            user_agent=f"wpconverge/{__version__}",
        )
        self.accounts = self.resource("account")
        self.account_users = self.resource("account_user")
        self.sites = self.resource("site")
        self.installs = self.resource("install")
        self.domains = self.resource("domain")
        self.ssh_keys = self.resource("ssh_key")
        self.cdns = self.resource("cdn")

    @classmethod
    def from_settings(cls, settings: Settings) -> ApiClient:
        return cls(
            api_token=settings.api_token,
            base_url=settings.base_url,
            timeout=settings.timeout,
        )

    @classmethod
    def from_env(cls) -> ApiClient:
        """Build a client from ``WPENGINE_*`` environment variables."""
        from ..config import Settings

        return cls.from_settings(Settings.from_env())

    def resource(self, kind: ResourceKind | str) -> ResourceClient:
        """Resource client for a kind descriptor or a registered kind name."""
        from ..schema import get_kind

        return ResourceClient(self._transport, get_kind(kind))

    # -- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()
