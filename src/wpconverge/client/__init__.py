"""HTTP client for the WP Engine management API."""

from .client import ApiClient
from .resource import ResourceClient

__all__ = ["ApiClient", "ResourceClient"]
