"""
Client configuration.

Loads connection settings from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .client._transport import DEFAULT_BASE_URL, DEFAULT_TIMEOUT


@dataclass(frozen=True)
class Settings:
    """WP Engine API connection settings."""

    api_token: str = field(repr=False)  # Never log the token
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> Settings:
        """Load from environment variables."""
        api_token = os.getenv("WPENGINE_API_TOKEN", "")
        if not api_token:
            raise ValueError(
                "WPENGINE_API_TOKEN environment variable must be set. "
                "API token cannot be empty."
            )

        return cls(
            api_token=api_token,
            base_url=os.getenv("WPENGINE_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.getenv("WPENGINE_TIMEOUT", str(DEFAULT_TIMEOUT))),
        )
