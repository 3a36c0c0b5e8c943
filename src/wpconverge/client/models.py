"""Pydantic v2 models for WP Engine API resources.

These mirror the server-side representations. All models use
``extra="allow"`` so new server-side fields don't break deserialization.
Fields are optional here; which attributes a desired state must carry is
declared by the resource schema, not by the model.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class _Base(BaseModel):
    model_config = ConfigDict(extra="allow")


# -- Accounts ------------------------------------------------------------------

class Account(_Base):
    id: str | None = None
    name: str | None = None


class AccountUser(_Base):
    user_id: str | None = None
    account_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    roles: str | None = None
    install_ids: list[str] | None = None


# -- Sites and installs --------------------------------------------------------

class Site(_Base):
    id: str | None = None
    account_id: str | None = None
    name: str | None = None
    group_name: str | None = None


class Install(_Base):
    id: str | None = None
    account_id: str | None = None
    site_id: str | None = None
    name: str | None = None
    environment: str | None = None
    cname: str | None = None
    php_version: str | None = None
    status: str | None = None


# -- Domains and CDN -----------------------------------------------------------

class Domain(_Base):
    id: str | None = None
    install_id: str | None = None
    name: str | None = None
    primary: bool | None = None
    redirect_to: str | None = None
    duplicate: bool | None = None


class Cdn(_Base):
    id: str | None = None
    install_id: str | None = None
    domain: str | None = None
    enabled: bool | None = None
    settings: dict[str, Any] | None = None
    status: str | None = None


# -- SSH keys ------------------------------------------------------------------

class SshKey(_Base):
    uuid: str | None = None
    public_key: str | None = None
    comment: str | None = None
    fingerprint: str | None = None
    created_at: str | None = None
