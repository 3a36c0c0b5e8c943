"""Static resource schemas - which attributes a resource kind has and how they behave."""
from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any

import pydantic

from .client import models
from .exceptions import ValidationError


@dataclass(frozen=True)
class Attribute:
    """Declaration of a single resource attribute.

    Attributes:
        name: Attribute name as it appears in request and response bodies.
        required: Must be present in every desired state.
        computed: Assigned by the server; never sent on create or update.
        mutable: May be changed in place by an update call. A differing
            non-mutable attribute forces a replacement.
        in_path: Used to fill the collection path on create instead of being
            sent in the request body.
    """

    name: str
    required: bool = False
    computed: bool = False
    mutable: bool = False
    in_path: bool = False


def _path_fields(template: str) -> set[str]:
    return {name for _, name, _, _ in string.Formatter().parse(template) if name}


@dataclass(frozen=True)
class ResourceKind:
    """Immutable descriptor of one kind of remote resource."""

    name: str
    id_attribute: str
    attributes: tuple[Attribute, ...]
    collection_path: str
    item_path: str
    model: type[pydantic.BaseModel] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        names = [a.name for a in self.attributes]
        if len(names) != len(set(names)):
            raise ValueError(f"{self.name}: duplicate attribute names")
        by_name = {a.name: a for a in self.attributes}
        ident = by_name.get(self.id_attribute)
        if ident is None:
            raise ValueError(f"{self.name}: identifier {self.id_attribute!r} is not declared")
        if not ident.computed or ident.mutable:
            raise ValueError(f"{self.name}: identifier must be computed and immutable")
        for attr in self.attributes:
            if attr.computed and (attr.required or attr.mutable or attr.in_path):
                raise ValueError(
                    f"{self.name}.{attr.name}: computed attributes cannot be "
                    "required, mutable or path parameters"
                )
        for placeholder in _path_fields(self.collection_path):
            attr = by_name.get(placeholder)
            if attr is None or not attr.in_path:
                raise ValueError(
                    f"{self.name}: collection path placeholder {{{placeholder}}} "
                    "must name an in_path attribute"
                )
        if _path_fields(self.item_path) != {"id"}:
            raise ValueError(f"{self.name}: item path must contain exactly {{id}}")

    # -- Lookups --

    def attribute(self, name: str) -> Attribute | None:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    @property
    def required(self) -> frozenset[str]:
        return frozenset(a.name for a in self.attributes if a.required)

    @property
    def computed(self) -> frozenset[str]:
        return frozenset(a.name for a in self.attributes if a.computed)

    @property
    def mutable(self) -> frozenset[str]:
        return frozenset(a.name for a in self.attributes if a.mutable)

    @property
    def immutable(self) -> frozenset[str]:
        """Settable attributes that can only change through replacement."""
        return frozenset(
            a.name for a in self.attributes if not a.computed and not a.mutable
        )

    # -- Desired-state handling --

    def validate(self, desired: dict[str, Any]) -> None:
        """Check a desired state against this kind, raising ``ValidationError``."""
        missing = sorted(n for n in self.required if desired.get(n) is None)
        if missing:
            raise ValidationError(
                f"Missing required attributes: {', '.join(missing)}", kind=self.name
            )
        declared = {a.name for a in self.attributes}
        unknown = sorted(desired.keys() - declared)
        if unknown:
            raise ValidationError(
                f"Unknown attributes: {', '.join(unknown)}", kind=self.name
            )
        computed = sorted(self.computed & desired.keys())
        if computed:
            raise ValidationError(
                f"Computed attributes cannot be set: {', '.join(computed)}",
                kind=self.name,
            )
        if self.model is not None:
            try:
                self.model.model_validate(desired)
            except pydantic.ValidationError as exc:
                raise ValidationError(
                    f"Invalid attribute values: {exc}", kind=self.name
                ) from exc

    def payload(self, desired: dict[str, Any]) -> dict[str, Any]:
        """Request body for a create: drops computed and path-only attributes."""
        skip = self.computed | {a.name for a in self.attributes if a.in_path}
        return {k: v for k, v in desired.items() if k not in skip}

    def path_params(self, desired: dict[str, Any]) -> dict[str, Any]:
        return {a.name: desired.get(a.name) for a in self.attributes if a.in_path}

    def __repr__(self) -> str:
        return f"<ResourceKind: {self.name}>"


def attributes_of(kind: ResourceKind | str) -> list[Attribute]:
    """All attribute declarations of ``kind``."""
    return list(get_kind(kind).attributes)


# -- Built-in WP Engine kinds --------------------------------------------------

ACCOUNT = ResourceKind(
    name="account",
    id_attribute="id",
    attributes=(
        Attribute("id", computed=True),
        Attribute("name", required=True, mutable=True),
    ),
    collection_path="/accounts",
    item_path="/accounts/{id}",
    model=models.Account,
)

ACCOUNT_USER = ResourceKind(
    name="account_user",
    id_attribute="user_id",
    attributes=(
        Attribute("user_id", computed=True),
        Attribute("account_id", required=True, in_path=True),
        Attribute("first_name", required=True, mutable=True),
        Attribute("last_name", required=True, mutable=True),
        Attribute("email", required=True, mutable=True),
        Attribute("roles", mutable=True),
        Attribute("install_ids", mutable=True),
    ),
    collection_path="/accounts/{account_id}/account_users",
    item_path="/users/{id}",
    model=models.AccountUser,
)

SITE = ResourceKind(
    name="site",
    id_attribute="id",
    attributes=(
        Attribute("id", computed=True),
        Attribute("account_id", required=True),
        Attribute("name", required=True, mutable=True),
        Attribute("group_name", mutable=True),
    ),
    collection_path="/sites",
    item_path="/sites/{id}",
    model=models.Site,
)

INSTALL = ResourceKind(
    name="install",
    id_attribute="id",
    attributes=(
        Attribute("id", computed=True),
        Attribute("account_id", required=True),
        Attribute("site_id", required=True),
        Attribute("name", required=True),
        Attribute("environment", mutable=True),
        Attribute("cname", computed=True),
        Attribute("php_version", computed=True),
        Attribute("status", computed=True),
    ),
    collection_path="/installs",
    item_path="/installs/{id}",
    model=models.Install,
)

DOMAIN = ResourceKind(
    name="domain",
    id_attribute="id",
    attributes=(
        Attribute("id", computed=True),
        Attribute("install_id", required=True),
        Attribute("name", required=True),
        Attribute("primary", mutable=True),
        Attribute("redirect_to", mutable=True),
        Attribute("duplicate", computed=True),
    ),
    collection_path="/domains",
    item_path="/domains/{id}",
    model=models.Domain,
)

SSH_KEY = ResourceKind(
    name="ssh_key",
    id_attribute="uuid",
    attributes=(
        Attribute("uuid", computed=True),
        Attribute("public_key", required=True),
        Attribute("comment", computed=True),
        Attribute("fingerprint", computed=True),
        Attribute("created_at", computed=True),
    ),
    collection_path="/ssh_keys",
    item_path="/ssh_keys/{id}",
    model=models.SshKey,
)

CDN = ResourceKind(
    name="cdn",
    id_attribute="id",
    attributes=(
        Attribute("id", computed=True),
        Attribute("install_id", required=True),
        Attribute("domain", required=True),
        Attribute("enabled", mutable=True),
        Attribute("settings", mutable=True),
        Attribute("status", computed=True),
    ),
    collection_path="/cdns",
    item_path="/cdns/{id}",
    model=models.Cdn,
)

_REGISTRY: dict[str, ResourceKind] = {
    k.name: k for k in (ACCOUNT, ACCOUNT_USER, SITE, INSTALL, DOMAIN, SSH_KEY, CDN)
}


def register_kind(kind: ResourceKind) -> ResourceKind:
    """Add a custom kind to the registry, replacing any kind of the same name."""
    _REGISTRY[kind.name] = kind
    return kind


def get_kind(kind: ResourceKind | str) -> ResourceKind:
    """Resolve a kind name to its descriptor. Descriptors pass through unchanged."""
    if isinstance(kind, ResourceKind):
        return kind
    try:
        return _REGISTRY[kind]
    except KeyError:
        raise KeyError(f"Unknown resource kind: {kind!r}") from None


def kinds() -> list[str]:
    """Names of all registered kinds."""
    return sorted(_REGISTRY)
