"""Attribute diffing - compare desired state against the last observed remote state."""
from __future__ import annotations

from typing import Any, Mapping

from .exceptions import RequiresReplacementError
from .schema import ResourceKind, get_kind


class ChangeSet:
    """Attributes whose desired value differs from the observed value.

    Only ever holds mutable attributes, so it can be sent as an update body
    as-is. An empty ChangeSet is falsy and means no remote call is needed.
    """

    def __init__(self, changes: dict[str, Any], previous: dict[str, Any] | None = None):
        self._changes = changes
        self._previous = previous or {}

    @property
    def attributes(self) -> list[str]:
        """Names of the changed attributes, sorted."""
        return sorted(self._changes)

    @property
    def has_changes(self) -> bool:
        return bool(self._changes)

    def old_value(self, name: str) -> Any:
        """Observed value of a changed attribute before the update."""
        return self._previous.get(name)

    def to_dict(self) -> dict[str, Any]:
        """The update body: changed attribute names mapped to their desired values."""
        return dict(self._changes)

    @property
    def summary(self) -> str:
        if not self._changes:
            return "no changes"
        return ", ".join(
            f"{name}: {self._previous.get(name)!r} -> {self._changes[name]!r}"
            for name in self.attributes
        )

    def __bool__(self) -> bool:
        return self.has_changes

    def __len__(self) -> int:
        return len(self._changes)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ChangeSet):
            return self._changes == other._changes
        if isinstance(other, Mapping):
            return self._changes == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        if not self._changes:
            return "<ChangeSet: no changes>"
        return f"<ChangeSet: {', '.join(self.attributes)}>"


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality for attribute values.

    Mappings compare recursively regardless of key order, sequences compare
    element-wise in order. Booleans never equal numbers.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def diff(
    kind: ResourceKind | str,
    desired: dict[str, Any],
    observed: dict[str, Any],
) -> ChangeSet:
    """Compute the minimal change-set that takes ``observed`` to ``desired``.

    Only attributes present in ``desired`` are compared; fields the server
    returns beyond the kind's declaration are ignored.

    Args:
        kind: The resource kind, or its registered name.
        desired: The configuration the caller wants.
        observed: The last-fetched remote representation.

    Returns:
        A ``ChangeSet`` of differing mutable attributes.

    Raises:
        RequiresReplacementError: A non-mutable attribute differs. The error
            names every such attribute.
    """
    kind = get_kind(kind)
    changes: dict[str, Any] = {}
    previous: dict[str, Any] = {}
    replace: list[str] = []

    for attr in kind.attributes:
        if attr.computed or attr.name not in desired:
            continue
        want = desired[attr.name]
        if attr.mutable:
            have = observed.get(attr.name)
            if attr.name not in observed or not values_equal(want, have):
                changes[attr.name] = want
                previous[attr.name] = have
        elif attr.name in observed and not values_equal(want, observed[attr.name]):
            replace.append(attr.name)

    if replace:
        raise RequiresReplacementError(
            f"Attributes cannot be updated in place: {', '.join(replace)}",
            attributes=replace,
            kind=kind.name,
        )
    return ChangeSet(changes, previous)
