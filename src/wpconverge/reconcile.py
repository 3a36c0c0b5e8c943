"""Resource reconciliation - converge a remote resource to its desired state."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .diff import ChangeSet, diff
from .exceptions import (
    NotFoundError,
    ProtocolError,
    RequiresReplacementError,
    WPConvergeError,
)
from .schema import ResourceKind, get_kind

if TYPE_CHECKING:
    from pydantic import BaseModel

    from .client import ApiClient, ResourceClient

logger = logging.getLogger(__name__)


class State(StrEnum):
    """Lifecycle state of a resource instance as seen by the caller."""

    ABSENT = "absent"
    PRESENT = "present"


class Action(StrEnum):
    """What a reconciliation did, or would do."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "noop"


@dataclass
class ResourceInstance:
    """One remote resource while it is being reconciled.

    ``remote_id`` is bound once, when a create succeeds, and only cleared when
    the remote entity is gone (deleted, or reported missing by a read).
    """

    kind: ResourceKind
    desired: dict[str, Any]
    remote_id: str | None = None
    observed: dict[str, Any] | None = None

    @property
    def state(self) -> State:
        return State.ABSENT if self.remote_id is None else State.PRESENT

    def bind(self, remote_id: str, observed: dict[str, Any]) -> None:
        if self.remote_id is not None:
            raise RuntimeError(
                f"{self.kind.name} is already bound to {self.remote_id!r}"
            )
        self.remote_id = remote_id
        self.observed = observed

    def forget(self) -> None:
        self.remote_id = None
        self.observed = None


@dataclass
class ReconcileResult:
    """Outcome of one reconciler call.

    Attributes:
        kind: The resource kind that was reconciled.
        action: The remote operation attempted (``noop`` when none was).
        state: ``present`` when ``remote_id`` is set, otherwise ``absent``.
        remote_id: Identifier to persist, or None when the resource is absent.
        observed: Latest remote snapshot to persist for the next diff.
        changes: The change-set that was computed, when a diff ran.
        error: The failure, if any. Never raised by the reconciler itself.
        drifted: True when a read found the remote entity gone.
    """

    kind: ResourceKind
    action: Action
    state: State
    remote_id: str | None
    observed: dict[str, Any] | None
    changes: ChangeSet | None = None
    error: WPConvergeError | None = None
    drifted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_on_error(self) -> None:
        if self.error is not None:
            raise self.error

    def as_model(self) -> BaseModel | None:
        """The observed snapshot as the kind's typed model, when it has one."""
        if self.observed is None or self.kind.model is None:
            return None
        return self.kind.model.model_validate(self.observed)

    def __repr__(self) -> str:
        parts = [f"{self.kind.name} {self.action}", str(self.state)]
        if self.remote_id:
            parts.append(self.remote_id)
        if self.drifted:
            parts.append("drifted")
        if self.error is not None:
            parts.append(f"error={type(self.error).__name__}")
        return f"<ReconcileResult: {', '.join(parts)}>"


@dataclass
class Plan:
    """The action :meth:`Reconciler.reconcile` would take, computed offline."""

    kind: ResourceKind
    action: Action
    remote_id: str | None = None
    changes: ChangeSet | None = None
    replace_attributes: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Human-readable plan summary."""
        target = f"{self.kind.name} {self.remote_id}" if self.remote_id else self.kind.name
        if self.action == Action.UPDATE and self.changes is not None:
            return f"update {target}: {self.changes.summary}"
        if self.action == Action.REPLACE:
            return f"replace {target}: {', '.join(self.replace_attributes)} changed"
        if self.action == Action.READ:
            return f"read {target} before diffing"
        if self.action == Action.NOOP:
            return f"{target} is up to date"
        return f"{self.action} {target}"

    def __repr__(self) -> str:
        return f"<Plan: {self.summary()}>"


class Reconciler:
    """Drives create/read/update/delete calls to converge one resource at a time.

    The reconciler holds no state between calls: every method takes the
    identifier and last observed snapshot the caller persisted and returns the
    new ones in a :class:`ReconcileResult`. Remote failures are returned in
    ``ReconcileResult.error``, never retried.

    Usage::

        with ApiClient.from_env() as client:
            reconciler = Reconciler(client)
            result = reconciler.reconcile("site", {"account_id": "a1", "name": "blog"})
            result.raise_on_error()
            save(result.remote_id, result.observed)
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    # -- Planning --------------------------------------------------------------

    def plan(
        self,
        kind: ResourceKind | str,
        desired: dict[str, Any],
        remote_id: str | None = None,
        observed: dict[str, Any] | None = None,
    ) -> Plan:
        """Decide what :meth:`reconcile` would do, without any remote call.

        Raises:
            ValidationError: ``desired`` does not satisfy the kind's schema.
        """
        kind = get_kind(kind)
        kind.validate(desired)
        if remote_id is None:
            return Plan(kind, Action.CREATE, changes=ChangeSet(kind.payload(desired)))
        if observed is None:
            return Plan(kind, Action.READ, remote_id=remote_id)
        try:
            changes = diff(kind, desired, observed)
        except RequiresReplacementError as exc:
            return Plan(
                kind, Action.REPLACE, remote_id=remote_id, replace_attributes=exc.attributes
            )
        action = Action.UPDATE if changes else Action.NOOP
        return Plan(kind, action, remote_id=remote_id, changes=changes)

    # -- Orchestration-facing operations ---------------------------------------

    def reconcile(
        self,
        kind: ResourceKind | str,
        desired: dict[str, Any],
        remote_id: str | None = None,
        observed: dict[str, Any] | None = None,
        *,
        allow_replace: bool = False,
    ) -> ReconcileResult:
        """Converge the remote resource to ``desired``.

        Without ``remote_id`` the resource is created. With ``remote_id`` but no
        ``observed`` snapshot it is read first; a missing remote entity clears
        the identifier and the next call creates it. Otherwise the snapshot is
        diffed and an update is sent only when something mutable changed.

        Args:
            kind: Resource kind or its registered name.
            desired: Desired attributes.
            remote_id: Identifier persisted from a previous run.
            observed: Snapshot persisted from a previous run or a refresh.
            allow_replace: Delete and re-create when an immutable attribute
                changed, instead of returning ``RequiresReplacementError``.
        """
        instance = ResourceInstance(get_kind(kind), desired, remote_id, observed)
        try:
            instance.kind.validate(desired)
        except WPConvergeError as exc:
            exc.remote_id = remote_id
            return self._result(instance, Action.NOOP, error=exc)

        if instance.remote_id is None:
            return self._create(instance)

        if instance.observed is None:
            result = self._read(instance)
            if result.error is not None or instance.remote_id is None:
                return result

        try:
            changes = diff(instance.kind, desired, instance.observed)
        except RequiresReplacementError as exc:
            exc.remote_id = instance.remote_id
            if allow_replace:
                return self._replace(instance)
            logger.warning("%s", exc)
            return self._result(instance, Action.NOOP, error=exc)

        if not changes:
            logger.debug("%s %s is up to date", instance.kind.name, instance.remote_id)
            return self._result(instance, Action.NOOP, changes=changes)
        return self._update(instance, changes)

    def refresh(self, kind: ResourceKind | str, remote_id: str) -> ReconcileResult:
        """Read the current remote state for drift detection.

        A remote entity that no longer exists is reported as ``drifted`` with
        the identifier cleared, not as an error.
        """
        instance = ResourceInstance(get_kind(kind), {}, remote_id)
        return self._read(instance)

    def replace(
        self,
        kind: ResourceKind | str,
        remote_id: str,
        desired: dict[str, Any],
        observed: dict[str, Any] | None = None,
    ) -> ReconcileResult:
        """Delete the remote resource and create it again from ``desired``."""
        instance = ResourceInstance(get_kind(kind), desired, remote_id, observed)
        try:
            instance.kind.validate(desired)
        except WPConvergeError as exc:
            exc.remote_id = remote_id
            return self._result(instance, Action.NOOP, error=exc)

        if instance.observed is None:
            result = self._read(instance)
            if result.error is not None:
                return result
            if instance.remote_id is None:
                return self._create(instance, action=Action.REPLACE)
        return self._replace(instance)

    def destroy(
        self,
        kind: ResourceKind | str,
        remote_id: str,
        observed: dict[str, Any] | None = None,
    ) -> ReconcileResult:
        """Delete the remote resource. An already missing resource is a success."""
        instance = ResourceInstance(get_kind(kind), {}, remote_id, observed)
        if instance.observed is None:
            result = self._read(instance)
            if result.error is not None:
                return result
            if instance.remote_id is None:
                return self._result(instance, Action.DELETE, drifted=True)

        error = self._delete(instance)
        return self._result(instance, Action.DELETE, error=error)

    # -- State transitions -----------------------------------------------------

    def _resource(self, instance: ResourceInstance) -> ResourceClient:
        return self._client.resource(instance.kind)

    def _create(
        self, instance: ResourceInstance, action: Action = Action.CREATE
    ) -> ReconcileResult:
        kind = instance.kind
        logger.info("Creating %s", kind.name)
        try:
            observed = self._resource(instance).create(instance.desired)
        except WPConvergeError as exc:
            logger.warning("Create of %s failed: %s", kind.name, exc)
            return self._result(instance, action, error=exc)

        remote_id = observed.get(kind.id_attribute)
        if remote_id is None or remote_id == "":
            exc = ProtocolError(
                f"Create response is missing identifier {kind.id_attribute!r}",
                body=observed,
                kind=kind.name,
            )
            logger.error("%s", exc)
            return self._result(instance, action, error=exc)

        instance.bind(str(remote_id), observed)
        logger.info("Created %s %s", kind.name, instance.remote_id)
        return self._result(instance, action)

    def _read(self, instance: ResourceInstance) -> ReconcileResult:
        kind = instance.kind
        try:
            observed = self._resource(instance).read(instance.remote_id)
        except NotFoundError:
            logger.warning(
                "%s %s no longer exists remotely; clearing identifier",
                kind.name,
                instance.remote_id,
            )
            instance.forget()
            return self._result(instance, Action.READ, drifted=True)
        except WPConvergeError as exc:
            logger.warning("Read of %s %s failed: %s", kind.name, instance.remote_id, exc)
            return self._result(instance, Action.READ, error=exc)

        instance.observed = observed
        return self._result(instance, Action.READ)

    def _update(self, instance: ResourceInstance, changes: ChangeSet) -> ReconcileResult:
        kind = instance.kind
        logger.info(
            "Updating %s %s: %s", kind.name, instance.remote_id, ", ".join(changes.attributes)
        )
        try:
            observed = self._resource(instance).update(instance.remote_id, changes.to_dict())
        except NotFoundError:
            logger.warning(
                "%s %s no longer exists remotely; clearing identifier",
                kind.name,
                instance.remote_id,
            )
            instance.forget()
            return self._result(instance, Action.UPDATE, changes=changes, drifted=True)
        except WPConvergeError as exc:
            logger.warning("Update of %s %s failed: %s", kind.name, instance.remote_id, exc)
            return self._result(instance, Action.UPDATE, changes=changes, error=exc)

        instance.observed = observed
        return self._result(instance, Action.UPDATE, changes=changes)

    def _delete(self, instance: ResourceInstance) -> WPConvergeError | None:
        kind = instance.kind
        logger.info("Deleting %s %s", kind.name, instance.remote_id)
        try:
            self._resource(instance).delete(instance.remote_id)
        except NotFoundError:
            logger.debug("%s %s was already deleted", kind.name, instance.remote_id)
        except WPConvergeError as exc:
            logger.warning("Delete of %s %s failed: %s", kind.name, instance.remote_id, exc)
            return exc
        instance.forget()
        return None

    def _replace(self, instance: ResourceInstance) -> ReconcileResult:
        logger.info("Replacing %s %s", instance.kind.name, instance.remote_id)
        error = self._delete(instance)
        if error is not None:
            return self._result(instance, Action.REPLACE, error=error)
        return self._create(instance, action=Action.REPLACE)

    @staticmethod
    def _result(
        instance: ResourceInstance,
        action: Action,
        *,
        changes: ChangeSet | None = None,
        error: WPConvergeError | None = None,
        drifted: bool = False,
    ) -> ReconcileResult:
        return ReconcileResult(
            kind=instance.kind,
            action=action,
            state=instance.state,
            remote_id=instance.remote_id,
            observed=instance.observed,
            changes=changes,
            error=error,
            drifted=drifted,
        )
