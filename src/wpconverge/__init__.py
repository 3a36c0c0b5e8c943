"""wpconverge - declarative reconciliation of WP Engine resources."""

__version__ = "0.1.0"

from .schema import Attribute, ResourceKind, attributes_of, get_kind, register_kind
from .diff import ChangeSet, diff
from .reconcile import Action, Plan, ReconcileResult, Reconciler, ResourceInstance, State
from .config import Settings
from .client import ApiClient, ResourceClient

__all__ = [
    "Attribute",
    "ResourceKind",
    "attributes_of",
    "get_kind",
    "register_kind",
    "ChangeSet",
    "diff",
    "Action",
    "Plan",
    "ReconcileResult",
    "Reconciler",
    "ResourceInstance",
    "State",
    "Settings",
    "ApiClient",
    "ResourceClient",
]
