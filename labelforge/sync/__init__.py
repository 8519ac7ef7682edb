"""Reconciliation of label trees against mailbox providers."""

from .engine import FailedNode, SyncEngine, SyncResult
from .reconfigure import (
    ReconfigurationDiff,
    ReconfigurationManager,
    ReconfigurationReport,
    RemovalPolicy,
    diff_teams,
)
from .retry import RetryPolicy
from .state import IdentifierMap, IdentifierMapStore, LabelMapEntry

__all__ = [
    "FailedNode",
    "IdentifierMap",
    "IdentifierMapStore",
    "LabelMapEntry",
    "ReconfigurationDiff",
    "ReconfigurationManager",
    "ReconfigurationReport",
    "RemovalPolicy",
    "RetryPolicy",
    "SyncEngine",
    "SyncResult",
    "diff_teams",
]
