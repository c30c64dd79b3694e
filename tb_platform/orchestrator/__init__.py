# Public surface of the orchestrator package.
from ._prefixes import generate_prefix, generate_all_prefixes, extend_prefix_ledger, build_prefixes
from ._state_store import SnapshotStore
from ._types import ChangeSet, SyncSummary
from .facade import Orchestrator

__all__ = [
    "Orchestrator",
    "SnapshotStore",
    "ChangeSet",
    "SyncSummary",
    "generate_prefix",
    "generate_all_prefixes",
    "extend_prefix_ledger",
    "build_prefixes",
]
