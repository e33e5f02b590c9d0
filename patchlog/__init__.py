"""
patchlog - append-only structural version history for mutable records.

Every save of a record is turned into a change-set: an ordered list of
JSON-patch style operations that transforms the previous snapshot into the
new one. The change-set log is the source of truth; the live record is a
cache of the latest snapshot.

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │   Caller    │────▶│ VersionedCollection│──▶│ SaveOrchestrator │
    │ (API / CLI) │     │   (store glue)    │     │  diff + append   │
    └─────────────┘     └────────┬─────────┘     └────────┬─────────┘
                                 │                        │
                                 ▼                        ▼
                        ┌─────────────────┐     ┌──────────────────┐
                        │   RecordStore   │     │   ChangeSetLog   │
                        │  (live records) │     │ (append-only log)│
                        └─────────────────┘     └────────┬─────────┘
                                                         │
                                   ┌─────────────────────┼──────────────┐
                                   ▼                                    ▼
                            ┌──────────────┐                   ┌──────────────────┐
                            │VersionReader │                   │RollbackController│
                            │ replay 1..V  │                   │  undo one step   │
                            └──────────────┘                   └──────────────────┘

Invariants:
    - Versions per record are contiguous from 1 with no gaps
    - ChangeSet(V) applied to Snapshot(V-1) reproduces Snapshot(V)
    - Replaying change-sets 1..V from {} reconstructs Snapshot(V)
    - Only the highest change-set of a record is ever deleted

How to change safely:
    - Never rewrite stored change-sets, only append or drop the newest
    - Keep compute_diff deterministic (sorted key traversal)
    - Keep remove-of-missing-path tolerant so old history still replays
"""

from ._version import __version__
from .config import PatchlogConfig, RollbackStrategy, VersioningConfig
from .errors import (
    ApplyFailureError,
    InvalidVersionError,
    NoPreviousVersionError,
    PatchlogError,
    RecordNotFoundError,
    VersionConflictError,
)
from .log import ChangeSet, ChangeSetLog, ChangeSetLogRegistry
from .patch import PatchKind, PatchOp, apply_patch, compose, compute_diff
from .versioning import HistoryEngine, VersionedCollection

__all__ = [
    "__version__",
    # Config
    "PatchlogConfig",
    "VersioningConfig",
    "RollbackStrategy",
    # Errors
    "PatchlogError",
    "InvalidVersionError",
    "VersionConflictError",
    "NoPreviousVersionError",
    "RecordNotFoundError",
    "ApplyFailureError",
    # Patch model
    "PatchKind",
    "PatchOp",
    "compute_diff",
    "apply_patch",
    "compose",
    # Log
    "ChangeSet",
    "ChangeSetLog",
    "ChangeSetLogRegistry",
    # Facade
    "HistoryEngine",
    "VersionedCollection",
]
