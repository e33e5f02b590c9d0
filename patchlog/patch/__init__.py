"""
Patch module for patchlog - structural diff, apply and compose.

This module handles:
- The PatchOp model (RFC 6902 style add/remove/replace/move/copy/test)
- JSON pointer parsing and formatting
- Computing a minimal, deterministic patch between two snapshots
- Applying patch sets and composing change-sets for replay

Invariants:
    - apply_patch(a, compute_diff(a, b)) == b for JSON-like trees
    - Diff output is deterministic for a given (before, after) pair
    - Removing a missing path is tolerated, everything else unresolvable fails
"""

from .apply import apply_patch, compose
from .diff import compute_diff
from .model import PatchKind, PatchOp, ops_from_dicts, ops_to_dicts
from .pointer import format_pointer, parse_pointer

__all__ = [
    "PatchKind",
    "PatchOp",
    "ops_to_dicts",
    "ops_from_dicts",
    "compute_diff",
    "apply_patch",
    "compose",
    "parse_pointer",
    "format_pointer",
]
