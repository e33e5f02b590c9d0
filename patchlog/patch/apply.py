"""
Patch application and composition.

apply_patch runs operations strictly in order against an intermediate copy
of the base snapshot. Semantics differ from strict RFC 6902 in two ways,
both needed so old change-sets replay against evolved records:
- add/replace upsert, creating missing intermediate mappings
- remove of a path that does not exist is a no-op

Invariants:
    - The base snapshot is never mutated
    - Every PatchKind has exactly one handler in _HANDLERS
    - move/copy/test against an unresolvable path raise ApplyFailureError

How to change safely:
    - Adding a PatchKind requires a handler here and a case in the diff tests
    - Keep remove tolerant; stored history depends on it
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Iterable
from typing import Any, TYPE_CHECKING

from ..errors import ApplyFailureError
from .model import PatchKind, PatchOp
from .pointer import is_prefix, parse_pointer

if TYPE_CHECKING:
    from ..log.base import ChangeSet

_MISSING = object()

# ASCII decimal without leading zeros; str.isdigit also accepts "²"
_INDEX_RE = re.compile(r"^(0|[1-9][0-9]*)\Z")


def _is_index(token: str) -> bool:
    return _INDEX_RE.match(token) is not None


def _list_index(container: list, token: str, path: str, allow_end: bool) -> int:
    """Resolve a list reference token to an index.

    "-" and len(container) address the slot past the end, which is only
    valid when allow_end is set.
    """
    if token == "-":
        index = len(container)
    elif _is_index(token):
        index = int(token)
    else:
        raise ApplyFailureError(f"Invalid list index {token!r}", path=path)

    upper = len(container) if allow_end else len(container) - 1
    if index > upper:
        raise ApplyFailureError(f"List index {index} out of range", path=path)
    return index


def _lookup(doc: Any, tokens: list[str]) -> Any:
    """Return the value at tokens, or _MISSING if any step is absent."""
    current = doc
    for token in tokens:
        if isinstance(current, dict):
            if token not in current:
                return _MISSING
            current = current[token]
        elif isinstance(current, list):
            if not _is_index(token):
                return _MISSING
            index = int(token)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _parent_for_write(doc: Any, tokens: list[str], path: str) -> Any:
    """Walk to the container holding the last token, creating mappings."""
    current = doc
    for token in tokens[:-1]:
        if isinstance(current, dict):
            if token not in current:
                current[token] = {}
            current = current[token]
        elif isinstance(current, list):
            current = current[_list_index(current, token, path, allow_end=False)]
        else:
            raise ApplyFailureError(
                f"Cannot traverse into {type(current).__name__}", path=path
            )
    return current


def _write(doc: Any, path: str, value: Any, insert: bool) -> Any:
    tokens = parse_pointer(path)
    if not tokens:
        return value

    parent = _parent_for_write(doc, tokens, path)
    token = tokens[-1]
    if isinstance(parent, dict):
        parent[token] = value
    elif isinstance(parent, list):
        index = _list_index(parent, token, path, allow_end=True)
        if insert or index == len(parent):
            parent.insert(index, value)
        else:
            parent[index] = value
    else:
        raise ApplyFailureError(f"Cannot write into {type(parent).__name__}", path=path)
    return doc


def _remove(doc: Any, path: str) -> Any:
    tokens = parse_pointer(path)
    if not tokens:
        return {}

    parent = _lookup(doc, tokens[:-1])
    token = tokens[-1]
    if isinstance(parent, dict):
        parent.pop(token, None)
    elif isinstance(parent, list):
        if _is_index(token) and int(token) < len(parent):
            del parent[int(token)]
    return doc


def _read(doc: Any, path: str, op: PatchOp) -> Any:
    value = _lookup(doc, parse_pointer(path))
    if value is _MISSING:
        raise ApplyFailureError(f"Path does not exist: {path}", op=op.to_dict(), path=path)
    return value


def _apply_add(doc: Any, op: PatchOp) -> Any:
    return _write(doc, op.path, copy.deepcopy(op.value), insert=True)


def _apply_replace(doc: Any, op: PatchOp) -> Any:
    return _write(doc, op.path, copy.deepcopy(op.value), insert=False)


def _apply_remove(doc: Any, op: PatchOp) -> Any:
    return _remove(doc, op.path)


def _apply_move(doc: Any, op: PatchOp) -> Any:
    assert op.from_path is not None
    if op.from_path == op.path:
        _read(doc, op.from_path, op)
        return doc
    if is_prefix(op.from_path, op.path):
        raise ApplyFailureError(
            "Cannot move a location into one of its children",
            op=op.to_dict(),
            path=op.path,
        )
    value = _read(doc, op.from_path, op)
    doc = _remove(doc, op.from_path)
    return _write(doc, op.path, value, insert=True)


def _apply_copy(doc: Any, op: PatchOp) -> Any:
    assert op.from_path is not None
    value = copy.deepcopy(_read(doc, op.from_path, op))
    return _write(doc, op.path, value, insert=True)


def _apply_test(doc: Any, op: PatchOp) -> Any:
    actual = _read(doc, op.path, op)
    if type(actual) is not type(op.value) or actual != op.value:
        raise ApplyFailureError(
            f"Test failed at {op.path}: expected {op.value!r}, found {actual!r}",
            op=op.to_dict(),
            path=op.path,
        )
    return doc


_HANDLERS: dict[PatchKind, Callable[[Any, PatchOp], Any]] = {
    PatchKind.ADD: _apply_add,
    PatchKind.REMOVE: _apply_remove,
    PatchKind.REPLACE: _apply_replace,
    PatchKind.MOVE: _apply_move,
    PatchKind.COPY: _apply_copy,
    PatchKind.TEST: _apply_test,
}


def apply_patch(base: Any, ops: Iterable[PatchOp | dict[str, Any]]) -> Any:
    """Apply a patch set to a copy of `base`.

    Args:
        base: Snapshot to start from (None is treated as {})
        ops: Patch operations, as PatchOp or RFC 6902 dictionaries

    Returns:
        The patched snapshot

    Raises:
        ApplyFailureError: If an operation is malformed or cannot be applied
    """
    doc = copy.deepcopy({} if base is None else base)
    for raw in ops:
        op = raw if isinstance(raw, PatchOp) else PatchOp.from_dict(raw)
        handler = _HANDLERS.get(op.kind)
        if handler is None:
            raise ApplyFailureError(f"Unsupported patch operation: {op.kind!r}", path=op.path)
        doc = handler(doc, op)
    return doc


def compose(change_sets: Iterable[ChangeSet]) -> list[PatchOp]:
    """Concatenate the operations of change-sets in the order given.

    Callers pass change-sets in ascending version order; replaying the
    result from {} then yields the snapshot at the last version.
    """
    ops: list[PatchOp] = []
    for change_set in change_sets:
        ops.extend(change_set.operations)
    return ops
