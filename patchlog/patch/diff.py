"""
Structural diff between two snapshots.

compute_diff walks both trees and emits the operations that turn `before`
into `after`:
- mapping keys only in `before` become remove ops (sorted key order)
- mapping keys only in `after` become add ops (sorted key order)
- keys in both recurse when both values are containers of the same kind,
  otherwise a differing value becomes a replace op
- lists compare index by index; surplus trailing elements are removed
  from the highest index down, new trailing elements are added in order

There is no move detection. Output depends only on the two inputs, never on
dict insertion order.

Round-trip guarantee (JSON-like trees):
    apply_patch(before, compute_diff(before, after)) == after
"""

from __future__ import annotations

import copy
from typing import Any

from .model import PatchOp
from .pointer import child_pointer


def _same(a: Any, b: Any) -> bool:
    # 1 == True == 1.0 in Python; a snapshot treats them as distinct values
    return type(a) is type(b) and a == b


def _sort_keys(keys: Any) -> list[Any]:
    return sorted(keys, key=lambda k: (str(type(k).__name__), str(k)))


def _diff_value(before: Any, after: Any, path: str, ops: list[PatchOp]) -> None:
    if isinstance(before, dict) and isinstance(after, dict):
        _diff_mapping(before, after, path, ops)
    elif isinstance(before, list) and isinstance(after, list):
        _diff_list(before, after, path, ops)
    elif not _same(before, after):
        ops.append(PatchOp.replace(path, copy.deepcopy(after)))


def _diff_mapping(before: dict, after: dict, path: str, ops: list[PatchOp]) -> None:
    for key in _sort_keys(before.keys() - after.keys()):
        ops.append(PatchOp.remove(child_pointer(path, key)))

    for key in _sort_keys(after.keys()):
        target = child_pointer(path, key)
        if key not in before:
            ops.append(PatchOp.add(target, copy.deepcopy(after[key])))
        else:
            _diff_value(before[key], after[key], target, ops)


def _diff_list(before: list, after: list, path: str, ops: list[PatchOp]) -> None:
    common = min(len(before), len(after))

    for index in range(common):
        _diff_value(before[index], after[index], child_pointer(path, index), ops)

    for index in range(len(before) - 1, common - 1, -1):
        ops.append(PatchOp.remove(child_pointer(path, index)))

    for index in range(common, len(after)):
        ops.append(PatchOp.add(child_pointer(path, index), copy.deepcopy(after[index])))


def compute_diff(before: Any, after: Any) -> list[PatchOp]:
    """Compute the ordered patch set transforming `before` into `after`.

    Args:
        before: Earlier snapshot (None is treated as the empty value {})
        after: Later snapshot (None is treated as the empty value {})

    Returns:
        List of PatchOp; empty when the snapshots are equal

    Example:
        >>> compute_diff({"name": "A"}, {"name": "B"})
        [PatchOp(kind=<PatchKind.REPLACE: 'replace'>, path='/name', value='B', from_path=None)]
    """
    ops: list[PatchOp] = []
    _diff_value({} if before is None else before, {} if after is None else after, "", ops)
    return ops
