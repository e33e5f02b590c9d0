"""
Patch operation model.

A PatchOp is a single structural operation on a snapshot tree; an ordered
list of them is a patch set. The wire form follows RFC 6902:

    {"op": "replace", "path": "/name", "value": "B"}
    {"op": "move", "from": "/old", "path": "/new"}

Invariants:
    - PatchKind is a closed set; unknown kinds are rejected at parse time
    - move/copy always carry from_path, other kinds never do
    - Order within a patch set is significant and preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ApplyFailureError


class PatchKind(str, Enum):
    """Kinds of patch operation."""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    MOVE = "move"
    COPY = "copy"
    TEST = "test"


_VALUE_KINDS = frozenset({PatchKind.ADD, PatchKind.REPLACE, PatchKind.TEST})
_FROM_KINDS = frozenset({PatchKind.MOVE, PatchKind.COPY})


@dataclass(frozen=True)
class PatchOp:
    """A single patch operation.

    Attributes:
        kind: Operation kind
        path: JSON pointer to the target location
        value: Payload for add/replace/test (None is a valid JSON null)
        from_path: Source pointer for move/copy
    """

    kind: PatchKind
    path: str
    value: Any = None
    from_path: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.path, str):
            raise ApplyFailureError("Patch path must be a string", path=repr(self.path))
        if self.kind in _FROM_KINDS and self.from_path is None:
            raise ApplyFailureError(f"'{self.kind.value}' requires a 'from' pointer", path=self.path)
        if self.kind not in _FROM_KINDS and self.from_path is not None:
            raise ApplyFailureError(f"'{self.kind.value}' does not take a 'from' pointer", path=self.path)

    @classmethod
    def add(cls, path: str, value: Any) -> PatchOp:
        return cls(PatchKind.ADD, path, value)

    @classmethod
    def remove(cls, path: str) -> PatchOp:
        return cls(PatchKind.REMOVE, path)

    @classmethod
    def replace(cls, path: str, value: Any) -> PatchOp:
        return cls(PatchKind.REPLACE, path, value)

    @classmethod
    def move(cls, from_path: str, path: str) -> PatchOp:
        return cls(PatchKind.MOVE, path, from_path=from_path)

    @classmethod
    def copy(cls, from_path: str, path: str) -> PatchOp:
        return cls(PatchKind.COPY, path, from_path=from_path)

    @classmethod
    def test(cls, path: str, value: Any) -> PatchOp:
        return cls(PatchKind.TEST, path, value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 6902 dictionary form."""
        data: dict[str, Any] = {"op": self.kind.value, "path": self.path}
        if self.kind in _VALUE_KINDS:
            data["value"] = self.value
        if self.from_path is not None:
            data["from"] = self.from_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatchOp:
        """Create from RFC 6902 dictionary form.

        Raises:
            ApplyFailureError: If the op kind is unknown or required
                members are missing
        """
        if not isinstance(data, dict):
            raise ApplyFailureError(f"Patch operation must be an object, got {type(data).__name__}")
        try:
            kind = PatchKind(data.get("op"))
        except ValueError:
            raise ApplyFailureError(f"Unknown patch operation: {data.get('op')!r}", op=data)
        if "path" not in data:
            raise ApplyFailureError("Patch operation is missing 'path'", op=data)
        if kind in _VALUE_KINDS and "value" not in data:
            raise ApplyFailureError(f"'{kind.value}' is missing 'value'", op=data)
        return cls(
            kind=kind,
            path=data["path"],
            value=data.get("value"),
            from_path=data.get("from"),
        )

    def __str__(self) -> str:
        if self.from_path is not None:
            return f"{self.kind.value} {self.from_path} -> {self.path}"
        if self.kind in _VALUE_KINDS:
            return f"{self.kind.value} {self.path} {self.value!r}"
        return f"{self.kind.value} {self.path}"


def ops_to_dicts(ops: list[PatchOp]) -> list[dict[str, Any]]:
    """Serialize a patch set."""
    return [op.to_dict() for op in ops]


def ops_from_dicts(data: list[dict[str, Any]]) -> list[PatchOp]:
    """Parse a patch set."""
    return [PatchOp.from_dict(item) for item in data]
