"""
Unit tests for the patch operation model.

Tests cover:
- Constructors and validation
- RFC 6902 dictionary form
- Rejection of malformed operations
"""

import pytest

from patchlog.errors import ApplyFailureError
from patchlog.patch.model import PatchKind, PatchOp, ops_from_dicts, ops_to_dicts


class TestPatchOp:
    """Tests for PatchOp."""

    def test_constructors(self):
        assert PatchOp.add("/a", 1) == PatchOp(PatchKind.ADD, "/a", 1)
        assert PatchOp.remove("/a").value is None
        assert PatchOp.move("/a", "/b").from_path == "/a"
        assert PatchOp.copy("/a", "/b").path == "/b"

    def test_move_requires_from(self):
        with pytest.raises(ApplyFailureError):
            PatchOp(PatchKind.MOVE, "/b")

    def test_add_rejects_from(self):
        with pytest.raises(ApplyFailureError):
            PatchOp(PatchKind.ADD, "/b", 1, from_path="/a")

    def test_kind_is_str_enum(self):
        assert PatchKind.REPLACE == "replace"

    def test_frozen(self):
        op = PatchOp.add("/a", 1)
        with pytest.raises(AttributeError):
            op.path = "/b"

    def test_str(self):
        assert str(PatchOp.replace("/name", "B")) == "replace /name 'B'"
        assert str(PatchOp.move("/a", "/b")) == "move /a -> /b"
        assert str(PatchOp.remove("/a")) == "remove /a"


class TestPatchOpSerialization:
    """Tests for to_dict/from_dict."""

    def test_to_dict_value_kinds(self):
        assert PatchOp.replace("/name", "B").to_dict() == {
            "op": "replace",
            "path": "/name",
            "value": "B",
        }

    def test_to_dict_keeps_null_value(self):
        assert PatchOp.add("/a", None).to_dict() == {"op": "add", "path": "/a", "value": None}

    def test_to_dict_remove_has_no_value(self):
        assert PatchOp.remove("/a").to_dict() == {"op": "remove", "path": "/a"}

    def test_to_dict_move(self):
        assert PatchOp.move("/a", "/b").to_dict() == {"op": "move", "path": "/b", "from": "/a"}

    def test_from_dict(self):
        op = PatchOp.from_dict({"op": "copy", "from": "/a", "path": "/b"})
        assert op == PatchOp.copy("/a", "/b")

    def test_unknown_op_rejected(self):
        with pytest.raises(ApplyFailureError) as exc_info:
            PatchOp.from_dict({"op": "merge", "path": "/a"})
        assert exc_info.value.code == "APPLY_FAILURE"

    def test_missing_path_rejected(self):
        with pytest.raises(ApplyFailureError):
            PatchOp.from_dict({"op": "remove"})

    def test_missing_value_rejected(self):
        with pytest.raises(ApplyFailureError):
            PatchOp.from_dict({"op": "add", "path": "/a"})

    def test_non_mapping_rejected(self):
        with pytest.raises(ApplyFailureError):
            PatchOp.from_dict(["add", "/a", 1])

    def test_patch_set_helpers(self):
        ops = [PatchOp.add("/a", 1), PatchOp.remove("/b")]
        assert ops_from_dicts(ops_to_dicts(ops)) == ops
