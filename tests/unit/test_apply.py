"""
Unit tests for patch application.

Tests cover:
- Upsert semantics for add/replace
- Tolerant remove
- List indices
- move/copy/test
- Composition of change-sets
"""

import pytest

from patchlog.errors import ApplyFailureError
from patchlog.log.base import ChangeSet
from patchlog.patch import PatchOp, apply_patch, compose


class TestApplyAddReplace:
    """Tests for add and replace."""

    def test_base_not_mutated(self):
        base = {"a": {"b": 1}}
        result = apply_patch(base, [PatchOp.replace("/a/b", 2)])
        assert result == {"a": {"b": 2}}
        assert base == {"a": {"b": 1}}

    def test_none_base_is_empty(self):
        assert apply_patch(None, [PatchOp.add("/a", 1)]) == {"a": 1}

    def test_add_creates_intermediate_mappings(self):
        assert apply_patch({}, [PatchOp.add("/a/b/c", 1)]) == {"a": {"b": {"c": 1}}}

    def test_replace_upserts_missing_key(self):
        assert apply_patch({}, [PatchOp.replace("/x", 1)]) == {"x": 1}

    def test_replace_root(self):
        assert apply_patch({"a": 1}, [PatchOp.replace("", [1, 2])]) == [1, 2]

    def test_ops_apply_in_order(self):
        ops = [PatchOp.add("/a", 1), PatchOp.replace("/a", 2), PatchOp.remove("/a")]
        assert apply_patch({}, ops) == {}

    def test_value_is_copied_into_result(self):
        value = {"k": [1]}
        result = apply_patch({}, [PatchOp.add("/v", value)])
        value["k"].append(2)
        assert result == {"v": {"k": [1]}}

    def test_accepts_dict_operations(self):
        ops = [{"op": "add", "path": "/a", "value": 1}]
        assert apply_patch({}, ops) == {"a": 1}

    def test_traversal_through_scalar_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({"a": 1}, [PatchOp.add("/a/b", 2)])

    def test_deep_traversal_through_scalar_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({"a": 1}, [PatchOp.add("/a/b/c", 2)])


class TestApplyLists:
    """Tests for list targets."""

    def test_add_inserts(self):
        assert apply_patch({"l": [1, 3]}, [PatchOp.add("/l/1", 2)]) == {"l": [1, 2, 3]}

    def test_add_dash_appends(self):
        assert apply_patch({"l": [1]}, [PatchOp.add("/l/-", 2)]) == {"l": [1, 2]}

    def test_add_at_len_appends(self):
        assert apply_patch({"l": [1]}, [PatchOp.add("/l/1", 2)]) == {"l": [1, 2]}

    def test_replace_overwrites(self):
        assert apply_patch({"l": [1, 2]}, [PatchOp.replace("/l/0", 9)]) == {"l": [9, 2]}

    def test_replace_at_len_appends(self):
        assert apply_patch({"l": [1]}, [PatchOp.replace("/l/1", 2)]) == {"l": [1, 2]}

    def test_remove_index(self):
        assert apply_patch({"l": [1, 2, 3]}, [PatchOp.remove("/l/1")]) == {"l": [1, 3]}

    @pytest.mark.parametrize("token", ["5", "01", "x", "-1", "\u00b2", "\u0661"])
    def test_bad_index_fails(self, token):
        with pytest.raises(ApplyFailureError):
            apply_patch({"l": [1, 2]}, [PatchOp.add(f"/l/{token}", 0)])

    @pytest.mark.parametrize("token", ["\u00b2", "01"])
    def test_replace_bad_index_fails(self, token):
        with pytest.raises(ApplyFailureError):
            apply_patch({"a": [1]}, [PatchOp.replace(f"/a/{token}", 0)])


class TestApplyRemove:
    """remove is tolerant of missing paths."""

    def test_missing_key_is_noop(self):
        assert apply_patch({"a": 1}, [PatchOp.remove("/b")]) == {"a": 1}

    def test_missing_intermediate_is_noop(self):
        assert apply_patch({"a": 1}, [PatchOp.remove("/x/y")]) == {"a": 1}

    def test_out_of_range_index_is_noop(self):
        assert apply_patch({"l": [1]}, [PatchOp.remove("/l/4")]) == {"l": [1]}

    @pytest.mark.parametrize("token", ["\u00b2", "01", "x"])
    def test_non_index_token_is_noop(self, token):
        assert apply_patch({"l": [1, 2]}, [PatchOp.remove(f"/l/{token}")]) == {"l": [1, 2]}

    def test_remove_root(self):
        assert apply_patch({"a": 1}, [PatchOp.remove("")]) == {}


class TestApplyMoveCopyTest:
    """Tests for move, copy and test."""

    def test_move(self):
        assert apply_patch({"a": 1}, [PatchOp.move("/a", "/b")]) == {"b": 1}

    def test_move_within_list(self):
        result = apply_patch({"l": ["a", "b", "c"]}, [PatchOp.move("/l/0", "/l/2")])
        assert result == {"l": ["b", "c", "a"]}

    def test_move_to_same_path_is_noop(self):
        assert apply_patch({"a": 1}, [PatchOp.move("/a", "/a")]) == {"a": 1}

    def test_move_missing_source_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({}, [PatchOp.move("/a", "/b")])

    def test_move_into_own_child_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({"a": {"b": 1}}, [PatchOp.move("/a", "/a/c")])

    def test_copy_is_independent(self):
        result = apply_patch({"a": {"x": 1}}, [PatchOp.copy("/a", "/b")])
        assert result == {"a": {"x": 1}, "b": {"x": 1}}
        assert result["a"] is not result["b"]

    def test_copy_missing_source_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({}, [PatchOp.copy("/a", "/b")])

    def test_test_passes(self):
        assert apply_patch({"a": [1]}, [PatchOp.test("/a", [1])]) == {"a": [1]}

    def test_test_mismatch_fails(self):
        with pytest.raises(ApplyFailureError) as exc_info:
            apply_patch({"a": 1}, [PatchOp.test("/a", 2)])
        assert exc_info.value.path == "/a"

    def test_test_is_type_strict(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({"a": 1}, [PatchOp.test("/a", True)])

    def test_test_missing_path_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({}, [PatchOp.test("/a", None)])

    def test_unknown_dict_op_fails(self):
        with pytest.raises(ApplyFailureError):
            apply_patch({}, [{"op": "increment", "path": "/a"}])


class TestCompose:
    """Tests for compose."""

    def test_concatenates_in_given_order(self):
        change_sets = [
            ChangeSet("r1", 1, (PatchOp.add("/name", "A"),)),
            ChangeSet("r1", 2, (PatchOp.replace("/name", "B"), PatchOp.add("/n", 1))),
        ]
        ops = compose(change_sets)
        assert ops == [
            PatchOp.add("/name", "A"),
            PatchOp.replace("/name", "B"),
            PatchOp.add("/n", 1),
        ]
        assert apply_patch({}, ops) == {"name": "B", "n": 1}

    def test_empty(self):
        assert compose([]) == []
