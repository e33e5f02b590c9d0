"""
Unit tests for JSON pointer helpers.
"""

import pytest

from patchlog.errors import ApplyFailureError
from patchlog.patch.pointer import (
    child_pointer,
    escape_token,
    format_pointer,
    is_prefix,
    parse_pointer,
    unescape_token,
)


class TestParsePointer:
    """Tests for parse_pointer."""

    def test_empty_pointer_is_root(self):
        assert parse_pointer("") == []

    def test_splits_tokens(self):
        assert parse_pointer("/tags/0") == ["tags", "0"]

    def test_unescapes_tokens(self):
        assert parse_pointer("/a~1b/~0c") == ["a/b", "~c"]

    def test_empty_token_is_a_key(self):
        assert parse_pointer("/") == [""]

    def test_missing_leading_slash_rejected(self):
        with pytest.raises(ApplyFailureError):
            parse_pointer("name")

    def test_non_string_rejected(self):
        with pytest.raises(ApplyFailureError):
            parse_pointer(3)


class TestFormatPointer:
    """Tests for pointer formatting and escapes."""

    def test_escape_order(self):
        # "~1" in a key must survive as "~01", not turn into "/"
        assert escape_token("~1") == "~01"
        assert unescape_token("~01") == "~1"

    def test_format_mixed_tokens(self):
        assert format_pointer(["a/b", 0, "c"]) == "/a~1b/0/c"

    def test_format_root(self):
        assert format_pointer([]) == ""

    def test_child_pointer(self):
        assert child_pointer("", "name") == "/name"
        assert child_pointer("/tags", 2) == "/tags/2"

    def test_format_parse_inverse(self):
        tokens = ["x~y", "a/b", ""]
        assert parse_pointer(format_pointer(tokens)) == tokens


class TestIsPrefix:
    """Tests for is_prefix."""

    def test_same_pointer(self):
        assert is_prefix("/a", "/a")

    def test_child(self):
        assert is_prefix("/a", "/a/b")

    def test_root_is_prefix_of_everything(self):
        assert is_prefix("", "/a/b")

    def test_sibling_with_shared_text_is_not_prefix(self):
        assert not is_prefix("/a", "/ab")
