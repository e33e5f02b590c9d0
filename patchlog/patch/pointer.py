"""
JSON pointer (RFC 6901) helpers.

Pointers address a location inside a snapshot tree:
    ""          the whole document
    "/name"     key "name" of the root mapping
    "/tags/0"   first element of the "tags" list
    "/a~1b"     key "a/b" ("~1" escapes "/", "~0" escapes "~")
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import ApplyFailureError


def escape_token(token: str) -> str:
    """Escape a single reference token."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    """Undo escape_token. Order matters: "~1" first, then "~0"."""
    return token.replace("~1", "/").replace("~0", "~")


def parse_pointer(pointer: str) -> list[str]:
    """Split a pointer into unescaped reference tokens.

    Raises:
        ApplyFailureError: If the pointer is not a string or does not
            start with "/" (the empty pointer is allowed).
    """
    if not isinstance(pointer, str):
        raise ApplyFailureError(f"Pointer must be a string, got {type(pointer).__name__}")
    if pointer == "":
        return []
    if not pointer.startswith("/"):
        raise ApplyFailureError(f"Invalid JSON pointer: {pointer!r}", path=pointer)
    return [unescape_token(token) for token in pointer[1:].split("/")]


def format_pointer(tokens: Sequence[object]) -> str:
    """Join reference tokens (keys or list indices) into a pointer."""
    return "".join("/" + escape_token(str(token)) for token in tokens)


def child_pointer(parent: str, token: object) -> str:
    """Pointer to `token` inside the location addressed by `parent`."""
    return parent + "/" + escape_token(str(token))


def is_prefix(prefix: str, pointer: str) -> bool:
    """Whether `pointer` addresses `prefix` itself or something below it."""
    a = parse_pointer(prefix)
    b = parse_pointer(pointer)
    return len(a) <= len(b) and b[: len(a)] == a
