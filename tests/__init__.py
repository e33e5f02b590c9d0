"""
patchlog test suite.

This package contains:
- unit/: Unit tests (patch model, diff/apply, logs, stores, versioning core)
- integration/: Integration tests (collections on memory and SQLite, HTTP, CLI)
"""
