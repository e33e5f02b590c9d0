"""
Error types for patchlog.

This module defines all exception types raised by the versioning core:
- PatchlogError: Base exception
- InvalidVersionError: Version argument outside [1, current]
- VersionConflictError: Change-set already exists at (parent_id, version)
- NoPreviousVersionError: Rollback found no eligible prior change-set
- RecordNotFoundError: Record vanished between read and write
- ApplyFailureError: Patch operation could not be applied
- LogError: Change-set log backend failure

Invariants:
    - All errors inherit from PatchlogError
    - Errors include context for debugging
    - None of these are retried inside the core
"""

from __future__ import annotations

from typing import Any


class PatchlogError(Exception):
    """Base exception for all patchlog errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "PATCHLOG_ERROR"
        self.details = details or {}


class InvalidVersionError(PatchlogError):
    """Requested version is outside [1, current].

    Raised when:
    - Target version is smaller than 1
    - Target version is larger than the record's current version
    - The record carries no version at all
    """

    def __init__(
        self,
        message: str,
        requested: Any = None,
        current: int | None = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_VERSION",
            details={"requested": requested, "current": current},
        )
        self.requested = requested
        self.current = current


class VersionConflictError(PatchlogError):
    """A change-set already exists for (parent_id, version), or the
    caller's version disagrees with the log.

    This is the optimistic concurrency signal: another writer appended
    the same version first, or the caller holds a stale record. Callers
    should reload the record and retry.
    """

    def __init__(
        self,
        parent_id: str,
        version: int,
        latest: int | None = None,
        message: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"parent_id": parent_id, "version": version}
        if latest is not None:
            details["latest"] = latest
        super().__init__(
            message or f"Change-set {version} already exists for record {parent_id}",
            code="VERSION_CONFLICT",
            details=details,
        )
        self.parent_id = parent_id
        self.version = version
        self.latest = latest


class NoPreviousVersionError(PatchlogError):
    """Rollback could not find a change-set below the current version."""

    def __init__(self, parent_id: str, version: int | None) -> None:
        super().__init__(
            "No previous version found.",
            code="NO_PREVIOUS_VERSION",
            details={"parent_id": parent_id, "version": version},
        )
        self.parent_id = parent_id
        self.version = version


class RecordNotFoundError(PatchlogError):
    """Record does not exist in the record store."""

    def __init__(self, record_id: str, collection: str | None = None) -> None:
        super().__init__(
            f"Record not found: {record_id}",
            code="RECORD_NOT_FOUND",
            details={"record_id": record_id, "collection": collection},
        )
        self.record_id = record_id
        self.collection = collection


class ApplyFailureError(PatchlogError):
    """A patch operation could not be applied.

    Raised when:
    - move/copy source or test target does not resolve
    - A test operation's value does not match
    - A list index is out of range or not an integer
    - The operation kind is unknown or the operation is malformed
    """

    def __init__(
        self,
        message: str,
        op: dict[str, Any] | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="APPLY_FAILURE",
            details={"op": op, "path": path},
        )
        self.op = op
        self.path = path


class LogError(PatchlogError):
    """Change-set log backend failure (storage, serialization)."""

    def __init__(self, message: str, log_name: str | None = None) -> None:
        super().__init__(message, code="LOG_ERROR", details={"log_name": log_name})
        self.log_name = log_name
