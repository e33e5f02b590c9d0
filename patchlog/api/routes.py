"""
Record history API routes.

Every route is scoped to a collection. Saving goes through the
VersionedCollection, so each write produces a change-set unless the
caller asks for versioning to be suppressed.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from ..errors import RecordNotFoundError
from ..versioning import HistoryEngine, VersionedCollection
from .config import ApiSettings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Records"])


# =============================================================================
# Request/Response Models
# =============================================================================


class SaveRecordRequest(BaseModel):
    """Save a full record state."""
    record: dict[str, Any] = Field(..., description="Full record state; id generated if absent")
    metadata: Any = Field(None, description="Opaque value stored on the change-set")
    suppress_versioning: bool = Field(False, description="Persist without recording history")


class UpdateRecordRequest(BaseModel):
    """Merge top-level fields into a stored record."""
    changes: dict[str, Any] = Field(..., description="Fields to set")
    metadata: Any = Field(None, description="Opaque value stored on the change-set")


class ChangeSetResponse(BaseModel):
    """One stored change-set."""
    parent_id: str
    version: int
    operations: list[dict[str, Any]]
    metadata: Any = None
    created_at_ms: int | None = None


class RollbackResponse(BaseModel):
    """Result of a rollback."""
    record: dict[str, Any] | None
    deleted: bool
    version: int | None = None
    message: str | None = None


class VerifyResponse(BaseModel):
    """Result of a history audit."""
    record_id: str
    versions: list[int]
    record_version: int | None
    contiguous: bool
    replay_matches: bool | None
    ok: bool
    problems: list[str] = Field(default_factory=list)


# =============================================================================
# Dependencies
# =============================================================================


def get_engine(request: Request) -> HistoryEngine:
    """Get the history engine from app state."""
    return request.app.state.engine


def get_settings(request: Request) -> ApiSettings:
    """Get settings from app state."""
    return request.app.state.settings


async def get_collection(
    collection: str,
    engine: HistoryEngine = Depends(get_engine),
) -> VersionedCollection:
    """Resolve the collection named in the path."""
    return await engine.collection(collection)


async def _load(records: VersionedCollection, record_id: str) -> dict[str, Any]:
    record = await records.get(record_id)
    if record is None:
        raise RecordNotFoundError(record_id, collection=records.name)
    return record


# =============================================================================
# Record Endpoints
# =============================================================================


@router.post("/collections/{collection}/records", status_code=201)
async def save_record(
    request: SaveRecordRequest,
    records: VersionedCollection = Depends(get_collection),
) -> dict[str, Any]:
    """Save a full record state, appending a change-set."""
    return await records.save(
        request.record,
        metadata=request.metadata,
        suppress_versioning=request.suppress_versioning,
    )


@router.get("/collections/{collection}/records/{record_id}")
async def get_record(
    record_id: str,
    records: VersionedCollection = Depends(get_collection),
) -> dict[str, Any]:
    """Get the live record."""
    return await _load(records, record_id)


@router.patch("/collections/{collection}/records/{record_id}")
async def update_record(
    record_id: str,
    request: UpdateRecordRequest,
    records: VersionedCollection = Depends(get_collection),
) -> dict[str, Any]:
    """Merge fields into a record and save it as a new version."""
    return await records.update_one(record_id, request.changes, metadata=request.metadata)


@router.get("/collections/{collection}/records/{record_id}/versions/{version}")
async def get_record_version(
    record_id: str,
    version: int,
    records: VersionedCollection = Depends(get_collection),
) -> dict[str, Any]:
    """Reconstruct a historical snapshot of a record."""
    record = await _load(records, record_id)
    return await records.get_version(record, version)


@router.post(
    "/collections/{collection}/records/{record_id}/rollback",
    response_model=RollbackResponse,
)
async def rollback_record(
    record_id: str,
    records: VersionedCollection = Depends(get_collection),
) -> RollbackResponse:
    """Undo the record's most recent version."""
    record = await _load(records, record_id)
    result = await records.rollback(record)
    return RollbackResponse(
        record=result.record,
        deleted=result.deleted,
        version=result.version,
        message=result.message,
    )


@router.get(
    "/collections/{collection}/records/{record_id}/changesets",
    response_model=list[ChangeSetResponse],
)
async def list_change_sets(
    record_id: str,
    records: VersionedCollection = Depends(get_collection),
    settings: ApiSettings = Depends(get_settings),
) -> list[ChangeSetResponse]:
    """List a record's change-sets, oldest first."""
    change_sets = await records.list_change_sets(record_id)
    if settings.max_change_sets:
        change_sets = change_sets[: settings.max_change_sets]
    return [ChangeSetResponse(**cs.to_dict()) for cs in change_sets]


@router.get(
    "/collections/{collection}/records/{record_id}/verify",
    response_model=VerifyResponse,
)
async def verify_record(
    record_id: str,
    records: VersionedCollection = Depends(get_collection),
) -> VerifyResponse:
    """Audit a record's history against its live state."""
    report = await records.verify(record_id)
    if not report.versions and await records.get(record_id) is None:
        raise RecordNotFoundError(record_id, collection=records.name)
    return VerifyResponse(**report.to_dict())
