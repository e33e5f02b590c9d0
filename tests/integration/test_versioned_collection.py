"""
Integration tests for VersionedCollection and HistoryEngine.

Runs the full save / read / rollback lifecycle against both storage
backends.

Tests cover:
- Create, update, historical read, rollback to v1, rollback to nothing
- Backfill of records written before versioning
- update_one, suppressed saves, metadata and auditing
"""

import tempfile

import pytest

from patchlog.config import PatchlogConfig, StorageBackend, StorageConfig, VersioningConfig
from patchlog.errors import (
    InvalidVersionError,
    NoPreviousVersionError,
    RecordNotFoundError,
    VersionConflictError,
)
from patchlog.log import SqliteChangeSetLog
from patchlog.patch import PatchOp, apply_patch, compose
from patchlog.versioning import HistoryEngine


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture(params=[StorageBackend.MEMORY, StorageBackend.SQLITE])
def engine(request, data_dir):
    """History engine for each backend."""
    config = PatchlogConfig(
        storage=StorageConfig(backend=request.param, data_dir=data_dir, wal_mode=False),
    )
    return HistoryEngine(config)


class TestLifecycleScenarios:
    """Create, update, read back and roll back a record."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, engine):
        tasks = await engine.collection("tasks")

        # Create: version 1, one add per field
        v1 = await tasks.save({"id": "t1", "name": "A"})
        assert v1["documentVersion"] == 1
        [cs1] = await tasks.list_change_sets("t1")
        assert list(cs1.operations) == [PatchOp.add("/id", "t1"), PatchOp.add("/name", "A")]

        # Update: version 2, a single replace
        v2 = await tasks.save(dict(v1, name="B"))
        assert v2["documentVersion"] == 2
        cs2 = (await tasks.list_change_sets("t1"))[1]
        assert list(cs2.operations) == [PatchOp.replace("/name", "B")]

        # Historical read
        assert await tasks.get_version(v2, 1) == {"id": "t1", "name": "A"}

        # Roll back to version 1
        result = await tasks.rollback(v2)
        assert result.record["documentVersion"] == 1
        assert result.record["name"] == "A"
        assert len(await tasks.list_change_sets("t1")) == 1
        assert await tasks.get("t1") == result.record

        # Roll back to nothing
        result = await tasks.rollback(result.record)
        assert result.deleted
        assert result.message == "Record deleted as it had no previous versions."
        assert await tasks.get("t1") is None
        assert await tasks.list_change_sets("t1") == []

    @pytest.mark.asyncio
    async def test_backfill_legacy_record(self, engine):
        tasks = await engine.collection("tasks")
        await tasks.save({"id": "t1", "name": "legacy"}, suppress_versioning=True)
        assert await tasks.list_change_sets("t1") == []

        record = await tasks.save({"id": "t1", "name": "new"}, metadata={"by": "migrator"})

        assert record["documentVersion"] == 2
        first, second = await tasks.list_change_sets("t1")
        assert apply_patch({}, first.operations) == {"id": "t1", "name": "legacy"}
        assert first.metadata is None
        assert list(second.operations) == [PatchOp.replace("/name", "new")]
        assert second.metadata == {"by": "migrator"}
        assert await tasks.get_version(record, 1) == {"id": "t1", "name": "legacy"}

    @pytest.mark.asyncio
    async def test_replay_equals_live_snapshot(self, engine):
        tasks = await engine.collection("tasks")
        states = [
            {"id": "t1", "title": "Write", "tags": ["a"], "meta": {"p": 1}},
            {"id": "t1", "title": "Write docs", "tags": ["a", "b"], "meta": {"p": 2}},
            {"id": "t1", "title": "Write docs", "tags": ["b"], "done": True},
        ]
        record = None
        for version, state in enumerate(states, start=1):
            record = await tasks.save(state)
            change_sets = await tasks.list_change_sets("t1")
            assert [cs.version for cs in change_sets] == list(range(1, version + 1))
            assert apply_patch({}, compose(change_sets)) == state

        for version, state in enumerate(states, start=1):
            assert await tasks.get_version(record, version) == state

        report = await tasks.verify("t1")
        assert report.ok


class TestVersionedCollection:
    """Facade behaviour beyond the core lifecycle."""

    @pytest.mark.asyncio
    async def test_generates_id(self, engine):
        tasks = await engine.collection("tasks")
        record = await tasks.save({"name": "A"})

        assert record["id"]
        assert await tasks.get(record["id"]) == record

    @pytest.mark.asyncio
    async def test_update_one(self, engine):
        tasks = await engine.collection("tasks")
        await tasks.save({"id": "t1", "name": "A", "n": 1})

        record = await tasks.update_one("t1", {"name": "B", "documentVersion": 99}, metadata="m")

        assert record == {"id": "t1", "name": "B", "n": 1, "documentVersion": 2}
        change_sets = await tasks.list_change_sets("t1")
        assert list(change_sets[-1].operations) == [PatchOp.replace("/name", "B")]
        assert change_sets[-1].metadata == "m"

    @pytest.mark.asyncio
    async def test_update_one_missing(self, engine):
        tasks = await engine.collection("tasks")
        with pytest.raises(RecordNotFoundError):
            await tasks.update_one("missing", {"name": "B"})

    @pytest.mark.asyncio
    async def test_suppressed_save_keeps_version(self, engine):
        tasks = await engine.collection("tasks")
        record = await tasks.save({"id": "t1", "name": "A"})

        quiet = await tasks.save(dict(record, note="internal"), suppress_versioning=True)

        assert quiet["documentVersion"] == 1
        assert len(await tasks.list_change_sets("t1")) == 1
        assert not (await tasks.verify("t1")).ok

    @pytest.mark.asyncio
    async def test_stale_write_conflicts(self, engine):
        tasks = await engine.collection("tasks")
        v1 = await tasks.save({"id": "t1", "name": "A"})
        await tasks.save(dict(v1, name="B"))

        with pytest.raises(VersionConflictError):
            await tasks.save(dict(v1, name="C"))

        assert (await tasks.get("t1"))["name"] == "B"

    @pytest.mark.asyncio
    async def test_get_version_out_of_range(self, engine):
        tasks = await engine.collection("tasks")
        record = await tasks.save({"id": "t1", "name": "A"})

        with pytest.raises(InvalidVersionError):
            await tasks.get_version(record, 2)

    @pytest.mark.asyncio
    async def test_rollback_unversioned(self, engine):
        tasks = await engine.collection("tasks")
        record = await tasks.save({"id": "t1"}, suppress_versioning=True)

        with pytest.raises(NoPreviousVersionError):
            await tasks.rollback(record)

    @pytest.mark.asyncio
    async def test_rollback_stale_record_keeps_history(self, engine):
        tasks = await engine.collection("tasks")
        v1 = await tasks.save({"id": "t1", "name": "A"})
        v2 = await tasks.save(dict(v1, name="B"))
        await tasks.save(dict(v2, name="C"))

        with pytest.raises(VersionConflictError):
            await tasks.rollback(v2)

        assert [cs.version for cs in await tasks.list_change_sets("t1")] == [1, 2, 3]
        assert (await tasks.verify("t1")).ok

    @pytest.mark.asyncio
    async def test_save_version_ahead_of_log(self, engine):
        tasks = await engine.collection("tasks")
        await tasks.save({"id": "t1", "name": "A"})

        with pytest.raises(VersionConflictError):
            await tasks.save({"id": "t1", "name": "B", "documentVersion": 5})

        assert [cs.version for cs in await tasks.list_change_sets("t1")] == [1]

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, engine):
        tasks = await engine.collection("tasks")
        users = await engine.collection("users")
        await tasks.save({"id": "x", "name": "task"})

        assert await users.get("x") is None
        assert await users.list_change_sets("x") == []
        assert tasks.history_log.name == "tasks_h"
        assert users.history_log.name == "users_h"


class TestHistoryEngine:
    """Tests for HistoryEngine."""

    @pytest.mark.asyncio
    async def test_collection_is_cached(self, engine):
        assert await engine.collection("tasks") is await engine.collection("tasks")
        assert engine.names() == ["tasks"]

    @pytest.mark.asyncio
    async def test_initialize_and_close(self, engine):
        await engine.initialize()
        await engine.collection("tasks")

        await engine.close()

        assert engine.names() == []
        assert len(engine.registry) == 0

    @pytest.mark.asyncio
    async def test_history_collection_override(self):
        engine = HistoryEngine(
            PatchlogConfig(versioning=VersioningConfig(history_collection="audit"))
        )
        tasks = await engine.collection("tasks")
        assert tasks.history_log.name == "audit"

    @pytest.mark.asyncio
    async def test_sqlite_history_survives_restart(self, data_dir):
        config = PatchlogConfig(
            storage=StorageConfig(backend=StorageBackend.SQLITE, data_dir=data_dir)
        )
        first = HistoryEngine(config)
        tasks = await first.collection("tasks")
        v1 = await tasks.save({"id": "t1", "name": "A"})
        await tasks.save(dict(v1, name="B"))
        await first.close()

        second = HistoryEngine(config)
        tasks = await second.collection("tasks")
        record = await tasks.get("t1")

        assert isinstance(tasks.history_log, SqliteChangeSetLog)
        assert record["documentVersion"] == 2
        assert await tasks.get_version(record, 1) == {"id": "t1", "name": "A"}
        await second.close()

    @pytest.mark.asyncio
    async def test_custom_clock(self):
        engine = HistoryEngine(
            PatchlogConfig(
                versioning=VersioningConfig(track_date=True, add_date_to_document=True)
            ),
            clock=lambda: 1234,
        )
        tasks = await engine.collection("tasks")
        record = await tasks.save({"id": "t1"})

        assert record["documentVersionDate"] == 1234
        assert (await tasks.list_change_sets("t1"))[0].created_at_ms == 1234