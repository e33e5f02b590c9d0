"""
Integration tests for the history CLI.
"""

import asyncio
import json
import logging
import tempfile
from pathlib import Path

import pytest
import yaml

from patchlog.config import PatchlogConfig, StorageBackend, StorageConfig
from patchlog.tools.history_cli import HistoryCLI, main
from patchlog.versioning import HistoryEngine


@pytest.fixture(autouse=True)
def root_logger():
    """main() reconfigures the root logger; restore it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def data_dir(monkeypatch):
    """Temporary data directory, also exported as PATCHLOG_DATA_DIR."""
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("PATCHLOG_DATA_DIR", tmpdir)
        yield tmpdir


def _write(directory, name, data, as_yaml=False):
    path = Path(directory) / name
    path.write_text(yaml.safe_dump(data) if as_yaml else json.dumps(data))
    return str(path)


def _seed(data_dir):
    """Store t1 at version 2 in the SQLite backend."""

    async def seed():
        engine = HistoryEngine(
            PatchlogConfig(storage=StorageConfig(backend=StorageBackend.SQLITE, data_dir=data_dir))
        )
        tasks = await engine.collection("tasks")
        v1 = await tasks.save({"id": "t1", "name": "A"})
        await tasks.save(dict(v1, name="B"))
        await engine.close()

    asyncio.run(seed())


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestFileCommands:
    """diff and apply on snapshot files."""

    def test_diff_yaml_and_json(self, data_dir):
        old = _write(data_dir, "old.yaml", {"name": "A", "tags": ["x"]}, as_yaml=True)
        new = _write(data_dir, "new.json", {"name": "B", "tags": ["x"]})

        assert HistoryCLI().diff(old, new) == [{"op": "replace", "path": "/name", "value": "B"}]

    def test_apply_list_and_change_set(self, data_dir):
        base = _write(data_dir, "base.json", {"name": "A"})
        ops = [{"op": "replace", "path": "/name", "value": "B"}]
        as_list = _write(data_dir, "ops.json", ops)
        as_change_set = _write(data_dir, "cs.json", {"version": 2, "operations": ops})

        assert HistoryCLI().apply(base, as_list) == {"name": "B"}
        assert HistoryCLI().apply(base, as_change_set) == {"name": "B"}

    def test_diff_command_output(self, data_dir, capsys):
        old = _write(data_dir, "old.json", {"a": 1})
        new = _write(data_dir, "new.json", {"a": 1, "b": 2})

        assert _run(["diff", old, new]) == 0
        assert json.loads(capsys.readouterr().out) == [{"op": "add", "path": "/b", "value": 2}]

    def test_diff_text_no_changes(self, data_dir, capsys):
        old = _write(data_dir, "old.json", {"a": 1})

        assert _run(["diff", old, old, "--format", "text"]) == 0
        assert "No changes detected" in capsys.readouterr().out

    def test_apply_failure_exit_code(self, data_dir, capsys):
        base = _write(data_dir, "base.json", {"a": 1})
        patch = _write(data_dir, "ops.json", [{"op": "test", "path": "/a", "value": 2}])

        assert _run(["apply", base, patch]) == 2
        assert "APPLY_FAILURE" in capsys.readouterr().err

    def test_missing_file_is_usage_error(self, data_dir, capsys):
        new = _write(data_dir, "new.json", {"a": 1})

        assert _run(["diff", str(Path(data_dir) / "absent.json"), new]) == 2
        assert "USAGE" in capsys.readouterr().err

    def test_yaml_timestamp_is_usage_error(self, data_dir, capsys):
        old = _write(data_dir, "old.json", {})
        new = Path(data_dir) / "new.yaml"
        new.write_text("when: 2024-01-01\n")

        assert _run(["diff", old, str(new)]) == 2
        assert "USAGE" in capsys.readouterr().err


class TestHistoryCommands:
    """log, show and verify against stored history."""

    def test_log(self, data_dir, capsys):
        _seed(data_dir)

        assert _run(["log", "--collection", "tasks", "--id", "t1"]) == 0

        change_sets = json.loads(capsys.readouterr().out)
        assert [cs["version"] for cs in change_sets] == [1, 2]

    def test_show(self, data_dir, capsys):
        _seed(data_dir)

        assert _run(["show", "-c", "tasks", "--id", "t1", "--version", "1"]) == 0
        assert json.loads(capsys.readouterr().out) == {"id": "t1", "name": "A"}

    def test_show_invalid_version(self, data_dir, capsys):
        _seed(data_dir)

        assert _run(["show", "-c", "tasks", "--id", "t1", "--version", "7"]) == 2
        assert "INVALID_VERSION" in capsys.readouterr().err

    def test_verify_all(self, data_dir, capsys):
        _seed(data_dir)

        assert _run(["verify", "-c", "tasks", "--data-dir", data_dir]) == 0
        assert "History verified for 1 record(s)" in capsys.readouterr().out

    def test_verify_detects_drift(self, data_dir, capsys):
        _seed(data_dir)

        async def drift():
            engine = HistoryEngine(
                PatchlogConfig(
                    storage=StorageConfig(backend=StorageBackend.SQLITE, data_dir=data_dir)
                )
            )
            tasks = await engine.collection("tasks")
            record = await tasks.get("t1")
            await tasks.save(dict(record, name="edited"), suppress_versioning=True)
            await engine.close()

        asyncio.run(drift())

        assert _run(["verify", "-c", "tasks", "--id", "t1"]) == 1
        assert "FAILED" in capsys.readouterr().out
