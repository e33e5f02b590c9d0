"""
History CLI tool for patchlog.

This tool works on snapshot files and on stored history:
- diff: Print the patch that turns one snapshot file into another
- apply: Apply a patch file to a snapshot file
- log: List the change-sets of a record
- show: Reconstruct a record at a given version
- verify: Audit history contiguity and replay against live records

Usage:
    patchlog diff old.yaml new.yaml
    patchlog apply base.json patch.json
    patchlog log --collection tasks --id rec-1
    patchlog show --collection tasks --id rec-1 --version 2
    patchlog verify --collection tasks [--id rec-1]

Snapshot and patch files are read with yaml.safe_load, so JSON files work
as well. Stored history is opened with the SQLite backend in --data-dir
(default PATCHLOG_DATA_DIR); other settings come from PATCHLOG_* env vars.

Invariants:
    - verify exits non-zero when any audited record fails
    - Errors exit with 2: PatchlogError with its code, unreadable or
      non-JSON input files as USAGE
    - Output is deterministic (sorted JSON)
    - log, show and verify never append change-sets or modify records
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

import yaml

from ..config import PatchlogConfig, StorageBackend
from ..errors import PatchlogError, RecordNotFoundError
from ..log.sqlite import SqliteChangeSetLog
from ..observability import setup_logging
from ..patch import apply_patch, compute_diff, ops_from_dicts, ops_to_dicts
from ..store.sqlite import SqliteRecordStore
from ..versioning import HistoryEngine, HistoryReport, VersionedCollection

logger = logging.getLogger(__name__)


def _load_file(path: str) -> Any:
    with open(path) as f:
        return yaml.safe_load(f)


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True)


class HistoryCLI:
    """CLI operations for snapshots and stored history.

    File commands are synchronous; history commands take an open
    HistoryEngine.

    Example:
        >>> cli = HistoryCLI()
        >>> cli.diff("v1.yaml", "v2.yaml")
        [{'op': 'replace', 'path': '/name', 'value': 'B'}]
    """

    def diff(self, old_path: str, new_path: str) -> list[dict[str, Any]]:
        """Patch that turns the old snapshot file into the new one."""
        return ops_to_dicts(compute_diff(_load_file(old_path), _load_file(new_path)))

    def apply(self, base_path: str, patch_path: str) -> Any:
        """Apply a patch file to a snapshot file.

        The patch file holds either a list of operations or a change-set
        mapping with an "operations" list.
        """
        patch = _load_file(patch_path)
        if isinstance(patch, dict):
            patch = patch.get("operations", [])
        return apply_patch(_load_file(base_path), ops_from_dicts(patch or []))

    async def log(self, records: VersionedCollection, record_id: str) -> list[dict[str, Any]]:
        """Change-sets of a record, oldest first."""
        return [cs.to_dict() for cs in await records.list_change_sets(record_id)]

    async def show(
        self,
        records: VersionedCollection,
        record_id: str,
        version: int,
    ) -> dict[str, Any]:
        """Reconstruct a record at `version`.

        Raises:
            RecordNotFoundError: If the live record does not exist
            InvalidVersionError: If version is outside [1, current]
        """
        record = await records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id, collection=records.name)
        return await records.get_version(record, version)

    async def verify(
        self,
        records: VersionedCollection,
        record_id: str | None = None,
    ) -> list[HistoryReport]:
        """Audit one record, or every record known to the collection."""
        if record_id is not None:
            return [await records.verify(record_id)]
        return [await records.verify(rid) for rid in await self._record_ids(records)]

    async def _record_ids(self, records: VersionedCollection) -> list[str]:
        ids: set[str] = set()
        if isinstance(records.history_log, SqliteChangeSetLog):
            ids.update(await records.history_log.parent_ids())
        if isinstance(records.store, SqliteRecordStore):
            ids.update(await records.store.record_ids())
        return sorted(ids)


def build_engine(data_dir: str | None = None) -> HistoryEngine:
    """Engine over the SQLite backend, configured from the environment."""
    config = PatchlogConfig.from_env()
    storage = dataclasses.replace(
        config.storage,
        backend=StorageBackend.SQLITE,
        data_dir=data_dir or config.storage.data_dir,
    )
    return HistoryEngine(dataclasses.replace(config, storage=storage))


async def _run_history_command(cli: HistoryCLI, args: argparse.Namespace) -> int:
    engine = build_engine(args.data_dir)
    try:
        records = await engine.collection(args.collection)

        if args.command == "log":
            print(_dumps(await cli.log(records, args.id)))
            return 0

        if args.command == "show":
            print(_dumps(await cli.show(records, args.id, args.version)))
            return 0

        reports = await cli.verify(records, args.id)
        failed = [r for r in reports if not r.ok]
        for report in reports:
            status = "OK" if report.ok else "FAILED"
            print(f"  [{status}] {report.record_id}: versions 1..{len(report.versions)}")
            for problem in report.problems:
                print(f"          {problem}")
        if failed:
            print(f"History verification FAILED for {len(failed)} of {len(reports)} record(s)")
            return 1
        print(f"History verified for {len(reports)} record(s)")
        return 0
    finally:
        await engine.close()


def _add_history_args(parser: argparse.ArgumentParser, id_required: bool = True) -> None:
    parser.add_argument("--collection", "-c", required=True, help="Collection name")
    parser.add_argument("--id", required=id_required, help="Record id")
    parser.add_argument("--data-dir", help="SQLite data directory (default PATCHLOG_DATA_DIR)")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the history tool."""
    parser = argparse.ArgumentParser(description="patchlog history tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # diff command
    diff_parser = subparsers.add_parser("diff", help="Show the patch between two snapshots")
    diff_parser.add_argument("old", help="Path to old snapshot (YAML or JSON)")
    diff_parser.add_argument("new", help="Path to new snapshot (YAML or JSON)")
    diff_parser.add_argument(
        "--format", choices=["text", "json"], default="json", help="Output format"
    )

    # apply command
    apply_parser = subparsers.add_parser("apply", help="Apply a patch to a snapshot")
    apply_parser.add_argument("base", help="Path to base snapshot")
    apply_parser.add_argument("patch", help="Path to patch (list of ops or change-set)")

    # log command
    log_parser = subparsers.add_parser("log", help="List a record's change-sets")
    _add_history_args(log_parser)

    # show command
    show_parser = subparsers.add_parser("show", help="Reconstruct a record at a version")
    _add_history_args(show_parser)
    show_parser.add_argument("--version", "-v", type=int, required=True, help="Version to show")

    # verify command
    verify_parser = subparsers.add_parser("verify", help="Audit stored history")
    _add_history_args(verify_parser, id_required=False)

    args = parser.parse_args(argv)
    setup_logging(PatchlogConfig.from_env().observability)
    cli = HistoryCLI()

    try:
        if args.command == "diff":
            ops = cli.diff(args.old, args.new)
            if args.format == "json":
                print(_dumps(ops))
            elif not ops:
                print("No changes detected")
            else:
                print(f"Found {len(ops)} change(s):")
                for op in ops_from_dicts(ops):
                    print(f"  {op}")
            sys.exit(0)

        elif args.command == "apply":
            print(_dumps(cli.apply(args.base, args.patch)))
            sys.exit(0)

        else:
            sys.exit(asyncio.run(_run_history_command(cli, args)))

    except PatchlogError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        sys.exit(2)
    except (OSError, TypeError, yaml.YAMLError) as e:
        # Unreadable input files, or values JSON cannot hold (YAML dates)
        print(f"Error [USAGE]: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
