"""Rename, move and migrate cassette files.

Bulk operations are planned in full before anything moves, so a dry run and
a real run compute the same set of changes.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Callable
from pathlib import Path

import structlog

from vcr_cassette.batch import run_batch, should_execute
from vcr_cassette.cassette_file import CassetteFile, ensure_directory
from vcr_cassette.errors import AlreadyExistsError, CassetteNotFoundError
from vcr_cassette.migrations import (
    ASSUMED_FILE_VERSION,
    CURRENT_SCHEMA_VERSION,
    Record,
    migrate_records,
)
from vcr_cassette.models import (
    BatchResult,
    MigrationOp,
    MigrationReport,
    RenameOp,
    RenameReport,
)

logger = structlog.get_logger()


def _apply_rename(op: RenameOp) -> Path:
    op.destination.parent.mkdir(parents=True, exist_ok=True)
    os.replace(op.source, op.destination)
    logger.info("cassette_renamed", source=str(op.source), destination=str(op.destination))
    return op.destination


# --- Single rename ---


def rename_cassette(
    cassettes_dir: Path,
    source: str | Path,
    destination: str | Path,
    force: bool = False,
    dry_run: bool = False,
) -> RenameOp:
    """Rename one cassette inside ``cassettes_dir``.

    Raises before touching anything if the source is missing, or if the
    destination exists and ``force`` is not set.
    """
    directory = ensure_directory(cassettes_dir)
    op = RenameOp(source=directory / source, destination=directory / destination)

    if not op.source.is_file():
        raise CassetteNotFoundError(op.source)
    if op.destination.exists() and not force:
        raise AlreadyExistsError(op.destination)

    if not dry_run:
        _apply_rename(op)
    return op


# --- Prefix rename ---


def plan_prefix_rename(
    cassettes_dir: Path,
    from_prefix: str,
    to_prefix: str,
    force: bool = False,
) -> list[RenameOp]:
    """Map every cassette whose relative path starts with ``from_prefix``.

    Prefixes match the POSIX form of the path relative to ``cassettes_dir``.
    """
    directory = ensure_directory(cassettes_dir)
    ops: list[RenameOp] = []
    for path in CassetteFile.find_cassettes(directory):
        relative = path.relative_to(directory).as_posix()
        if not relative.startswith(from_prefix):
            continue
        new_relative = to_prefix + relative[len(from_prefix) :]
        if new_relative == relative:
            continue
        ops.append(RenameOp(source=path, destination=directory / new_relative))

    _check_collisions(ops, force)
    return ops


def _check_collisions(ops: list[RenameOp], force: bool) -> None:
    sources = {op.source for op in ops}
    destinations: set[Path] = set()
    for op in ops:
        if op.destination in destinations:
            raise AlreadyExistsError(op.destination, "multiple cassettes map to")
        destinations.add(op.destination)
        if op.destination in sources:
            raise AlreadyExistsError(op.destination, "destination is itself being renamed")
        if op.destination.exists() and not force:
            raise AlreadyExistsError(op.destination)


def execute_renames(ops: list[RenameOp]) -> BatchResult:
    return run_batch(ops, _apply_rename, lambda op: op.source, "rename")


def rename_prefix(
    cassettes_dir: Path,
    from_prefix: str,
    to_prefix: str,
    dry_run: bool = True,
    force: bool = False,
    confirm: Callable[[], bool] | None = None,
) -> RenameReport:
    ops = plan_prefix_rename(cassettes_dir, from_prefix, to_prefix, force=force)
    report = RenameReport(ops=ops)
    if ops and should_execute(dry_run, force, confirm):
        report.result = execute_renames(ops)
        report.executed = True
    return report


# --- Migration ---


def plan_migrations(
    cassettes_dir: Path,
    store: CassetteFile | None = None,
    migrations: dict[int, Callable[[Record], Record]] | None = None,
    to_version: int = CURRENT_SCHEMA_VERSION,
) -> list[MigrationOp]:
    """Find cassettes whose migrated records differ from what is on disk."""
    directory = ensure_directory(cassettes_dir)
    store = store or CassetteFile()
    ops: list[MigrationOp] = []
    for path in CassetteFile.find_cassettes(directory):
        records = store.load_records(path)
        migrated = migrate_records(
            copy.deepcopy(records),
            ASSUMED_FILE_VERSION,
            migrations=migrations,
            to_version=to_version,
        )
        if migrated != records:
            ops.append(
                MigrationOp(path=path, from_version=ASSUMED_FILE_VERSION, records=migrated)
            )
    return ops


def execute_migrations(ops: list[MigrationOp], store: CassetteFile | None = None) -> BatchResult:
    store = store or CassetteFile()

    def apply(op: MigrationOp) -> Path:
        store.write_records(op.path, op.records)
        logger.info("cassette_migrated", path=str(op.path))
        return op.path

    return run_batch(ops, apply, lambda op: op.path, "migrate")


def migrate(
    cassettes_dir: Path,
    dry_run: bool = True,
    force: bool = False,
    confirm: Callable[[], bool] | None = None,
    store: CassetteFile | None = None,
    migrations: dict[int, Callable[[Record], Record]] | None = None,
    to_version: int = CURRENT_SCHEMA_VERSION,
) -> MigrationReport:
    ops = plan_migrations(
        cassettes_dir, store=store, migrations=migrations, to_version=to_version
    )
    report = MigrationReport(ops=ops)
    if ops and should_execute(dry_run, force, confirm):
        report.result = execute_migrations(ops, store=store)
        report.executed = True
    return report
