"""Prune cassettes: delete empty or stale files, drop duplicate entries.

Planning works on the decoded records of each file rather than validated
entries, so a rewrite carries every record it keeps back to disk untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import structlog

from vcr_cassette.batch import run_batch, should_execute
from vcr_cassette.cassette_file import (
    CassetteFile,
    cassette_age_days,
    ensure_directory,
    is_stale,
)
from vcr_cassette.migrations import Record
from vcr_cassette.models import (
    BatchResult,
    PruneAction,
    PruneActionType,
    PruneReport,
)

logger = structlog.get_logger()


def _record_key(record: Record) -> str | None:
    key = record.get("key")
    return key if isinstance(key, str) else None


def deduplicate_records(records: list[Record]) -> list[Record]:
    """Keep the last occurrence of each key, preserving relative order.

    Keys ``[A, B, A, C]`` become ``[B, A, C]``. Records without a string key
    are never considered duplicates of anything.
    """
    seen: set[str] = set()
    kept: list[Record] = []
    for record in reversed(records):
        key = _record_key(record)
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        kept.append(record)
    kept.reverse()
    return kept


def duplicate_count(records: list[Record]) -> int:
    return len(records) - len(deduplicate_records(records))


def prune_categories(
    empty_only: bool = False,
    duplicates_only: bool = False,
    stale_days: int | None = None,
) -> dict[str, bool]:
    """Translate command-line style flags into the categories to check.

    With no flags, empty files and duplicates are checked. Passing
    ``stale_days`` checks staleness alone.
    """
    return {
        "empty": not duplicates_only and stale_days is None,
        "duplicates": not empty_only and stale_days is None,
        "stale": stale_days is not None,
    }


def find_empty(cassettes: list[tuple[Path, list[Record]]]) -> list[PruneAction]:
    return [
        PruneAction(type=PruneActionType.DELETE_FILE, path=path, reason="empty")
        for path, records in cassettes
        if not records
    ]


def find_stale(
    cassettes: list[tuple[Path, list[Record]]],
    stale_days: int,
    now: datetime | None = None,
) -> list[PruneAction]:
    actions: list[PruneAction] = []
    for path, _records in cassettes:
        try:
            if not is_stale(path, stale_days, now):
                continue
            age = cassette_age_days(path, now)
        except OSError:
            continue
        actions.append(
            PruneAction(
                type=PruneActionType.DELETE_FILE,
                path=path,
                reason=f"stale ({age} days old)",
            )
        )
    return actions


def find_duplicates(cassettes: list[tuple[Path, list[Record]]]) -> list[PruneAction]:
    actions: list[PruneAction] = []
    for path, records in cassettes:
        kept = deduplicate_records(records)
        count = len(records) - len(kept)
        if count == 0:
            continue
        actions.append(
            PruneAction(
                type=PruneActionType.REMOVE_DUPLICATES,
                path=path,
                reason=f"{count} duplicate entries",
                records=kept,
            )
        )
    return actions


def plan_prune(
    cassettes_dir: Path,
    empty: bool = True,
    duplicates: bool = True,
    stale_days: int | None = None,
    store: CassetteFile | None = None,
    now: datetime | None = None,
) -> list[PruneAction]:
    """Classify every cassette under ``cassettes_dir``. Nothing is modified.

    Each file gets at most one action; the first category that claims it wins.
    """
    directory = ensure_directory(cassettes_dir)
    store = store or CassetteFile()
    cassettes = [(path, store.load_records(path)) for path in store.find_cassettes(directory)]

    candidates: list[PruneAction] = []
    if empty:
        candidates += find_empty(cassettes)
    if stale_days is not None:
        candidates += find_stale(cassettes, stale_days, now)
    if duplicates:
        candidates += find_duplicates(cassettes)

    claimed: set[Path] = set()
    actions: list[PruneAction] = []
    for action in candidates:
        if action.path in claimed:
            continue
        claimed.add(action.path)
        actions.append(action)
    return actions


def execute_prune(actions: list[PruneAction], store: CassetteFile | None = None) -> BatchResult:
    store = store or CassetteFile()

    def apply(action: PruneAction) -> Path:
        if action.type == PruneActionType.DELETE_FILE:
            action.path.unlink()
            logger.info("cassette_deleted", path=str(action.path), reason=action.reason)
        else:
            store.write_records(action.path, action.records)
            logger.info("cassette_deduplicated", path=str(action.path), reason=action.reason)
        return action.path

    return run_batch(actions, apply, lambda a: a.path, "prune")


def prune(
    cassettes_dir: Path,
    empty: bool = True,
    duplicates: bool = True,
    stale_days: int | None = None,
    dry_run: bool = True,
    force: bool = False,
    confirm: Callable[[], bool] | None = None,
    store: CassetteFile | None = None,
    now: datetime | None = None,
) -> PruneReport:
    """Plan a prune and, unless dry-running, apply it once forced or confirmed."""
    actions = plan_prune(
        cassettes_dir,
        empty=empty,
        duplicates=duplicates,
        stale_days=stale_days,
        store=store,
        now=now,
    )
    report = PruneReport(actions=actions)
    if actions and should_execute(dry_run, force, confirm):
        report.result = execute_prune(actions, store=store)
        report.executed = True
    return report
