"""Versioned cassette schema migrations.

Cassettes carry no version tag on disk today, so every file is read as
version 1. ``MIGRATIONS`` maps a version to the function that upgrades one raw
record from that version to the next. It is empty, which makes migration the
identity transform and leaves every file untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

Record = dict[str, Any]

CURRENT_SCHEMA_VERSION = 1
ASSUMED_FILE_VERSION = 1

MIGRATIONS: dict[int, Callable[[Record], Record]] = {}


def migrate_record(
    record: Record,
    from_version: int = ASSUMED_FILE_VERSION,
    migrations: dict[int, Callable[[Record], Record]] | None = None,
    to_version: int = CURRENT_SCHEMA_VERSION,
) -> Record:
    """Apply each step from ``from_version`` up to ``to_version``."""
    steps = MIGRATIONS if migrations is None else migrations
    for version in range(from_version, to_version):
        try:
            step = steps[version]
        except KeyError:
            raise ValueError(f"no migration registered from schema version {version}") from None
        record = step(record)
    return record


def migrate_records(
    records: list[Record],
    from_version: int = ASSUMED_FILE_VERSION,
    migrations: dict[int, Callable[[Record], Record]] | None = None,
    to_version: int = CURRENT_SCHEMA_VERSION,
) -> list[Record]:
    return [
        migrate_record(r, from_version, migrations=migrations, to_version=to_version)
        for r in records
    ]
