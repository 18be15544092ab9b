"""Read-side filtering of cassette entries."""

from __future__ import annotations

from pathlib import Path

from vcr_cassette.cassette_file import CassetteFile
from vcr_cassette.models import CassetteEntry, ShowResult


def filter_by_url(entries: list[CassetteEntry], pattern: str | None) -> list[CassetteEntry]:
    if pattern is None:
        return entries
    return [e for e in entries if pattern in e.req.url]


def filter_by_method(entries: list[CassetteEntry], method: str | None) -> list[CassetteEntry]:
    if method is None:
        return entries
    wanted = method.upper()
    return [e for e in entries if e.req.method.upper() == wanted]


def filter_entries(
    entries: list[CassetteEntry],
    grep: str | None = None,
    method: str | None = None,
) -> list[CassetteEntry]:
    return filter_by_method(filter_by_url(entries, grep), method)


def show_cassette(
    path: Path,
    grep: str | None = None,
    method: str | None = None,
    store: CassetteFile | None = None,
) -> ShowResult:
    """Load a cassette and apply the URL and method filters."""
    store = store or CassetteFile()
    entries = store.load(path)
    return ShowResult(path=path, total=len(entries), entries=filter_entries(entries, grep, method))
