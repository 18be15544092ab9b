"""Cassette files: load, write, and discover line-delimited cassettes on disk.

This module is the only place that touches the persisted byte format. One
JSON object per line, UTF-8, each line decoded independently.
"""

from __future__ import annotations

import base64
import binascii
import contextlib
import gzip
import os
import tempfile
import zlib
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from vcr_cassette.codec import JSONCodec, StdlibJSONCodec
from vcr_cassette.errors import CassetteNotFoundError, DirectoryNotFoundError
from vcr_cassette.models import CassetteEntry, RecordedResponse

logger = structlog.get_logger()

CASSETTE_SUFFIX = ".jsonl"


def decompress_if_needed(body: bytes, headers: Mapping[str, str]) -> bytes:
    """Gunzip ``body`` when a content-encoding header mentions gzip.

    Returns the original bytes if the body turns out not to be valid gzip.
    """
    encoding = next(
        (v for k, v in headers.items() if k.lower() == "content-encoding"), ""
    )
    if "gzip" not in encoding.lower():
        return body
    try:
        return gzip.decompress(body)
    except (OSError, EOFError, zlib.error) as exc:
        logger.debug("gzip_decompress_failed", error=str(exc))
        return body


def decode_body_b64(body_b64: str, headers: Mapping[str, str]) -> bytes:
    """Base64-decode and decompress a stored body (``b""`` if unreadable)."""
    if not body_b64:
        return b""
    try:
        raw = base64.b64decode(body_b64, validate=True)
    except (binascii.Error, ValueError):
        return b""
    return decompress_if_needed(raw, headers)


def decode_response_body(response: RecordedResponse) -> bytes:
    return decode_body_b64(response.body_b64, response.headers)


class CassetteFile:
    def __init__(self, codec: JSONCodec | None = None) -> None:
        self.codec = codec or StdlibJSONCodec()

    def load_records(self, path: Path) -> list[dict[str, Any]]:
        """Decode every line of a cassette into a raw mapping.

        Blank lines are skipped. Lines that fail to decode, or that decode to
        something other than an object, are dropped.
        """
        path = Path(path)
        if not path.is_file():
            raise CassetteNotFoundError(path)

        records: list[dict[str, Any]] = []
        for lineno, line in enumerate(path.read_bytes().splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            value, error = self.codec.decode(line)
            if error is not None or not isinstance(value, dict):
                logger.debug("malformed_line_dropped", path=str(path), line=lineno)
                continue
            records.append(value)
        return records

    def load(self, path: Path) -> list[CassetteEntry]:
        """Load the entries of a cassette, in file order."""
        entries: list[CassetteEntry] = []
        for record in self.load_records(path):
            try:
                entries.append(CassetteEntry.model_validate(record))
            except ValidationError:
                logger.debug("invalid_entry_dropped", path=str(path), key=record.get("key"))
        return entries

    def write(self, path: Path, entries: Iterable[CassetteEntry]) -> Path:
        """Write entries to ``path``, replacing any existing file."""
        return self.write_records(path, [e.model_dump(mode="json") for e in entries])

    def write_records(self, path: Path, records: Iterable[Any]) -> Path:
        """Encode records one per line and atomically replace ``path``.

        Every record is encoded before anything touches the disk, so an encode
        failure leaves the previous file untouched.
        """
        path = Path(path)
        content = b"".join(self.codec.encode(record) + b"\n" for record in records)

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        return path

    @staticmethod
    def find_cassettes(directory: Path) -> list[Path]:
        """List all cassette files below ``directory``, sorted."""
        directory = Path(directory)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.rglob(f"*{CASSETTE_SUFFIX}") if p.is_file())

    @staticmethod
    def resolve_path(name: str | Path, cassettes_dir: Path) -> Path:
        """Resolve a cassette name against the cassette directory.

        Absolute paths and paths that exist as given are returned unchanged.
        """
        candidate = Path(name)
        if candidate.is_absolute() or candidate.exists():
            return candidate
        return Path(cassettes_dir) / candidate


def ensure_directory(directory: Path) -> Path:
    """Return ``directory`` as a Path, raising if it is not a directory."""
    directory = Path(directory)
    if not directory.is_dir():
        raise DirectoryNotFoundError(directory)
    return directory


def modified_at(path: Path) -> datetime:
    return datetime.fromtimestamp(Path(path).stat().st_mtime, tz=UTC)


def cassette_age_days(path: Path, now: datetime | None = None) -> int:
    """Whole days since the cassette file was last modified."""
    now = now or datetime.now(UTC)
    return (now - modified_at(path)).days


def is_stale(path: Path, stale_days: int, now: datetime | None = None) -> bool:
    now = now or datetime.now(UTC)
    return modified_at(path) < now - timedelta(days=stale_days)
