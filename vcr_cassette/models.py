"""Pydantic models for cassette entries, live state and maintenance results."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

NO_BODY_HASH = "-"


# --- Cassette entry models ---


class RecordedRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    headers: dict[str, str] = {}
    body_hash: str = NO_BODY_HASH


class RecordedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = {}
    body_b64: str = ""


class CassetteEntry(BaseModel):
    """One recorded request/response pair. Entries are deduplicated by ``key``."""

    model_config = ConfigDict(frozen=True)

    key: str
    req: RecordedRequest
    resp: RecordedResponse


# --- Live state ---


class CassetteState(BaseModel):
    """Point-in-time view of a state unit: entries and replay cursor."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[CassetteEntry, ...] = ()
    replay_position: int = 0


# --- Batch results ---


class ActionFailure(BaseModel):
    path: Path
    error: str


class BatchResult(BaseModel):
    """Outcome of executing a batch: what was applied and what failed."""

    applied: list[Path] = []
    failed: list[ActionFailure] = []


# --- Rename / migrate ---


class RenameOp(BaseModel):
    source: Path
    destination: Path


class MigrationOp(BaseModel):
    """A cassette whose migrated records differ from what is on disk."""

    path: Path
    from_version: int
    records: list[dict[str, Any]]


class RenameReport(BaseModel):
    ops: list[RenameOp]
    executed: bool = False
    result: BatchResult = BatchResult()


class MigrationReport(BaseModel):
    ops: list[MigrationOp]
    executed: bool = False
    result: BatchResult = BatchResult()


# --- Prune ---


class PruneActionType(StrEnum):
    DELETE_FILE = "delete_file"
    REMOVE_DUPLICATES = "remove_duplicates"


class PruneAction(BaseModel):
    type: PruneActionType
    path: Path
    reason: str
    # Deduplicated raw records to write back; empty for deletions.
    records: list[dict[str, Any]] = []


class PruneReport(BaseModel):
    actions: list[PruneAction]
    executed: bool = False
    result: BatchResult = BatchResult()


# --- Audit ---


class IssueType(StrEnum):
    SECRET = "secret"
    STALE = "stale"
    UNUSED = "unused"


class SecretFinding(BaseModel):
    type: IssueType = IssueType.SECRET
    path: Path
    line: int
    location: str
    value: str


class StaleCassette(BaseModel):
    type: IssueType = IssueType.STALE
    path: Path
    age_days: int


class UnusedCassette(BaseModel):
    type: IssueType = IssueType.UNUSED
    path: Path


class AuditReport(BaseModel):
    secrets: list[SecretFinding] = []
    stale: list[StaleCassette] = []
    unused: list[UnusedCassette] = []

    @property
    def total(self) -> int:
        return len(self.secrets) + len(self.stale) + len(self.unused)


# --- Show ---


class ShowResult(BaseModel):
    path: Path
    total: int
    entries: list[CassetteEntry]
