"""Audit cassettes for leaked secrets and staleness."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

import structlog

from vcr_cassette.cassette_file import (
    CassetteFile,
    cassette_age_days,
    decode_body_b64,
    ensure_directory,
    is_stale,
)
from vcr_cassette.migrations import Record
from vcr_cassette.models import (
    AuditReport,
    SecretFinding,
    StaleCassette,
    UnusedCassette,
)

logger = structlog.get_logger()

DEFAULT_STALE_DAYS = 365
DEFAULT_DISPLAY_LIMIT = 50

SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[a-zA-Z0-9]{32,}"),  # long opaque tokens
    re.compile(r"sk_[a-zA-Z0-9]+"),  # Stripe secret keys
    re.compile(r"pk_[a-zA-Z0-9]+"),  # Stripe publishable keys
    re.compile(r"Bearer [a-zA-Z0-9._-]+"),
    re.compile(r"Basic [a-zA-Z0-9+/=]+"),
    re.compile(r"ghp_[a-zA-Z0-9]{36}"),  # GitHub personal tokens
    re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"),  # UUIDs
)

SENSITIVE_URL_PARAMS: tuple[str, ...] = ("token=", "apikey=", "api_key=")

BODY_FINDING = "(response body contains potential secrets)"


def matches_secret_pattern(text: str) -> bool:
    return any(p.search(text) for p in SECRET_PATTERNS)


def is_redacted(value: str) -> bool:
    return "REDACTED" in value


def truncate_secret(value: str, limit: int = DEFAULT_DISPLAY_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 2] + "..."


def _section(record: Record, name: str) -> dict:
    value = record.get(name)
    return value if isinstance(value, dict) else {}


def _string_items(value: object) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def find_secrets_in_record(
    record: Record,
    path: Path,
    line: int,
    limit: int = DEFAULT_DISPLAY_LIMIT,
) -> list[SecretFinding]:
    """Check request headers, request URL and response body of one record.

    Works on the decoded mapping, so records that would not load as a full
    entry are still scanned. Missing or mistyped fields are skipped.
    """
    req = _section(record, "req")
    resp = _section(record, "resp")
    findings: list[SecretFinding] = []

    for name, value in _string_items(req.get("headers")).items():
        if not is_redacted(value) and matches_secret_pattern(value):
            findings.append(
                SecretFinding(
                    path=path,
                    line=line,
                    location=f"req.headers.{name}",
                    value=truncate_secret(value, limit),
                )
            )

    url = req.get("url")
    if not isinstance(url, str):
        url = ""
    if any(p in url for p in SENSITIVE_URL_PARAMS) and not is_redacted(url):
        findings.append(
            SecretFinding(
                path=path, line=line, location="req.url", value=truncate_secret(url, limit)
            )
        )

    body_b64 = resp.get("body_b64")
    if isinstance(body_b64, str):
        body = decode_body_b64(body_b64, _string_items(resp.get("headers")))
        if body and matches_secret_pattern(body.decode("utf-8", errors="replace")):
            findings.append(
                SecretFinding(path=path, line=line, location="resp.body", value=BODY_FINDING)
            )

    return findings


def check_secrets(
    cassettes: list[tuple[Path, list[Record]]],
    limit: int = DEFAULT_DISPLAY_LIMIT,
) -> list[SecretFinding]:
    findings: list[SecretFinding] = []
    for path, records in cassettes:
        for line, record in enumerate(records, 1):
            findings += find_secrets_in_record(record, path, line, limit)
    return findings


def check_stale(
    paths: list[Path],
    stale_days: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> list[StaleCassette]:
    stale: list[StaleCassette] = []
    for path in paths:
        try:
            if is_stale(path, stale_days, now):
                stale.append(StaleCassette(path=path, age_days=cassette_age_days(path, now)))
        except OSError:
            continue
    return stale


def check_unused(paths: list[Path]) -> list[UnusedCassette]:
    """Not implemented: always returns no results.

    Telling which cassettes no test replays needs coverage data collected
    during a test run, which this package does not have.
    """
    logger.info(
        "unused_detection_unavailable",
        cassettes=len(paths),
        note="unused cassette detection requires test coverage instrumentation",
    )
    return []


def audit_categories(
    secrets_only: bool = False,
    unused_only: bool = False,
    stale_days: int | None = None,
) -> dict[str, bool]:
    """Translate command-line style flags into the checks to run.

    An explicit ``stale_days`` restricts the audit to staleness.
    """
    return {
        "secrets": not unused_only and stale_days is None,
        "unused": not secrets_only and stale_days is None,
        "stale": not secrets_only and not unused_only,
    }


def audit(
    cassettes_dir: Path,
    secrets: bool = True,
    stale: bool = True,
    unused: bool = True,
    stale_days: int = DEFAULT_STALE_DAYS,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
    store: CassetteFile | None = None,
    now: datetime | None = None,
) -> AuditReport:
    directory = ensure_directory(cassettes_dir)
    store = store or CassetteFile()
    paths = store.find_cassettes(directory)

    report = AuditReport()
    if secrets:
        report.secrets = check_secrets([(p, store.load_records(p)) for p in paths], display_limit)
    if unused:
        report.unused = check_unused(paths)
    if stale:
        report.stale = check_stale(paths, stale_days, now)
    return report
