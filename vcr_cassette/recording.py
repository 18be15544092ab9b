"""Shared recording utilities for building cassette entries from raw HTTP."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Mapping

from vcr_cassette.models import (
    NO_BODY_HASH,
    CassetteEntry,
    RecordedRequest,
    RecordedResponse,
)

REDACTED = "<REDACTED>"

SENSITIVE_HEADERS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "proxy-authorization",
        "x-api-key",
    }
)


def redact_headers(headers: Mapping[str, str], sensitive: frozenset[str]) -> dict[str, str]:
    """Replace values of sensitive headers with a redaction placeholder."""
    return {
        k: REDACTED if k.lower() in sensitive else v
        for k, v in headers.items()
    }


def body_hash(body: bytes | None) -> str:
    """SHA-256 of the request body, or the no-body sentinel."""
    if not body:
        return NO_BODY_HASH
    return hashlib.sha256(body).hexdigest()


def build_entry(
    key: str,
    method: str,
    url: str,
    request_headers: Mapping[str, str],
    request_body: bytes | None,
    status: int,
    response_headers: Mapping[str, str],
    response_body: bytes | None,
    sensitive_headers: frozenset[str] = SENSITIVE_HEADERS_DEFAULT,
) -> CassetteEntry:
    """Build a CassetteEntry from raw HTTP components.

    The key comes from the caller's request fingerprint; this module never
    computes one.
    """
    request = RecordedRequest(
        method=method.upper(),
        url=url,
        headers=redact_headers(request_headers, sensitive_headers),
        body_hash=body_hash(request_body),
    )
    response = RecordedResponse(
        status=status,
        headers=redact_headers(response_headers, sensitive_headers),
        body_b64=base64.b64encode(response_body or b"").decode("ascii"),
    )
    return CassetteEntry(key=key, req=request, resp=response)
