# tests/conftest.py
import base64
import gzip
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from vcr_cassette.cassette_file import CassetteFile
from vcr_cassette.context import ContextStore
from vcr_cassette.models import CassetteEntry, RecordedRequest, RecordedResponse
from vcr_cassette.state import StateRegistry


@pytest.fixture
def cassettes_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cassettes"
    path.mkdir()
    return path


@pytest.fixture
def store() -> CassetteFile:
    return CassetteFile()


@pytest.fixture
def registry() -> Iterator[StateRegistry]:
    registry = StateRegistry(call_timeout=5.0)
    yield registry
    registry.stop_all()


# --- Fixtures originally provided by the vcr-cassette pytest plugin ---
# The plugin is disabled at test time (see root conftest.py) so coverage
# can track all vcr_cassette module imports. We replicate the public
# fixtures here.


@pytest.fixture(scope="session")
def cassette_registry() -> Iterator[StateRegistry]:
    registry = StateRegistry()
    yield registry
    registry.stop_all()


@pytest.fixture(scope="session")
def cassette_contexts() -> ContextStore:
    return ContextStore()


@pytest.fixture
def cassette_context(request, cassette_contexts: ContextStore) -> Iterator[dict]:
    with cassette_contexts.scope(request.node) as context:
        yield context


def make_entry(
    key: str,
    method: str = "GET",
    url: str = "https://api.example.com/v1/users",
    req_headers: dict[str, str] | None = None,
    status: int = 200,
    resp_headers: dict[str, str] | None = None,
    body: bytes = b'{"ok": true}',
    gzipped: bool = False,
) -> CassetteEntry:
    headers = dict(resp_headers or {"content-type": "application/json"})
    if gzipped:
        body = gzip.compress(body)
        headers["content-encoding"] = "gzip"
    return CassetteEntry(
        key=key,
        req=RecordedRequest(method=method, url=url, headers=req_headers or {}),
        resp=RecordedResponse(
            status=status,
            headers=headers,
            body_b64=base64.b64encode(body).decode("ascii"),
        ),
    )


@pytest.fixture
def entry_factory() -> Callable[..., CassetteEntry]:
    return make_entry


@pytest.fixture
def write_cassette(store: CassetteFile, cassettes_dir: Path) -> Callable[..., Path]:
    """Write entries to a cassette relative to cassettes_dir."""

    def _write(name: str, entries: list[CassetteEntry]) -> Path:
        return store.write(cassettes_dir / name, entries)

    return _write
