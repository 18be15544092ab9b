"""pytest plugin providing cassette state fixtures."""

from __future__ import annotations

import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from vcr_cassette.cassette_file import CassetteFile
from vcr_cassette.codec import get_codec
from vcr_cassette.config import Settings
from vcr_cassette.context import ContextStore
from vcr_cassette.state import StateRegistry


def _load_pyproject_config() -> dict:
    """Load [tool.vcr-cassette] from pyproject.toml."""
    pyproject = Path("pyproject.toml")
    if not pyproject.exists():
        return {}
    with pyproject.open("rb") as f:
        data = tomllib.load(f)
    return data.get("tool", {}).get("vcr-cassette", {})


def load_settings() -> Settings:
    """Environment settings, overridden by any [tool.vcr-cassette] keys."""
    config = _load_pyproject_config()
    settings = Settings()
    for name in ("cassettes_dir", "json_codec", "call_timeout"):
        if name in config:
            setattr(settings, name, config[name])
    settings.cassettes_dir = Path(settings.cassettes_dir)
    return settings


@pytest.fixture(scope="session")
def vcr_settings() -> Settings:
    return load_settings()


@pytest.fixture(scope="session")
def cassette_registry(vcr_settings: Settings) -> Iterator[StateRegistry]:
    """Session-scoped registry shared by every test and thread."""
    registry = StateRegistry(
        store=CassetteFile(get_codec(vcr_settings.json_codec)),
        call_timeout=vcr_settings.call_timeout,
    )
    yield registry
    registry.stop_all()


@pytest.fixture(scope="session")
def cassette_contexts() -> ContextStore:
    return ContextStore()


@pytest.fixture
def cassette_context(
    request: pytest.FixtureRequest, cassette_contexts: ContextStore
) -> Iterator[dict[str, Any]]:
    """Naming context owned by the current test, removed when it finishes."""
    with cassette_contexts.scope(request.node) as context:
        yield context
