# conftest.py (project root)
"""Test session setup shared by every test module.

The installed ``vcr-cassette`` plugin is dropped at configure time: its entry
point imports ``vcr_cassette`` before pytest-cov starts measuring, which
would report those modules as uncovered. ``tests/conftest.py`` provides the
same fixtures instead.
"""

import os

import pytest

PLUGIN_NAME = "vcr-cassette"


def pytest_configure(config):
    manager = config.pluginmanager
    if manager.has_plugin(PLUGIN_NAME):
        manager.unregister(name=PLUGIN_NAME)


@pytest.fixture(autouse=True)
def _no_ambient_vcr_settings(monkeypatch):
    # Settings defaults must not depend on the developer's VCR_* environment.
    for name in list(os.environ):
        if name.startswith("VCR_"):
            monkeypatch.delenv(name)
