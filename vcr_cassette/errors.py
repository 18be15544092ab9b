"""Exceptions raised by cassette storage and maintenance operations."""

from __future__ import annotations

from pathlib import Path


class CassetteError(Exception):
    """Base class for errors surfaced to the caller."""


class CassetteNotFoundError(CassetteError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Cassette not found: {path}")


class DirectoryNotFoundError(CassetteError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Directory not found: {path}")


class AlreadyExistsError(CassetteError):
    def __init__(self, path: Path, reason: str = "destination already exists") -> None:
        self.path = path
        super().__init__(f"{reason}: {path}")


class RegistryTimeoutError(CassetteError):
    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"State unit {key} did not reply within {timeout}s")
