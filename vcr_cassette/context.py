"""Per-owner cassette context used when naming cassettes.

Callers (typically one test) attach naming hints under an explicit owner
handle. Nothing here is global per thread: the owner is passed in, and
``scope`` guarantees the context is removed when the owner is done.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any


class ContextStore:
    def __init__(self) -> None:
        self._contexts: dict[Hashable, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def put(self, owner: Hashable, context: Mapping[str, Any]) -> None:
        with self._lock:
            self._contexts[owner] = dict(context)

    def get(self, owner: Hashable) -> dict[str, Any]:
        """Return a copy of the owner's context, or an empty dict."""
        with self._lock:
            return dict(self._contexts.get(owner, {}))

    def merge(self, owner: Hashable, extra: Mapping[str, Any]) -> dict[str, Any]:
        """Overlay ``extra`` onto the owner's context and return the result."""
        with self._lock:
            merged = {**self._contexts.get(owner, {}), **extra}
            self._contexts[owner] = merged
            return dict(merged)

    def clear(self, owner: Hashable) -> None:
        with self._lock:
            self._contexts.pop(owner, None)

    @contextmanager
    def scope(
        self, owner: Hashable, context: Mapping[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        self.put(owner, context or {})
        try:
            yield self.get(owner)
        finally:
            self.clear(owner)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)
