"""Per-cassette state units reachable from any thread.

Each cassette path maps to one ``StateUnit``: a mailbox drained by a single
worker thread, so every operation on one cassette is applied in the order it
was enqueued, whichever thread sent it. Units for different cassettes share
nothing but the lookup table, and a slow unit never holds up another.

Mutations (append, advance, reset, clear) are fire-and-forget. A read issued
from another thread right after a mutation may still see the state from
before it. Callers that need strict read-after-write call ``sync`` first.
"""

from __future__ import annotations

import hashlib
import os
import queue
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog

from vcr_cassette.cassette_file import CassetteFile
from vcr_cassette.errors import RegistryTimeoutError
from vcr_cassette.models import CassetteEntry, CassetteState

logger = structlog.get_logger()

KEY_PREFIX = "cassette_"


class StateOp(StrEnum):
    APPEND = "append"
    ADVANCE = "advance"
    RESET = "reset"
    CLEAR = "clear"
    SNAPSHOT = "snapshot"
    SYNC = "sync"


@dataclass
class _Message:
    op: StateOp
    payload: Any = None
    reply: Future | None = None


_STOP = object()


class UnitStoppedError(Exception):
    """Raised when a message is sent to a unit that has already been stopped."""


class StateUnit:
    """Owns the entries and replay cursor of one cassette."""

    def __init__(self, key: str) -> None:
        self.key = key
        self._entries: list[CassetteEntry] = []
        self._position = 0
        self._mailbox: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._stopped = False
        self._thread = threading.Thread(
            target=self._run, name=f"cassette-state-{key[-12:]}", daemon=True
        )
        self._thread.start()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def cast(self, op: StateOp, payload: Any = None) -> bool:
        """Enqueue a mutation without waiting. False if the unit is stopped."""
        with self._lock:
            if self._stopped:
                return False
            self._mailbox.put(_Message(op, payload))
        return True

    def call(self, op: StateOp, timeout: float) -> Any:
        """Enqueue a request and block until the worker replies."""
        reply: Future = Future()
        with self._lock:
            if self._stopped:
                raise UnitStoppedError(self.key)
            self._mailbox.put(_Message(op, None, reply))
        try:
            return reply.result(timeout=timeout)
        except FutureTimeoutError:
            raise RegistryTimeoutError(self.key, timeout) from None

    def stop(self, timeout: float | None = None) -> None:
        """Stop accepting messages, drain what is queued, then exit."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            self._mailbox.put(_STOP)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            message = self._mailbox.get()
            if message is _STOP:
                break
            try:
                result = self._apply(message.op, message.payload)
            except Exception as exc:
                if message.reply is None:
                    logger.exception("state_op_failed", key=self.key, op=str(message.op))
                else:
                    message.reply.set_exception(exc)
                continue
            if message.reply is not None:
                message.reply.set_result(result)

    def _apply(self, op: StateOp, payload: Any) -> Any:
        if op == StateOp.APPEND:
            self._entries.append(payload)
        elif op == StateOp.ADVANCE:
            self._position += 1
        elif op == StateOp.RESET:
            self._position = 0
        elif op == StateOp.CLEAR:
            # Single step: no message can observe one reset without the other.
            self._entries = []
            self._position = 0
        elif op == StateOp.SNAPSHOT:
            return CassetteState(entries=tuple(self._entries), replay_position=self._position)
        elif op == StateOp.SYNC:
            return None
        else:
            raise ValueError(f"unknown state op: {op}")
        return None


class StateRegistry:
    """Lazily created, explicitly disposed state units keyed by cassette path."""

    def __init__(self, store: CassetteFile | None = None, call_timeout: float = 5.0) -> None:
        self.store = store or CassetteFile()
        self.call_timeout = call_timeout
        self._units: dict[str, StateUnit] = {}
        self._lock = threading.Lock()

    @staticmethod
    def state_key(path: str | Path) -> str:
        """Fixed-width lookup key for a cassette path."""
        digest = hashlib.sha256(os.fspath(path).encode("utf-8")).hexdigest()
        return f"{KEY_PREFIX}{digest}"

    def _lookup(self, path: str | Path) -> StateUnit | None:
        with self._lock:
            return self._units.get(self.state_key(path))

    def ensure(self, path: str | Path) -> StateUnit:
        """Return the unit for ``path``, creating it if absent."""
        key = self.state_key(path)
        with self._lock:
            unit = self._units.get(key)
            if unit is None or unit.stopped:
                unit = StateUnit(key)
                self._units[key] = unit
                logger.debug("state_unit_started", key=key, cassette=os.fspath(path))
        return unit

    def _cast(self, path: str | Path, op: StateOp, payload: Any = None) -> None:
        # A unit stopped between lookup and send is replaced by the next ensure().
        while not self.ensure(path).cast(op, payload):
            pass

    def snapshot(self, path: str | Path) -> CassetteState:
        """Entries and cursor read together in one round-trip."""
        unit = self._lookup(path)
        if unit is None:
            return CassetteState()
        try:
            return unit.call(StateOp.SNAPSHOT, self.call_timeout)
        except UnitStoppedError:
            return CassetteState()

    def get_entries(self, path: str | Path) -> list[CassetteEntry]:
        return list(self.snapshot(path).entries)

    def get_position(self, path: str | Path) -> int:
        return self.snapshot(path).replay_position

    def append_entry(self, path: str | Path, entry: CassetteEntry) -> None:
        self._cast(path, StateOp.APPEND, entry)

    def advance_position(self, path: str | Path) -> None:
        self._cast(path, StateOp.ADVANCE)

    def reset_position(self, path: str | Path) -> None:
        self._cast(path, StateOp.RESET)

    def clear(self, path: str | Path) -> None:
        self._cast(path, StateOp.CLEAR)

    def sync(self, path: str | Path) -> None:
        """Block until every message queued for ``path`` so far is applied."""
        unit = self._lookup(path)
        if unit is None:
            return
        try:
            unit.call(StateOp.SYNC, self.call_timeout)
        except UnitStoppedError:
            return

    def flush(self, path: str | Path) -> Path:
        """Persist the accumulated entries of ``path`` to disk."""
        state = self.snapshot(path)
        written = self.store.write(Path(path), state.entries)
        logger.info("cassette_flushed", cassette=os.fspath(path), entries=len(state.entries))
        return written

    def stop(self, path: str | Path) -> None:
        """Dispose the unit for ``path``. No-op if there is none."""
        key = self.state_key(path)
        with self._lock:
            unit = self._units.pop(key, None)
        if unit is None:
            return
        unit.stop(self.call_timeout)
        logger.debug("state_unit_stopped", key=key, cassette=os.fspath(path))

    def stop_all(self) -> None:
        with self._lock:
            units = list(self._units.values())
            self._units.clear()
        for unit in units:
            unit.stop(self.call_timeout)

    def identities(self) -> list[str]:
        with self._lock:
            return sorted(self._units)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str | Path):
            return False
        return self._lookup(path) is not None

    def __enter__(self) -> StateRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_all()
