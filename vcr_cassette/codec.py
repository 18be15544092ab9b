"""Pluggable JSON codec used for the line-delimited cassette format.

A codec exposes three operations:

- ``encode(value) -> bytes`` raises on values it cannot represent.
- ``decode(data) -> (value, error)`` never raises; ``error`` is ``None`` on success.
- ``decode_strict(data) -> value`` raises on malformed input.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import pydantic_core


@runtime_checkable
class JSONCodec(Protocol):
    name: str

    def encode(self, value: Any) -> bytes: ...

    def decode(self, data: bytes | str) -> tuple[Any, Exception | None]: ...

    def decode_strict(self, data: bytes | str) -> Any: ...


class StdlibJSONCodec:
    """Codec backed by the standard library ``json`` module."""

    name = "json"

    def encode(self, value: Any) -> bytes:
        return json.dumps(
            value, ensure_ascii=False, separators=(",", ":"), allow_nan=False
        ).encode("utf-8")

    def decode(self, data: bytes | str) -> tuple[Any, Exception | None]:
        try:
            return json.loads(data), None
        except ValueError as exc:
            return None, exc

    def decode_strict(self, data: bytes | str) -> Any:
        return json.loads(data)


class PydanticJSONCodec:
    """Codec backed by pydantic-core's Rust JSON implementation."""

    name = "pydantic"

    def encode(self, value: Any) -> bytes:
        return pydantic_core.to_json(value)

    def decode(self, data: bytes | str) -> tuple[Any, Exception | None]:
        try:
            return pydantic_core.from_json(data), None
        except ValueError as exc:
            return None, exc

    def decode_strict(self, data: bytes | str) -> Any:
        return pydantic_core.from_json(data)


_CODECS: dict[str, type[StdlibJSONCodec] | type[PydanticJSONCodec]] = {
    StdlibJSONCodec.name: StdlibJSONCodec,
    PydanticJSONCodec.name: PydanticJSONCodec,
}


def get_codec(name: str = "json") -> JSONCodec:
    """Return a codec instance by name."""
    try:
        return _CODECS[name]()
    except KeyError:
        raise ValueError(
            f"unknown JSON codec {name!r}, expected one of {sorted(_CODECS)}"
        ) from None
