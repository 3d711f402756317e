#!filepath: sdunits/core/types.py
"""
Tagged property values.

The transport hands over every remote value as ``(signature, value)``: the
D-Bus type signature plus the unwrapped Python value. ``PropertyValue.decode``
turns that pair into one of the tags below and rejects values that do not
match their signature, so a bad notification never reaches a cache.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from sdunits.utils.errors import DecodeFailure, TypeMismatch

RawValue = Tuple[str, Any]


class PropertyType(str, Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    BIG_INTEGER = "big-integer"
    STRING = "string"
    BYTES = "bytes"
    STRING_LIST = "string-list"
    RECORD = "record"
    VARIANT = "variant"

    def __str__(self) -> str:
        return self.value


# signature -> (min, max)
_INTEGER_RANGES: Dict[str, Tuple[int, int]] = {
    "y": (0, 2**8 - 1),
    "n": (-(2**15), 2**15 - 1),
    "q": (0, 2**16 - 1),
    "i": (-(2**31), 2**31 - 1),
    "u": (0, 2**32 - 1),
    "x": (-(2**63), 2**63 - 1),
    "h": (0, 2**32 - 1),
}
_BIG_INTEGER_RANGE = (0, 2**64 - 1)
_STRING_SIGNATURES = ("s", "o", "g")
_STRING_LIST_SIGNATURES = ("as", "ao", "ag")
_BASIC_SIGNATURES = set("bynqiuxthdsogv")


def _is_int(raw: Any) -> bool:
    return isinstance(raw, int) and not isinstance(raw, bool)


def _freeze(raw: Any) -> Any:
    if isinstance(raw, (list, tuple)):
        return tuple(_freeze(item) for item in raw)
    if isinstance(raw, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in raw.items()})
    return raw


def _valid_signature(signature: str) -> bool:
    if not signature:
        return False
    depth = 0
    for char in signature:
        if char in "({":
            depth += 1
        elif char in ")}":
            depth -= 1
            if depth < 0:
                return False
        elif char != "a" and char not in _BASIC_SIGNATURES:
            return False
    return depth == 0 and not signature.endswith("a")


@dataclass(frozen=True)
class PropertyValue:
    type: PropertyType
    value: Any

    # ---------------------------------------------------------
    # decoding
    # ---------------------------------------------------------
    @classmethod
    def decode(cls, signature: str, raw: Any) -> "PropertyValue":
        if not isinstance(signature, str) or not _valid_signature(signature):
            raise DecodeFailure(f"invalid signature {signature!r}")

        if signature == "b":
            if not isinstance(raw, bool):
                raise DecodeFailure(f"expected boolean for 'b', got {type(raw).__name__}")
            return cls(PropertyType.BOOLEAN, raw)

        if signature in _INTEGER_RANGES:
            low, high = _INTEGER_RANGES[signature]
            if not _is_int(raw) or not low <= raw <= high:
                raise DecodeFailure(f"value {raw!r} does not fit signature {signature!r}")
            return cls(PropertyType.INTEGER, raw)

        if signature == "t":
            low, high = _BIG_INTEGER_RANGE
            if not _is_int(raw) or not low <= raw <= high:
                raise DecodeFailure(f"value {raw!r} does not fit signature 't'")
            return cls(PropertyType.BIG_INTEGER, raw)

        if signature in _STRING_SIGNATURES:
            if not isinstance(raw, str):
                raise DecodeFailure(f"expected string for {signature!r}, got {type(raw).__name__}")
            return cls(PropertyType.STRING, raw)

        if signature == "ay":
            if isinstance(raw, (bytes, bytearray)):
                return cls(PropertyType.BYTES, bytes(raw))
            if isinstance(raw, (list, tuple)) and all(_is_int(b) and 0 <= b <= 255 for b in raw):
                return cls(PropertyType.BYTES, bytes(raw))
            raise DecodeFailure(f"expected byte sequence for 'ay', got {type(raw).__name__}")

        if signature in _STRING_LIST_SIGNATURES:
            if not isinstance(raw, (list, tuple)) or not all(isinstance(s, str) for s in raw):
                raise DecodeFailure(f"expected list of strings for {signature!r}")
            return cls(PropertyType.STRING_LIST, tuple(raw))

        if signature.startswith("(") or signature.startswith("a(") or signature.startswith("a{"):
            if signature.startswith("a{"):
                if not isinstance(raw, Mapping):
                    raise DecodeFailure(f"expected mapping for {signature!r}")
            elif not isinstance(raw, (list, tuple)):
                raise DecodeFailure(f"expected sequence for {signature!r}")
            return cls(PropertyType.RECORD, _freeze(raw))

        # v, d, au, at, ... : kept raw as a nested variant
        return cls(PropertyType.VARIANT, _freeze(raw))

    # ---------------------------------------------------------
    # coercion
    # ---------------------------------------------------------
    def coerce(self, expected: PropertyType, key: str = "?") -> Any:
        if expected == PropertyType.VARIANT or expected == self.type:
            return self.value
        raise TypeMismatch(key, expected, self.type)

    def as_bool(self, key: str = "?") -> bool:
        return self.coerce(PropertyType.BOOLEAN, key)

    def as_int(self, key: str = "?") -> int:
        return self.coerce(PropertyType.INTEGER, key)

    def as_big_int(self, key: str = "?") -> int:
        return self.coerce(PropertyType.BIG_INTEGER, key)

    def as_str(self, key: str = "?") -> str:
        return self.coerce(PropertyType.STRING, key)

    def as_bytes(self, key: str = "?") -> bytes:
        return self.coerce(PropertyType.BYTES, key)

    def as_strings(self, key: str = "?") -> Tuple[str, ...]:
        return self.coerce(PropertyType.STRING_LIST, key)

    def as_record(self, key: str = "?") -> Any:
        return self.coerce(PropertyType.RECORD, key)


ChangeSet = Dict[str, PropertyValue]


def decode_change_set(raw: Mapping[str, RawValue]) -> ChangeSet:
    """Decode every entry or none of them."""
    decoded: ChangeSet = {}
    for key, item in raw.items():
        try:
            signature, value = item
        except (TypeError, ValueError):
            raise DecodeFailure(f"property {key!r}: expected (signature, value), got {item!r}") from None
        try:
            decoded[key] = PropertyValue.decode(signature, value)
        except DecodeFailure as exc:
            raise DecodeFailure(f"property {key!r}: {exc}") from exc
    return decoded
