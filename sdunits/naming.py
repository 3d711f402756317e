#!filepath: sdunits/naming.py
"""
Unit names and their object paths.

    foo            -> foo.service
    foo.service    -> /org/freedesktop/systemd1/unit/foo_2eservice
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from sdunits.utils.errors import InvalidUnitName

SERVICE_NAME = "org.freedesktop.systemd1"
OBJECT_PATH = "/org/freedesktop/systemd1"
UNIT_OBJECT_PATH = OBJECT_PATH + "/unit/"

MANAGER_INTERFACE = SERVICE_NAME + ".Manager"
UNIT_INTERFACE = SERVICE_NAME + ".Unit"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
INTROSPECTABLE_INTERFACE = "org.freedesktop.DBus.Introspectable"

DEFAULT_SUFFIX = ".service"


class UnitKind(str, Enum):
    SERVICE = "service"
    SOCKET = "socket"
    TARGET = "target"
    DEVICE = "device"
    MOUNT = "mount"
    AUTOMOUNT = "automount"
    SWAP = "swap"
    TIMER = "timer"
    PATH = "path"
    SLICE = "slice"
    SCOPE = "scope"

    @property
    def suffix(self) -> str:
        return "." + self.value

    @property
    def interface(self) -> str:
        return f"{SERVICE_NAME}.{self.value.capitalize()}"

    @classmethod
    def from_name(cls, name: str) -> Optional["UnitKind"]:
        _, dot, suffix = name.rpartition(".")
        if not dot:
            return None
        try:
            return cls(suffix)
        except ValueError:
            return None


def _is_plain(char: int, first: bool) -> bool:
    if ord("a") <= char <= ord("z") or ord("A") <= char <= ord("Z"):
        return True
    return not first and ord("0") <= char <= ord("9")


def escape_path(name: str) -> str:
    """Escape a unit name into one object path label."""
    if not name:
        return "_"

    out = []
    for index, char in enumerate(name.encode("utf-8")):
        if _is_plain(char, index == 0):
            out.append(chr(char))
        else:
            out.append(f"_{char:02x}")
    return "".join(out)


def unescape_path(label: str) -> str:
    if label == "_":
        return ""

    out = bytearray()
    index = 0
    while index < len(label):
        char = label[index]
        if char == "_":
            chunk = label[index + 1:index + 3]
            if len(chunk) != 2:
                raise InvalidUnitName(f"truncated escape in {label!r}")
            try:
                out.append(int(chunk, 16))
            except ValueError:
                raise InvalidUnitName(f"bad escape {chunk!r} in {label!r}") from None
            index += 3
        else:
            out.append(ord(char))
            index += 1
    return out.decode("utf-8")


def normalize_name(name: str, suffix: Optional[str] = None) -> str:
    """
    Append ``suffix`` unless the name already carries it. Without an explicit
    suffix, names that do not end in a known unit type become services.
    """
    if not name or not name.strip():
        raise InvalidUnitName("unit name must not be empty")

    name = name.strip()
    if suffix is None:
        if UnitKind.from_name(name) is not None:
            return name
        suffix = DEFAULT_SUFFIX

    return name if name.endswith(suffix) else name + suffix


def extract_name(object_path: Optional[str]) -> str:
    """Escaped label of a unit object path, ``""`` for anything else."""
    if object_path and object_path.startswith(UNIT_OBJECT_PATH):
        return object_path[len(UNIT_OBJECT_PATH):]
    return ""


def unit_object_path(name: str) -> str:
    return UNIT_OBJECT_PATH + escape_path(name)


def name_from_path(object_path: Optional[str]) -> Optional[str]:
    """Readable unit name of a unit object path, None when it is not one."""
    label = extract_name(object_path)
    if not label:
        return None
    try:
        return unescape_path(label)
    except (InvalidUnitName, UnicodeDecodeError):
        return None
