#!filepath: sdunits/core/records.py
"""Typed views over RECORD properties of the generic Unit interface."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple, Type, TypeVar

from sdunits.utils.errors import TypeMismatch

R = TypeVar("R", bound="_Record")


class _Record:
    # one (name, python type) pair per struct member, in wire order
    _fields: Tuple[Tuple[str, type], ...] = ()

    @classmethod
    def from_raw(cls: Type[R], row: Sequence[Any]) -> R:
        if not isinstance(row, (list, tuple)) or len(row) != len(cls._fields):
            raise TypeMismatch(cls.__name__, f"struct of {len(cls._fields)} members", row)

        values = []
        for (name, kind), item in zip(cls._fields, row):
            ok = isinstance(item, kind)
            if kind is int and isinstance(item, bool):
                ok = False
            if not ok:
                raise TypeMismatch(f"{cls.__name__}.{name}", kind.__name__, type(item).__name__)
            values.append(item)
        return cls(*values)

    @classmethod
    def list(cls: Type[R], rows: Iterable[Sequence[Any]]) -> List[R]:
        return [cls.from_raw(row) for row in rows]


@dataclass(frozen=True)
class Job(_Record):
    """Pending job of a unit, ``(uo)``. ``id == 0`` means no job."""

    id: int
    object_path: str

    _fields = (("id", int), ("object_path", str))

    @property
    def pending(self) -> bool:
        return self.id != 0


@dataclass(frozen=True)
class LoadError(_Record):
    """D-Bus error name and message of a failed load, ``(ss)``."""

    name: str
    message: str

    _fields = (("name", str), ("message", str))

    @property
    def is_error(self) -> bool:
        return bool(self.name)


@dataclass(frozen=True)
class Condition(_Record):
    """One ``Condition*=`` / ``Assert*=`` line, ``(sbbsi)``."""

    type: str
    trigger: bool
    negate: bool
    parameter: str
    # >0 satisfied, <0 failed, 0 not checked yet
    state: int

    _fields = (
        ("type", str),
        ("trigger", bool),
        ("negate", bool),
        ("parameter", str),
        ("state", int),
    )

    @property
    def checked(self) -> bool:
        return self.state != 0

    @property
    def satisfied(self) -> bool:
        return self.state > 0
