#!filepath: sdunits/core/state.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from sdunits.core.types import PropertyType, PropertyValue

LOAD_STATE = "LoadState"
ACTIVE_STATE = "ActiveState"
SUB_STATE = "SubState"

LIFECYCLE_KEYS = (LOAD_STATE, ACTIVE_STATE, SUB_STATE)

UNKNOWN_STATE = "unknown"

# documentation only: the remote service may report values outside these sets
LoadState = Literal["stub", "loaded", "not-found", "bad-setting", "error", "merged", "masked"]
ActiveState = Literal[
    "active", "reloading", "inactive", "failed", "activating", "deactivating", "maintenance"
]


def touches_lifecycle(changes: Mapping[str, Any]) -> bool:
    return any(key in changes for key in LIFECYCLE_KEYS)


def _state_of(value: Optional[PropertyValue]) -> str:
    if value is None:
        return UNKNOWN_STATE
    if value.type == PropertyType.STRING:
        return value.value
    return str(value.value)


@dataclass(frozen=True)
class StateTuple:
    load_state: str = UNKNOWN_STATE
    active_state: str = UNKNOWN_STATE
    sub_state: str = UNKNOWN_STATE

    @classmethod
    def resolve(
        cls,
        changes: Mapping[str, PropertyValue],
        prior: Mapping[str, Optional[PropertyValue]],
    ) -> "StateTuple":
        """
        Field from ``changes`` when carried by this event, else from the
        pre-update snapshot ``prior``, else ``UNKNOWN_STATE``.
        """
        fields = []
        for key in LIFECYCLE_KEYS:
            value = changes.get(key)
            if value is None:
                value = prior.get(key)
            fields.append(_state_of(value))
        return cls(*fields)

    @classmethod
    def from_properties(cls, properties: Mapping[str, Optional[PropertyValue]]) -> "StateTuple":
        return cls(*(_state_of(properties.get(key)) for key in LIFECYCLE_KEYS))

    @property
    def is_loaded(self) -> bool:
        return self.load_state == "loaded"

    @property
    def is_active(self) -> bool:
        return self.active_state == "active"

    @property
    def is_failed(self) -> bool:
        return self.active_state == "failed"

    @property
    def is_transitioning(self) -> bool:
        return self.active_state in ("activating", "deactivating", "reloading")

    def __str__(self) -> str:
        return f"{self.load_state}/{self.active_state}/{self.sub_state}"
