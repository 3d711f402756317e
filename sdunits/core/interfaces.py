#!filepath: sdunits/core/interfaces.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping

from sdunits.core.types import RawValue

# (interface, changed {key: (signature, value)}, invalidated keys)
PropertiesChangedCallback = Callable[[str, Mapping[str, RawValue], Iterable[str]], None]


class Transport:
    """
    What sdunits needs from the message bus. Every method that talks to the
    remote service raises ``TransportFailure`` when the round trip fails.
    """

    def get_all(self, object_path: str, interface: str) -> Dict[str, RawValue]:
        raise NotImplementedError

    def get(self, object_path: str, interface: str, key: str) -> RawValue:
        raise NotImplementedError

    def call(self, object_path: str, interface: str, method: str, *args: Any) -> Any:
        raise NotImplementedError

    def subscribe_properties(self, object_path: str, callback: PropertiesChangedCallback) -> Any:
        """Deliver PropertiesChanged of ``object_path``; returns an opaque handle."""
        raise NotImplementedError

    def unsubscribe_properties(self, handle: Any) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass
