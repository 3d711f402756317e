#!filepath: sdunits/cache/property_cache.py
from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sdunits import logs
from sdunits.core.interfaces import Transport
from sdunits.core.state import LIFECYCLE_KEYS
from sdunits.core.types import PropertyType, PropertyValue, decode_change_set
from sdunits.utils.errors import DecodeFailure, TransportFailure, UnknownKey


class PropertyCache:
    """
    Last known value of every property of one interface of one remote object.

    Two update paths:
    1. pull  : one GetAll on first access, or on refresh_all()
    2. push  : apply_change_set() from the signal subscription, no round trip

    Entries are overwritten, never removed. Both paths mutate under ``lock``,
    which the owning Unit shares between its caches.
    """

    def __init__(
        self,
        transport: Transport,
        object_path: str,
        interface: str,
        lock: Optional[threading.RLock] = None,
    ):
        self.transport = transport
        self.object_path = object_path
        self.interface = interface
        self.lock = lock or threading.RLock()

        self._values: Dict[str, PropertyValue] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ---------------------------------------------------------
    # pull
    # ---------------------------------------------------------
    def refresh_all(self) -> None:
        """
        Replace the whole map with one GetAll round trip.
        Blocks the caller for the round trip; TransportFailure propagates
        and leaves the previous map untouched.
        """
        with self.lock:
            raw = self.transport.get_all(self.object_path, self.interface)
            try:
                values = decode_change_set(raw)
            except DecodeFailure as exc:
                raise TransportFailure(
                    f"GetAll({self.interface}) on {self.object_path} returned undecodable data: {exc}"
                ) from exc

            self._values = values
            self._initialized = True

        logs.debug(f"[Cache] {self.object_path} {self.interface}: loaded {len(values)} properties")

    def _ensure_loaded(self) -> None:
        if not self._initialized:
            with self.lock:
                if not self._initialized:
                    self.refresh_all()

    def fetch(self, key: str) -> PropertyValue:
        """Single Get round trip, used for invalidated properties. Does not touch the map."""
        signature, value = self.transport.get(self.object_path, self.interface, key)
        return PropertyValue.decode(signature, value)

    # ---------------------------------------------------------
    # read
    # ---------------------------------------------------------
    def get_value(self, key: str) -> PropertyValue:
        self._ensure_loaded()
        with self.lock:
            try:
                return self._values[key]
            except KeyError:
                raise UnknownKey(key, self.interface) from None

    def get(self, key: str, expected: PropertyType) -> Any:
        return self.get_value(key).coerce(expected, key)

    def capture(self, keys: Iterable[str]) -> Dict[str, Optional[PropertyValue]]:
        """Consistent read of several keys; missing keys map to None."""
        self._ensure_loaded()
        with self.lock:
            return {key: self._values.get(key) for key in keys}

    def snapshot(self) -> Dict[str, PropertyValue]:
        self._ensure_loaded()
        with self.lock:
            return dict(self._values)

    def keys(self) -> List[str]:
        self._ensure_loaded()
        with self.lock:
            return list(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self.keys()

    # ---------------------------------------------------------
    # push
    # ---------------------------------------------------------
    def apply_change_set(
        self,
        changes: Mapping[str, PropertyValue],
        capture: Iterable[str] = LIFECYCLE_KEYS,
    ) -> Dict[str, Optional[PropertyValue]]:
        """
        Overwrite the keys present in ``changes``. Returns the values of
        ``capture`` as they were right before this update, read under the same
        lock so no other writer can slip in between.

        Works on a cache that was never loaded: the entries are kept and the
        first bulk fetch replaces them.
        """
        with self.lock:
            prior = {key: self._values.get(key) for key in capture}
            self._values.update(changes)
        return prior
