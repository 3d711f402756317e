# sdunits/manager/registry.py
from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

from sdunits.unit.unit import Unit


class UnitRegistry:
    """
    Normalized unit name -> Unit. At most one Unit per name: two caches for
    the same unit would drift apart silently.
    """

    def __init__(self):
        self._units: Dict[str, Unit] = {}
        self._lock = threading.RLock()

    def get_or_create(self, name: str, factory: Callable[[str], Unit]) -> Unit:
        """``factory`` runs under the registry lock; a failing factory registers nothing."""
        with self._lock:
            unit = self._units.get(name)
            if unit is None:
                unit = factory(name)
                self._units[name] = unit
            return unit

    def get(self, name: str) -> Optional[Unit]:
        with self._lock:
            return self._units.get(name)

    def find(self, object_path: str) -> Optional[Unit]:
        """Linear scan, no reverse index."""
        for unit in self.values():
            if unit.is_assignable_from(object_path):
                return unit
        return None

    def remove(self, name: str) -> Optional[Unit]:
        with self._lock:
            return self._units.pop(name, None)

    def values(self) -> List[Unit]:
        """
        Return all units (read-only view).
        """
        with self._lock:
            return list(self._units.values())

    def clear(self) -> None:
        with self._lock:
            self._units.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._units
