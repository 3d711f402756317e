#!filepath: sdunits/observability/metrics.py
import threading
from dataclasses import dataclass, field
from typing import Any, Dict

from sdunits import logs


@dataclass
class MetricRecorder:
    """Counters shared by the delivery threads of one Manager."""

    enabled: bool = True
    metrics: Dict[str, Any] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, name: str, value: Any):
        if not self.enabled:
            return
        with self._lock:
            self.metrics[name] = value
        logs.debug(f"[Metric] {name} = {value}")

    def incr(self, name: str, step: int = 1) -> int:
        if not self.enabled:
            return 0
        with self._lock:
            value = self.metrics.get(name, 0) + step
            self.metrics[name] = value
        return value

    def get(self, name: str, default: Any = 0) -> Any:
        with self._lock:
            return self.metrics.get(name, default)
