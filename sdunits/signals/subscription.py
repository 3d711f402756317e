#!filepath: sdunits/signals/subscription.py
from __future__ import annotations

import threading
from typing import Any, Iterable, Mapping, Optional

from sdunits import logs
from sdunits.cache.property_cache import PropertyCache
from sdunits.core.types import ChangeSet, RawValue, decode_change_set
from sdunits.dispatch.dispatcher import StateChangeDispatcher
from sdunits.observability.metrics import MetricRecorder
from sdunits.utils.errors import DecodeFailure, TransportFailure


class SignalSubscription:
    """
    PropertiesChanged of one interface of one remote object.

    deliver():
        raw notification
          -> decode (all keys, invalidated ones fetched) or drop
          -> cache.apply_change_set()
          -> dispatcher.publish()        (only when a dispatcher is attached)
    """

    def __init__(
        self,
        cache: PropertyCache,
        dispatcher: Optional[StateChangeDispatcher] = None,
        metrics: Optional[MetricRecorder] = None,
    ):
        self.cache = cache
        self.dispatcher = dispatcher
        self.metrics = metrics or MetricRecorder()

        self._lock = threading.Lock()
        self._delivery_lock = threading.Lock()
        self._handle: Any = None
        self._active = False

    @property
    def object_path(self) -> str:
        return self.cache.object_path

    @property
    def interface(self) -> str:
        return self.cache.interface

    @property
    def active(self) -> bool:
        return self._active

    def subscribe(self) -> None:
        """Second call while subscribed is a no-op."""
        with self._lock:
            if self._active:
                return
            self._handle = self.cache.transport.subscribe_properties(self.object_path, self.deliver)
            self._active = True
        logs.debug(f"[Signal] subscribed {self.object_path} {self.interface}")

    def unsubscribe(self) -> None:
        """
        Safe when never subscribed. A delivery already past the ``active``
        check may still complete; nothing new is accepted afterwards.
        """
        with self._lock:
            if not self._active:
                return
            self._active = False
            handle, self._handle = self._handle, None
        self.cache.transport.unsubscribe_properties(handle)
        logs.debug(f"[Signal] unsubscribed {self.object_path} {self.interface}")

    # ---------------------------------------------------------
    # delivery (transport event thread)
    # ---------------------------------------------------------
    def deliver(
        self,
        interface: str,
        changed: Mapping[str, RawValue],
        invalidated: Iterable[str] = (),
    ) -> None:
        if not self._active or interface != self.interface:
            return

        try:
            changes = self._decode(changed, invalidated)
        except DecodeFailure as exc:
            self.metrics.incr("signals.dropped")
            logs.warning(f"[Signal] dropped notification for {self.object_path} {interface}: {exc}")
            return

        if not changes:
            return

        with self._delivery_lock:
            if not self._active:
                return
            prior = self.cache.apply_change_set(changes)
            self.metrics.incr("signals.delivered")
            if self.dispatcher is not None:
                self.dispatcher.publish(changes, prior)

    def _decode(self, changed: Mapping[str, RawValue], invalidated: Iterable[str]) -> ChangeSet:
        changes = decode_change_set(changed)
        for key in invalidated:
            if key in changes:
                continue
            try:
                changes[key] = self.cache.fetch(key)
            except TransportFailure as exc:
                raise DecodeFailure(f"could not fetch invalidated property {key!r}: {exc}") from exc
        return changes
