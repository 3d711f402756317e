#!filepath: sdunits/transport/dasbus_transport.py
"""
Transport over the real system (or session) bus, built on dasbus.

dasbus proxies are synchronous; signal callbacks arrive on the GLib main
loop, which runs here on one daemon thread: the event-delivery thread.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import gi
from dasbus.connection import MessageBus, SessionMessageBus, SystemMessageBus
from dasbus.error import DBusError
from dasbus.loop import EventLoop
from dasbus.typing import unwrap_variant

gi.require_version("GLib", "2.0")
from gi.repository import GLib  # noqa: E402

from sdunits import logs  # noqa: E402
from sdunits.config.bus_config import BusConfig  # noqa: E402
from sdunits.core.interfaces import PropertiesChangedCallback, Transport  # noqa: E402
from sdunits.core.types import RawValue  # noqa: E402
from sdunits.naming import PROPERTIES_INTERFACE  # noqa: E402
from sdunits.utils.errors import TransportFailure  # noqa: E402

_BUS_ERRORS = (DBusError, GLib.Error)


def _raw(variant) -> RawValue:
    return variant.get_type_string(), unwrap_variant(variant)


class DasbusTransport(Transport):
    def __init__(self, config: Optional[BusConfig] = None, bus: Optional[MessageBus] = None):
        self.config = config or BusConfig()

        if bus is not None:
            self.bus = bus
        elif self.config.bus == "system":
            self.bus = SystemMessageBus()
        else:
            self.bus = SessionMessageBus()

        self._proxies: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._loop: Optional[EventLoop] = None
        self._thread: Optional[threading.Thread] = None

    # ---------------------------------------------------------
    # event loop
    # ---------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._loop = EventLoop()
            self._thread = threading.Thread(target=self._loop.run, name="sdunits-dbus-loop", daemon=True)
            self._thread.start()
        logs.info(f"[Transport] event loop started on the {self.config.bus} bus")

    def close(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
            self._proxies.clear()
        if loop is not None:
            loop.quit()
            thread.join(timeout=1.0)
        self.bus.disconnect()
        logs.info("[Transport] closed")

    # ---------------------------------------------------------
    # proxies
    # ---------------------------------------------------------
    def _properties_proxy(self, object_path: str):
        with self._lock:
            proxy = self._proxies.get(object_path)
            if proxy is None:
                proxy = self.bus.get_proxy(self.config.service_name, object_path, PROPERTIES_INTERFACE)
                self._proxies[object_path] = proxy
            return proxy

    def _guard(self, what: str, func: Callable, *args):
        try:
            return func(*args)
        except _BUS_ERRORS as exc:
            raise TransportFailure(f"{what} failed: {exc}") from exc

    # ---------------------------------------------------------
    # Transport
    # ---------------------------------------------------------
    @logs.catch("GetAll failed", log_time=True)
    def get_all(self, object_path: str, interface: str) -> Dict[str, RawValue]:
        proxy = self._properties_proxy(object_path)
        reply = self._guard(f"GetAll({interface}) on {object_path}", proxy.GetAll, interface)
        return {key: _raw(value) for key, value in reply.items()}

    def get(self, object_path: str, interface: str, key: str) -> RawValue:
        proxy = self._properties_proxy(object_path)
        return _raw(self._guard(f"Get({interface}.{key}) on {object_path}", proxy.Get, interface, key))

    def call(self, object_path: str, interface: str, method: str, *args: Any) -> Any:
        proxy = self.bus.get_proxy(self.config.service_name, object_path, interface)
        return self._guard(f"{interface}.{method} on {object_path}", getattr(proxy, method), *args)

    def subscribe_properties(self, object_path: str, callback: PropertiesChangedCallback) -> Tuple[str, Callable]:
        def on_properties_changed(interface: str, changed: Dict[str, Any], invalidated: Iterable[str]) -> None:
            callback(interface, {key: _raw(value) for key, value in changed.items()}, list(invalidated))

        proxy = self._properties_proxy(object_path)
        self._guard(f"PropertiesChanged match on {object_path}", proxy.PropertiesChanged.connect, on_properties_changed)
        return object_path, on_properties_changed

    def unsubscribe_properties(self, handle: Tuple[str, Callable]) -> None:
        object_path, handler = handle
        proxy = self._properties_proxy(object_path)
        proxy.PropertiesChanged.disconnect(handler)
