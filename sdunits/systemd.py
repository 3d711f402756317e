#!filepath: sdunits/systemd.py
from __future__ import annotations

from typing import Optional

from sdunits import logs
from sdunits.config.app_config import AppConfig
from sdunits.core.interfaces import Transport
from sdunits.manager.manager import Manager
from sdunits.observability.metrics import MetricRecorder


class Systemd:
    """
    Application-level owner of one bus connection and its Manager.

        with Systemd.open() as systemd:
            unit = systemd.manager.get_service("dbus")
            print(unit.state())
    """

    def __init__(self, transport: Transport, config: Optional[AppConfig] = None):
        self.transport = transport
        self.config = config or AppConfig()
        self.metrics = MetricRecorder()
        self._manager: Optional[Manager] = None
        self._closed = False

    @classmethod
    def open(cls, config: Optional[AppConfig] = None) -> "Systemd":
        """Connect to the configured bus through dasbus and start delivering signals."""
        from sdunits.transport.dasbus_transport import DasbusTransport

        config = config or AppConfig.load()
        logs.configure_from(config.log)

        transport = DasbusTransport(config.bus)
        transport.start()
        return cls(transport, config)

    @property
    def manager(self) -> Manager:
        if self._closed:
            raise RuntimeError("Systemd context is closed")
        if self._manager is None:
            self._manager = Manager(self.transport, self.config.bus, self.metrics)
        return self._manager

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._manager is not None:
                self._manager.close()
        finally:
            self.transport.close()

    def __enter__(self) -> "Systemd":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
