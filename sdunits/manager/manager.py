#!filepath: sdunits/manager/manager.py
from __future__ import annotations

import threading
from typing import Any, Iterable, Mapping, Optional, Union

from sdunits import logs
from sdunits.config.bus_config import BusConfig
from sdunits.core.interfaces import Transport
from sdunits.core.types import RawValue
from sdunits.naming import MANAGER_INTERFACE, UnitKind, name_from_path, normalize_name
from sdunits.observability.metrics import MetricRecorder
from sdunits.manager.registry import UnitRegistry
from sdunits.unit.unit import ModeLike, Unit, Who


class Manager:
    """
    org.freedesktop.systemd1.Manager plus the table of Units built so far.

    Owns the single Subscribe/Unsubscribe toggle of the bus: systemd only
    emits unit signals to subscribed clients, so the first live Unit turns it
    on and the last released one turns it off.
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[BusConfig] = None,
        metrics: Optional[MetricRecorder] = None,
    ):
        self.transport = transport
        self.config = config or BusConfig()
        self.metrics = metrics or MetricRecorder()
        self.registry = UnitRegistry()

        self._subscribe_lock = threading.Lock()
        self._subscribers = 0
        # systemd's side of the toggle; stays True after a failed Unsubscribe
        self._remote_subscribed = False

    # ---------------------------------------------------------
    # unit table
    # ---------------------------------------------------------
    def get_unit(self, name: str, kind: Optional[UnitKind] = None) -> Unit:
        """
        Existing Unit for ``name`` or a new one. ``foo`` and ``foo.service``
        resolve to the same instance.
        """
        name = normalize_name(name, kind.suffix if kind is not None else None)
        return self.registry.get_or_create(name, self._create_unit)

    def get_service(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.SERVICE)

    def get_socket(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.SOCKET)

    def get_swap(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.SWAP)

    def get_timer(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.TIMER)

    def get_target(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.TARGET)

    def get_mount(self, name: str) -> Unit:
        return self.get_unit(name, UnitKind.MOUNT)

    def find_unit(self, object_path: str) -> Optional[Unit]:
        return self.registry.find(object_path)

    def _create_unit(self, name: str) -> Unit:
        unit = Unit(self, name, UnitKind.from_name(name))

        self.subscribe()
        try:
            unit.attach()
        except Exception:
            self._rollback(unit)
            raise

        # runs under the registry lock, before the unit is stored
        self.metrics.record("units.live", len(self.registry) + 1)
        logs.info(f"[Manager] tracking {name} at {unit.object_path}")
        return unit

    def _rollback(self, unit: Unit) -> None:
        """Undo a half-built Unit; errors here never replace the attach failure."""
        for step in (unit.close, self.unsubscribe):
            try:
                step()
            except Exception as exc:
                logs.warning(f"[Manager] rollback of {unit.name}: {step.__name__} failed: {exc}")

    def release_unit(self, name: str) -> bool:
        unit = self.registry.remove(normalize_name(name))
        if unit is None:
            return False
        self.metrics.record("units.live", len(self.registry))
        unit.close()
        self.unsubscribe()
        return True

    def route_properties_changed(
        self,
        object_path: str,
        interface: str,
        changed: Mapping[str, RawValue],
        invalidated: Iterable[str] = (),
    ) -> bool:
        """
        Entry point for transports that deliver one bus-wide stream instead
        of per-object subscriptions. False when no Unit claims the path.
        """
        unit = self.registry.find(object_path)
        if unit is None:
            logs.debug(f"[Manager] no tracked unit for {name_from_path(object_path) or object_path}")
            return False
        for subscription in unit.subscriptions:
            subscription.deliver(interface, changed, invalidated)
        return True

    # ---------------------------------------------------------
    # event toggle
    # ---------------------------------------------------------
    @property
    def subscribed(self) -> bool:
        return self._remote_subscribed

    def subscribe(self) -> None:
        with self._subscribe_lock:
            if not self._remote_subscribed:
                self._call("Subscribe")
                self._remote_subscribed = True
                logs.info("[Manager] subscribed to unit signals")
            self._subscribers += 1

    def unsubscribe(self) -> None:
        """
        The count drops even when Unsubscribe fails; systemd stays
        subscribed and the next release of the last Unit retries the call.
        """
        with self._subscribe_lock:
            if self._subscribers == 0:
                return
            self._subscribers -= 1
            if self._subscribers == 0 and self._remote_subscribed:
                self._call("Unsubscribe")
                self._remote_subscribed = False
                logs.info("[Manager] unsubscribed from unit signals")

    # ---------------------------------------------------------
    # remote calls
    # ---------------------------------------------------------
    @logs.catch("manager call failed")
    def _call(self, method: str, *args: Any) -> Any:
        return self.transport.call(self.config.object_path, MANAGER_INTERFACE, method, *args)

    def _job(self, method: str, name: str, mode: Optional[ModeLike]) -> str:
        mode = mode or self.config.default_mode
        job = self._call(method, name, str(mode))
        logs.info(f"[Manager] {method}({name}, {mode}) -> {job}")
        return str(job)

    # mode None: BusConfig.default_mode
    def start_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("StartUnit", name, mode)

    def stop_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("StopUnit", name, mode)

    def reload_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("ReloadUnit", name, mode)

    def restart_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("RestartUnit", name, mode)

    def try_restart_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("TryRestartUnit", name, mode)

    def reload_or_restart_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("ReloadOrRestartUnit", name, mode)

    def reload_or_try_restart_unit(self, name: str, mode: Optional[ModeLike] = None) -> str:
        return self._job("ReloadOrTryRestartUnit", name, mode)

    def kill_unit(self, name: str, who: Union[Who, str], signal: int) -> None:
        self._call("KillUnit", name, str(who), int(signal))
        logs.info(f"[Manager] KillUnit({name}, {who}, {int(signal)})")

    def reset_failed_unit(self, name: str) -> None:
        self._call("ResetFailedUnit", name)

    def unref_unit(self, name: str) -> None:
        self._call("UnrefUnit", name)

    # ---------------------------------------------------------
    def close(self) -> None:
        for unit in self.registry.values():
            self.release_unit(unit.name)
        logs.info("[Manager] closed")
