#!filepath: sdunits/unit/unit.py
from __future__ import annotations

import signal as _signal
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Tuple, Union

from sdunits import logs
from sdunits.cache.property_cache import PropertyCache
from sdunits.core.records import Condition, Job, LoadError
from sdunits.core.state import LIFECYCLE_KEYS, StateTuple
from sdunits.core.types import PropertyType
from sdunits.dispatch.dispatcher import StateChangeDispatcher, StateListener
from sdunits.naming import (
    INTROSPECTABLE_INTERFACE,
    UNIT_INTERFACE,
    UnitKind,
    escape_path,
    extract_name,
    unit_object_path,
)
from sdunits.signals.subscription import SignalSubscription

if TYPE_CHECKING:
    from sdunits.manager.manager import Manager


class Mode(str, Enum):
    REPLACE = "replace"
    FAIL = "fail"
    ISOLATE = "isolate"
    IGNORE_DEPENDENCIES = "ignore-dependencies"
    IGNORE_REQUIREMENTS = "ignore-requirements"

    def __str__(self) -> str:
        return self.value


class Who(str, Enum):
    MAIN = "main"
    CONTROL = "control"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


ModeLike = Union[Mode, str]


class Unit:
    """
    Local mirror of one systemd unit.

    - ``unit_properties``: org.freedesktop.systemd1.Unit, carries the lifecycle
      state and feeds the listeners
    - ``properties``: the interface of the unit's kind (Service, Socket, ...)

    Lifecycle verbs are requests: they return the job path as soon as systemd
    queued the job. Completion shows up as a state change.
    No transition is validated locally; what systemd reports is passed on.
    """

    def __init__(self, manager: "Manager", name: str, kind: UnitKind):
        self.manager = manager
        self.name = name
        self.kind = kind
        self.object_path = unit_object_path(name)

        transport = manager.transport
        self._lock = threading.RLock()

        self.unit_properties = PropertyCache(transport, self.object_path, UNIT_INTERFACE, self._lock)
        self.properties = PropertyCache(transport, self.object_path, kind.interface, self._lock)

        self.dispatcher = StateChangeDispatcher(
            self, mode=manager.config.dispatch, metrics=manager.metrics
        )
        self._subscriptions = (
            SignalSubscription(self.unit_properties, self.dispatcher, manager.metrics),
            SignalSubscription(self.properties, None, manager.metrics),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @property
    def subscriptions(self) -> Tuple[SignalSubscription, ...]:
        return self._subscriptions

    # ---------------------------------------------------------
    # wiring (called by the Manager)
    # ---------------------------------------------------------
    def attach(self) -> None:
        for subscription in self._subscriptions:
            subscription.subscribe()

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self.dispatcher.close()
        logs.debug(f"[Unit] closed {self.name}")

    def is_assignable_from(self, object_path: str) -> bool:
        return extract_name(object_path) == escape_path(self.name)

    # ---------------------------------------------------------
    # state
    # ---------------------------------------------------------
    def state(self) -> StateTuple:
        return StateTuple.from_properties(self.unit_properties.capture(LIFECYCLE_KEYS))

    def refresh(self) -> None:
        self.unit_properties.refresh_all()
        self.properties.refresh_all()

    def get(self, key: str, expected: PropertyType = PropertyType.VARIANT) -> Any:
        """Generic Unit interface property, coerced to ``expected``."""
        return self.unit_properties.get(key, expected)

    def add_listener(self, callback: StateListener) -> None:
        self.dispatcher.add_listener(callback)

    def remove_listener(self, callback: StateListener) -> None:
        self.dispatcher.remove_listener(callback)

    def flush_listeners(self, timeout: Optional[float] = None) -> bool:
        if timeout is None:
            timeout = self.manager.config.flush_timeout
        return self.dispatcher.flush(timeout)

    def introspect(self) -> str:
        return self.manager.transport.call(self.object_path, INTROSPECTABLE_INTERFACE, "Introspect")

    # ---------------------------------------------------------
    # lifecycle verbs
    # ---------------------------------------------------------
    def start(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.start_unit(self.name, mode)

    def stop(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.stop_unit(self.name, mode)

    def reload(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.reload_unit(self.name, mode)

    def restart(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.restart_unit(self.name, mode)

    def try_restart(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.try_restart_unit(self.name, mode)

    def reload_or_restart(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.reload_or_restart_unit(self.name, mode)

    def reload_or_try_restart(self, mode: Optional[ModeLike] = None) -> str:
        return self.manager.reload_or_try_restart_unit(self.name, mode)

    def kill(self, who: Union[Who, str] = Who.ALL, signal: int = _signal.SIGTERM) -> None:
        self.manager.kill_unit(self.name, who, signal)

    def reset_failed(self) -> None:
        self.manager.reset_failed_unit(self.name)

    def unref(self) -> None:
        self.manager.unref_unit(self.name)

    # ---------------------------------------------------------
    # typed accessors (org.freedesktop.systemd1.Unit)
    # everything else: unit.get(key, PropertyType.X)
    # ---------------------------------------------------------
    @property
    def id(self) -> str:
        return self.unit_properties.get("Id", PropertyType.STRING)

    @property
    def names(self) -> Tuple[str, ...]:
        return self.unit_properties.get("Names", PropertyType.STRING_LIST)

    @property
    def description(self) -> str:
        return self.unit_properties.get("Description", PropertyType.STRING)

    @property
    def load_state(self) -> str:
        return self.unit_properties.get("LoadState", PropertyType.STRING)

    @property
    def active_state(self) -> str:
        return self.unit_properties.get("ActiveState", PropertyType.STRING)

    @property
    def sub_state(self) -> str:
        return self.unit_properties.get("SubState", PropertyType.STRING)

    @property
    def following(self) -> str:
        return self.unit_properties.get("Following", PropertyType.STRING)

    @property
    def fragment_path(self) -> str:
        return self.unit_properties.get("FragmentPath", PropertyType.STRING)

    @property
    def unit_file_state(self) -> str:
        return self.unit_properties.get("UnitFileState", PropertyType.STRING)

    @property
    def requires(self) -> Tuple[str, ...]:
        return self.unit_properties.get("Requires", PropertyType.STRING_LIST)

    @property
    def wants(self) -> Tuple[str, ...]:
        return self.unit_properties.get("Wants", PropertyType.STRING_LIST)

    @property
    def after(self) -> Tuple[str, ...]:
        return self.unit_properties.get("After", PropertyType.STRING_LIST)

    @property
    def before(self) -> Tuple[str, ...]:
        return self.unit_properties.get("Before", PropertyType.STRING_LIST)

    @property
    def can_start(self) -> bool:
        return self.unit_properties.get("CanStart", PropertyType.BOOLEAN)

    @property
    def can_stop(self) -> bool:
        return self.unit_properties.get("CanStop", PropertyType.BOOLEAN)

    @property
    def can_reload(self) -> bool:
        return self.unit_properties.get("CanReload", PropertyType.BOOLEAN)

    @property
    def need_daemon_reload(self) -> bool:
        return self.unit_properties.get("NeedDaemonReload", PropertyType.BOOLEAN)

    @property
    def active_enter_timestamp(self) -> int:
        # usec since the epoch, 't' on the wire
        return self.unit_properties.get("ActiveEnterTimestamp", PropertyType.BIG_INTEGER)

    @property
    def state_change_timestamp(self) -> int:
        return self.unit_properties.get("StateChangeTimestamp", PropertyType.BIG_INTEGER)

    @property
    def job_timeout_usec(self) -> int:
        return self.unit_properties.get("JobTimeoutUSec", PropertyType.BIG_INTEGER)

    @property
    def invocation_id(self) -> bytes:
        return self.unit_properties.get("InvocationID", PropertyType.BYTES)

    @property
    def job(self) -> Job:
        return Job.from_raw(self.unit_properties.get("Job", PropertyType.RECORD))

    @property
    def load_error(self) -> LoadError:
        return LoadError.from_raw(self.unit_properties.get("LoadError", PropertyType.RECORD))

    @property
    def conditions(self) -> List[Condition]:
        return Condition.list(self.unit_properties.get("Conditions", PropertyType.RECORD))

    @property
    def asserts(self) -> List[Condition]:
        return Condition.list(self.unit_properties.get("Asserts", PropertyType.RECORD))
