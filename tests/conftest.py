# tests/conftest.py
from __future__ import annotations

import threading
from typing import Any, Dict, List, Tuple

import pytest
from loguru import logger

from sdunits.config.bus_config import BusConfig
from sdunits.manager.manager import Manager
from sdunits.naming import UNIT_INTERFACE, unit_object_path
from sdunits.utils.errors import TransportFailure


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture
def captured_logs():
    """Messages logged during the test, as plain strings."""
    captured: List[str] = []
    sink_id = logger.add(lambda msg: captured.append(str(msg)), level="DEBUG")
    yield captured
    logger.remove(sink_id)


# =============================================================================
# In-memory transport
# =============================================================================

class FakeTransport:
    """
    Stands in for the bus.

    - objects[path][interface] = {key: (signature, value)}
    - emit() plays the event-delivery thread: it calls every subscriber of a path
    - fail_get_all / fail_get / fail_calls make the matching round trip raise
    """

    def __init__(self):
        self.objects: Dict[str, Dict[str, Dict[str, Tuple[str, Any]]]] = {}
        self.get_all_calls: List[Tuple[str, str]] = []
        self.get_calls: List[Tuple[str, str, str]] = []
        self.calls: List[Tuple[str, str, str, tuple]] = []
        self.subscriptions: Dict[int, Tuple[str, Any]] = {}
        self.fail_get_all = False
        self.fail_get = False
        self.fail_calls = False
        self.closed = False
        self._next_handle = 0
        self._next_job = 0
        self._lock = threading.Lock()

    def add_object(self, path: str, interface: str, props: Dict[str, Tuple[str, Any]]) -> None:
        self.objects.setdefault(path, {})[interface] = dict(props)

    def add_unit(self, name: str, interface: str = UNIT_INTERFACE, **props) -> str:
        path = unit_object_path(name)
        self.add_object(path, interface, props)
        return path

    # ---------- Transport ----------
    def get_all(self, object_path, interface):
        self.get_all_calls.append((object_path, interface))
        if self.fail_get_all:
            raise TransportFailure("GetAll: connection reset")
        return dict(self.objects.get(object_path, {}).get(interface, {}))

    def get(self, object_path, interface, key):
        self.get_calls.append((object_path, interface, key))
        if self.fail_get:
            raise TransportFailure("Get: connection reset")
        return self.objects[object_path][interface][key]

    def call(self, object_path, interface, method, *args):
        self.calls.append((object_path, interface, method, args))
        if self.fail_calls:
            raise TransportFailure(f"{method}: access denied")
        if method.endswith("Unit") and method not in ("KillUnit", "ResetFailedUnit", "UnrefUnit"):
            self._next_job += 1
            return f"/org/freedesktop/systemd1/job/{self._next_job}"
        if method == "Introspect":
            return "<node/>"
        return None

    def subscribe_properties(self, object_path, callback):
        with self._lock:
            self._next_handle += 1
            self.subscriptions[self._next_handle] = (object_path, callback)
            return self._next_handle

    def unsubscribe_properties(self, handle):
        with self._lock:
            self.subscriptions.pop(handle, None)

    def close(self):
        self.closed = True

    # ---------- helpers ----------
    def subscribers(self, object_path: str) -> list:
        with self._lock:
            return [cb for path, cb in self.subscriptions.values() if path == object_path]

    def emit(self, object_path: str, interface: str, changed: Dict[str, Tuple[str, Any]], invalidated=()):
        """Update the remote side, then deliver PropertiesChanged."""
        self.objects.setdefault(object_path, {}).setdefault(interface, {}).update(changed)
        for callback in self.subscribers(object_path):
            callback(interface, dict(changed), list(invalidated))

    def method_names(self) -> List[str]:
        return [method for _, _, method, _ in self.calls]


def unit_props(load="loaded", active="active", sub="running", **extra) -> Dict[str, Tuple[str, Any]]:
    props = {
        "Id": ("s", "foo.service"),
        "Names": ("as", ["foo.service"]),
        "Description": ("s", "Foo daemon"),
        "LoadState": ("s", load),
        "ActiveState": ("s", active),
        "SubState": ("s", sub),
        "CanStart": ("b", True),
        "CanStop": ("b", True),
        "CanReload": ("b", False),
        "ActiveEnterTimestamp": ("t", 1_700_000_000_000_000),
        "JobTimeoutUSec": ("t", 2**64 - 1),
        "InvocationID": ("ay", bytes(range(16))),
        "Job": ("(uo)", (0, "/")),
        "LoadError": ("(ss)", ("", "")),
        "Conditions": ("a(sbbsi)", [("ConditionPathExists", False, False, "/etc/foo.conf", 1)]),
        "Asserts": ("a(sbbsi)", []),
        "StartLimitBurst": ("u", 5),
    }
    props.update(extra)
    return props


@pytest.fixture(name="unit_props")
def unit_props_fixture():
    return unit_props


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_manager(transport):
    """
    Factory fixture for Manager over the fake transport.

        manager = make_manager()                 # queued dispatch
        manager = make_manager(dispatch="inline")
    """
    managers = []

    def _make(**bus) -> Manager:
        manager = Manager(transport, BusConfig(**bus))
        managers.append(manager)
        return manager

    yield _make

    transport.fail_calls = False
    for manager in managers:
        manager.close()


@pytest.fixture
def manager(make_manager) -> Manager:
    return make_manager()


@pytest.fixture
def foo_path(transport) -> str:
    """foo.service exposed on the Unit and Service interfaces."""
    path = transport.add_unit("foo.service", **unit_props())
    transport.add_object(
        path,
        "org.freedesktop.systemd1.Service",
        {"MainPID": ("u", 4242), "Restart": ("s", "on-failure"), "ExecMainStatus": ("i", 0)},
    )
    return path
