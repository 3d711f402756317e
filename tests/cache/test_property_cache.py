import threading

import pytest

from sdunits.cache.property_cache import PropertyCache
from sdunits.core.types import PropertyType, PropertyValue, decode_change_set
from sdunits.naming import UNIT_INTERFACE
from sdunits.utils.errors import TransportFailure, TypeMismatch, UnknownKey


@pytest.fixture
def cache(transport, foo_path) -> PropertyCache:
    return PropertyCache(transport, foo_path, UNIT_INTERFACE)


def test_first_access_fetches_once(cache, transport):
    assert not cache.initialized

    assert cache.get("Description", PropertyType.STRING) == "Foo daemon"
    assert cache.get("CanStart", PropertyType.BOOLEAN) is True
    assert cache.get("ActiveState", PropertyType.STRING) == "active"

    assert cache.initialized
    assert transport.get_all_calls == [(cache.object_path, UNIT_INTERFACE)]


def test_refresh_then_get_returns_bulk_values(cache, transport, unit_props):
    cache.refresh_all()

    for key, (signature, raw) in unit_props().items():
        assert cache.get_value(key) == PropertyValue.decode(signature, raw)

    assert cache.get("JobTimeoutUSec", PropertyType.BIG_INTEGER) == 2**64 - 1
    assert cache.get("InvocationID", PropertyType.BYTES) == bytes(range(16))
    assert cache.get("Names", PropertyType.STRING_LIST) == ("foo.service",)


def test_unknown_key(cache):
    with pytest.raises(UnknownKey) as err:
        cache.get("NoSuchProperty", PropertyType.STRING)

    assert err.value.interface == UNIT_INTERFACE
    assert isinstance(err.value, LookupError)


def test_type_mismatch(cache):
    with pytest.raises(TypeMismatch) as err:
        cache.get("ActiveEnterTimestamp", PropertyType.INTEGER)

    assert err.value.key == "ActiveEnterTimestamp"


def test_transport_failure_surfaces_and_keeps_previous_map(cache, transport):
    cache.refresh_all()
    transport.objects[cache.object_path][UNIT_INTERFACE]["Description"] = ("s", "changed remotely")
    transport.fail_get_all = True

    with pytest.raises(TransportFailure):
        cache.refresh_all()

    assert cache.get("Description", PropertyType.STRING) == "Foo daemon"
    assert len(transport.get_all_calls) == 2


def test_first_access_failure_is_not_swallowed(cache, transport):
    transport.fail_get_all = True

    with pytest.raises(TransportFailure):
        cache.get("Id", PropertyType.STRING)

    assert not cache.initialized

    transport.fail_get_all = False
    assert cache.get("Id", PropertyType.STRING) == "foo.service"


def test_undecodable_bulk_reply_is_a_transport_failure(cache, transport):
    transport.objects[cache.object_path][UNIT_INTERFACE]["CanStart"] = ("b", "yes")

    with pytest.raises(TransportFailure):
        cache.refresh_all()

    assert not cache.initialized


def test_refresh_replaces_everything(cache, transport):
    cache.refresh_all()
    transport.objects[cache.object_path][UNIT_INTERFACE]["SubState"] = ("s", "reloading")

    cache.refresh_all()

    assert cache.get("SubState", PropertyType.STRING) == "reloading"


def test_apply_change_set_has_no_round_trip(cache, transport):
    cache.refresh_all()

    prior = cache.apply_change_set(decode_change_set({"ActiveState": ("s", "deactivating")}))

    assert cache.get("ActiveState", PropertyType.STRING) == "deactivating"
    assert cache.get("SubState", PropertyType.STRING) == "running"
    assert prior["ActiveState"].value == "active"
    assert prior["LoadState"].value == "loaded"
    assert len(transport.get_all_calls) == 1
    assert transport.get_calls == []


def test_apply_before_first_fetch(cache, transport):
    prior = cache.apply_change_set(decode_change_set({"SubState": ("s", "start")}))

    assert prior == {"LoadState": None, "ActiveState": None, "SubState": None}
    assert not cache.initialized
    assert transport.get_all_calls == []

    # the first read still pulls the full map
    assert cache.get("Description", PropertyType.STRING) == "Foo daemon"


def test_capture_and_snapshot(cache):
    captured = cache.capture(["ActiveState", "Missing"])

    assert captured["ActiveState"].value == "active"
    assert captured["Missing"] is None
    assert "Id" in cache
    assert set(cache.snapshot()) == set(cache.keys())


def test_readers_never_see_torn_updates(cache):
    """Each change set moves two keys together; readers must always see them equal."""
    cache.refresh_all()
    cache.apply_change_set(decode_change_set({"SubState": ("s", "v0"), "Description": ("s", "v0")}))

    stop = threading.Event()
    torn = []

    def writer():
        for i in range(1, 2000):
            cache.apply_change_set(
                decode_change_set({"SubState": ("s", f"v{i}"), "Description": ("s", f"v{i}")})
            )
        stop.set()

    def reader():
        while not stop.is_set():
            snap = cache.capture(["SubState", "Description"])
            if snap["SubState"] != snap["Description"]:
                torn.append(snap)

    threads = [threading.Thread(target=reader) for _ in range(3)] + [threading.Thread(target=writer)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert torn == []


def test_returned_values_cannot_change_the_cache(cache, transport):
    transport.objects[cache.object_path][UNIT_INTERFACE]["Env"] = ("a{ss}", {"A": "1"})

    got = cache.get("Env", PropertyType.RECORD)
    with pytest.raises(TypeError):
        got["A"] = "hacked"

    names = cache.get("Names", PropertyType.STRING_LIST)
    with pytest.raises(AttributeError):
        names.append("bar.service")

    assert cache.get("Env", PropertyType.RECORD) == {"A": "1"}
    assert cache.get("Names", PropertyType.STRING_LIST) == ("foo.service",)
