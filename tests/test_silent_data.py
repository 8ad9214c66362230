import json
import threading
from concurrent.futures import ThreadPoolExecutor

from kejani.models.listing import Listing
from kejani.services.silent_data import SilentData, dumps, parse_listings, same_listings, silent_listings
from kejani.utils.storage import MemoryStorage

WAIT = 5


class GatedFetcher:
    """Fetcher that blocks until released so tests control when a fetch settles."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self):
        self.calls += 1
        self.started.set()
        assert self.release.wait(WAIT)
        if self.error is not None:
            raise self.error
        return self.value


def _seeded(key, value):
    storage = MemoryStorage()
    storage.set_item(key, json.dumps(value))
    return storage


def test_initial_data_comes_from_storage_before_fetch_settles():
    storage = _seeded("k", {"houses": [1, 2]})
    fetcher = GatedFetcher(value={"houses": [3]})
    silent = SilentData("k", fetcher, storage=storage)
    assert silent.data == {"houses": [1, 2]}

    future = silent.mount()
    assert fetcher.started.wait(WAIT)
    assert silent.data == {"houses": [1, 2]}
    assert silent.stale is True

    fetcher.release.set()
    result = future.result(WAIT)
    assert result.data == {"houses": [3]}
    assert result.stale is False
    silent.unmount()


def test_second_refresh_while_in_flight_is_dropped():
    fetcher = GatedFetcher(value=[1])
    silent = SilentData("k", fetcher, storage=MemoryStorage())
    first = silent.refresh()
    second = silent.refresh()
    assert first is not None
    assert second is None
    fetcher.release.set()
    first.result(WAIT)
    assert fetcher.calls == 1
    assert silent.fetching is False


def test_equal_value_keeps_reference_and_timestamp():
    storage = _seeded("k", [1, 2, 3])
    fetcher = GatedFetcher(value=[1, 2, 3])
    fetcher.release.set()
    silent = SilentData("k", fetcher, storage=storage, compare=lambda a, b: a == b)
    before = silent.data
    silent.refresh().result(WAIT)
    assert silent.data is before
    assert silent.last_updated is None


def test_new_value_is_stored_and_stamped():
    storage = MemoryStorage()
    fetcher = GatedFetcher(value={"a": 1})
    fetcher.release.set()
    silent = SilentData("k", fetcher, storage=storage, clock=lambda: 1700000000.5)
    result = silent.refresh().result(WAIT)
    assert result.data == {"a": 1}
    assert result.last_updated == 1700000000500
    assert json.loads(storage.get_item("k")) == {"a": 1}


def test_failed_fetch_keeps_previous_data():
    storage = _seeded("k", ["cached"])
    fetcher = GatedFetcher(error=RuntimeError("boom"))
    silent = SilentData("k", fetcher, storage=storage)
    future = silent.refresh()
    assert silent.stale is True
    fetcher.release.set()
    result = future.result(WAIT)
    assert result.data == ["cached"]
    assert result.stale is False
    assert silent.fetching is False


def test_unparseable_cache_starts_empty():
    storage = MemoryStorage()
    storage.set_item("k", "{not json")
    silent = SilentData("k", lambda: None, storage=storage)
    assert silent.data is None


def test_unmount_discards_late_result():
    storage = _seeded("k", "old")
    fetcher = GatedFetcher(value="new")
    silent = SilentData("k", fetcher, storage=storage)
    future = silent.mount()
    assert fetcher.started.wait(WAIT)
    silent.unmount()
    fetcher.release.set()
    future.result(WAIT)
    assert silent.data == "old"
    assert json.loads(storage.get_item("k")) == "old"
    assert silent.refresh() is None


def test_cache_key_change_reseeds_and_refetches():
    storage = MemoryStorage()
    storage.set_item("a", json.dumps("from-a"))
    storage.set_item("b", json.dumps("from-b"))
    values = {"count": 0}

    def fetcher():
        values["count"] += 1
        return f"fresh-{values['count']}"

    silent = SilentData("a", fetcher, storage=storage)
    assert silent.data == "from-a"
    future = silent.set_cache_key("b")
    assert future is None
    assert silent.data == "from-b"
    assert silent.cache_key == "b"

    silent.mount().result(WAIT)
    assert silent.data == "fresh-1"
    silent.set_cache_key("a").result(WAIT)
    assert silent.data == "fresh-2"
    assert json.loads(storage.get_item("a")) == "fresh-2"
    silent.unmount()


def test_revalidation_interval_refetches_until_unmounted():
    fetched = threading.Event()
    calls = []

    def fetcher():
        calls.append(1)
        if len(calls) >= 3:
            fetched.set()
        return len(calls)

    silent = SilentData("k", fetcher, storage=MemoryStorage(), revalidate_interval=0.02)
    silent.mount()
    assert fetched.wait(WAIT)
    silent.unmount()
    assert len(calls) >= 3


def test_stale_timeout_clears_indicator_but_keeps_slot():
    fetcher = GatedFetcher(value="late")
    expired = threading.Event()
    silent = SilentData("k", fetcher, storage=MemoryStorage(), stale_timeout=0.02)

    def listener(result):
        if not result.stale and silent.fetching:
            expired.set()

    silent.subscribe(listener)
    future = silent.refresh()
    assert expired.wait(WAIT)
    assert silent.stale is False
    assert silent.refresh() is None
    fetcher.release.set()
    assert future.result(WAIT).data == "late"


def test_listeners_see_stale_then_settled():
    fetcher = GatedFetcher(value=1)
    silent = SilentData("k", fetcher, storage=MemoryStorage())
    seen = []
    unsubscribe = silent.subscribe(lambda result: seen.append((result.data, result.stale)))
    future = silent.refresh()
    assert seen == [(None, True)]
    fetcher.release.set()
    future.result(WAIT)
    assert seen[-1] == (1, False)

    unsubscribe()
    count = len(seen)
    silent.refresh().result(WAIT)
    assert len(seen) == count


def test_failing_listener_does_not_break_refresh():
    silent = SilentData("k", lambda: "v", storage=MemoryStorage())

    def broken(result):
        raise RuntimeError("listener bug")

    silent.subscribe(broken)
    assert silent.refresh().result(WAIT).data == "v"


def _house(house_id, price=8000, updated="2024-02-01T00:00:00Z"):
    return Listing.model_validate({"id": house_id, "price": price, "updatedAt": updated, "type": "bedsitter"})


def test_listings_round_trip_through_storage():
    storage = MemoryStorage()
    storage.set_item("houses_cache_v1", dumps([_house("1"), _house("2")]))
    cached = parse_listings(json.loads(storage.get_item("houses_cache_v1")))
    assert [item.id for item in cached] == ["1", "2"]
    assert cached[0].price == 8000
    assert parse_listings({"not": "a list"}) is None


def test_same_listings_compares_identity_fields():
    assert same_listings([_house("1")], [_house("1")])
    assert not same_listings([_house("1")], [_house("1", price=9000)])
    assert not same_listings([_house("1")], [_house("1"), _house("2")])
    assert not same_listings([_house("1")], [_house("1", updated="2024-03-01T00:00:00Z")])


def test_silent_listings_uses_client_fetch():
    class StubClient:
        def get_houses(self):
            return [_house("9")]

    storage = MemoryStorage()
    storage.set_item("houses_cache_v1", dumps([_house("1")]))
    silent = silent_listings(StubClient(), storage=storage)
    assert [item.id for item in silent.data] == ["1"]
    result = silent.refresh().result(WAIT)
    assert [item.id for item in result.data] == ["9"]
    assert [item.id for item in parse_listings(json.loads(storage.get_item("houses_cache_v1")))] == ["9"]


class ConcurrencyTracker:
    """Fetcher that records how many calls overlap; the first call blocks on ``gate``."""

    def __init__(self):
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.calls = 0
        self.started = threading.Event()
        self.gate = threading.Event()

    def __call__(self):
        with self.lock:
            self.calls += 1
            call = self.calls
            self.active += 1
            self.peak = max(self.peak, self.active)
        self.started.set()
        if call == 1:
            assert self.gate.wait(WAIT)
        with self.lock:
            self.active -= 1
        return f"value-{call}"


def _settled_on(silent, value):
    settled = threading.Event()

    def listener(result):
        if result.data == value and not result.stale:
            settled.set()

    silent.subscribe(listener)
    return settled


def test_cache_key_change_waits_for_running_fetch():
    executor = ThreadPoolExecutor(max_workers=4)
    storage = _seeded("b", "from-b")
    fetcher = ConcurrencyTracker()
    silent = SilentData("a", fetcher, storage=storage, executor=executor)
    settled = _settled_on(silent, "value-2")

    silent.mount()
    assert fetcher.started.wait(WAIT)
    assert silent.set_cache_key("b") is None
    assert silent.data == "from-b"
    assert silent.stale is True
    assert silent.refresh() is None

    fetcher.gate.set()
    assert settled.wait(WAIT)
    assert fetcher.peak == 1
    assert fetcher.calls == 2
    assert json.loads(storage.get_item("b")) == "value-2"
    assert storage.get_item("a") is None
    silent.unmount()
    executor.shutdown()


def test_remount_while_fetch_runs_does_not_overlap():
    executor = ThreadPoolExecutor(max_workers=4)
    fetcher = ConcurrencyTracker()
    silent = SilentData("k", fetcher, storage=MemoryStorage(), executor=executor)
    settled = _settled_on(silent, "value-2")

    silent.mount()
    assert fetcher.started.wait(WAIT)
    silent.unmount()
    assert silent.mount() is None

    fetcher.gate.set()
    assert settled.wait(WAIT)
    assert fetcher.peak == 1
    assert fetcher.calls == 2
    silent.unmount()
    executor.shutdown()
