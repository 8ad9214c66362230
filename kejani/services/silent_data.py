"""Background refresh cache that serves the last persisted value while fetching a fresh one."""

from __future__ import annotations

import json
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from ..models.listing import Listing
from ..utils.logging import get_logger
from ..utils.storage import default_storage

LOGGER = get_logger("services.silent_data")

T = TypeVar("T")

Listener = Callable[["SilentDataResult"], None]


@dataclass(frozen=True)
class SilentDataResult(Generic[T]):
    data: Optional[T]
    stale: bool
    last_updated: Optional[int]  # epoch milliseconds


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


class SilentData(Generic[T]):
    """Serve cached data immediately and refresh it in the background.

    At most one fetch is in flight per instance: a refresh requested while one
    is running is dropped, not queued. ``stale`` is true while a fetch runs and
    the current data is never cleared in the meantime. Fetch failures are
    swallowed and the previous data is kept.
    """

    def __init__(
        self,
        cache_key: str,
        fetcher: Callable[[], Optional[T]],
        parse: Optional[Callable[[Any], Optional[T]]] = None,
        serialize: Optional[Callable[[T], str]] = None,
        revalidate_interval: Optional[float] = None,
        compare: Optional[Callable[[T, T], bool]] = None,
        storage=None,
        executor: Optional[Executor] = None,
        stale_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache_key = cache_key
        self._fetcher = fetcher
        self._parse = parse
        self._serialize = serialize
        self._revalidate_interval = revalidate_interval
        self._compare = compare
        self._storage = storage if storage is not None else default_storage()
        self._executor = executor
        self._owns_executor = executor is None
        self._stale_timeout = stale_timeout
        self._clock = clock

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._fetching = False
        self._stale = False
        self._last_updated: Optional[int] = None
        # bumped on key change and unmount; results from an older generation are dropped
        self._generation = 0
        # a key change or remount while a fetch runs waits for that fetch to settle
        self._refetch_pending = False
        self._mounted = False
        self._unmounted = False
        self._stop: Optional[threading.Event] = None
        self._stale_timer: Optional[threading.Timer] = None
        self._data: Optional[T] = self._read_cache()

    # ------------------------------------------------------------------
    # State
    @property
    def cache_key(self) -> str:
        return self._cache_key

    @property
    def data(self) -> Optional[T]:
        return self._data

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def last_updated(self) -> Optional[int]:
        return self._last_updated

    @property
    def fetching(self) -> bool:
        return self._fetching

    def snapshot(self) -> SilentDataResult:
        with self._lock:
            return SilentDataResult(data=self._data, stale=self._stale, last_updated=self._last_updated)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    def mount(self) -> Optional[Future]:
        """Start the initial fetch and the revalidation loop."""

        with self._lock:
            if self._mounted:
                return None
            self._mounted = True
            self._unmounted = False
            self._start_loop()
            if self._fetching:
                self._refetch_pending = True
                return None
        return self.refresh()

    def unmount(self) -> None:
        """Stop revalidating; a fetch still running completes but its result is discarded."""

        with self._lock:
            self._mounted = False
            self._unmounted = True
            self._generation += 1
            self._refetch_pending = False
            self._stale = False
            self._stop_loop()
            self._cancel_stale_timer()
            executor = self._executor if self._owns_executor else None
            if self._owns_executor:
                self._executor = None
        if executor is not None:
            executor.shutdown(wait=False)
        LOGGER.debug("silent_unmount key=%s", self._cache_key)

    def set_cache_key(self, cache_key: str) -> Optional[Future]:
        """Switch to another storage slot: re-seed from storage and fetch again if mounted.

        When a fetch for the old key is still running its result is dropped and
        the fetch for the new key starts once it settles; None is returned then.
        """

        with self._lock:
            if cache_key == self._cache_key:
                return None
            self._cache_key = cache_key
            self._generation += 1
            self._last_updated = None
            self._cancel_stale_timer()
            self._data = self._read_cache()
            mounted = self._mounted
            deferred = mounted and self._fetching
            self._refetch_pending = deferred
            self._stale = deferred
            if mounted:
                self._stop_loop()
                self._start_loop()
        self._notify()
        if mounted and not deferred:
            return self.refresh()
        return None

    # ------------------------------------------------------------------
    # Fetching
    def refresh(self) -> Optional[Future]:
        """Fetch in the background; returns None when a fetch is already in flight."""

        with self._lock:
            if self._unmounted:
                return None
            if self._fetching:
                LOGGER.debug("silent_refresh_skipped key=%s reason=in_flight", self._cache_key)
                return None
            self._fetching = True
            self._stale = True
            generation = self._generation
            self._start_stale_timer(generation)
            future = self._ensure_executor().submit(self._run_fetch, generation)
        self._notify()
        return future

    def _run_fetch(self, generation: int) -> SilentDataResult:
        failed = False
        fresh: Optional[T] = None
        try:
            fresh = self._fetcher()
        except Exception as exc:
            failed = True
            LOGGER.debug("silent_fetch_failed key=%s error=%s", self._cache_key, exc)

        changed = False
        discarded = False
        with self._lock:
            # the in-flight slot is held until here even when the result is dropped
            self._fetching = False
            refetch = self._refetch_pending and self._mounted
            self._refetch_pending = False
            if generation != self._generation:
                discarded = True
            else:
                self._stale = False
                self._cancel_stale_timer()
                if not failed and fresh is not None:
                    equal = self._data is not None and self._compare is not None and self._compare(self._data, fresh)
                    if not equal:
                        self._data = fresh
                        self._last_updated = int(self._clock() * 1000)
                        changed = True
                        self._write_cache(fresh)
        if discarded:
            LOGGER.debug("silent_fetch_discarded key=%s", self._cache_key)
        elif changed:
            LOGGER.debug("silent_fetch_updated key=%s", self._cache_key)
        if refetch:
            self.refresh()
        elif not discarded:
            self._notify()
        return self.snapshot()

    # ------------------------------------------------------------------
    # Internals
    def _ensure_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="silent-data")
        return self._executor

    def _read_cache(self) -> Optional[T]:
        try:
            raw = self._storage.get_item(self._cache_key)
            if not raw:
                return None
            value = json.loads(raw)
            if self._parse is not None:
                return self._parse(value)
            return value
        except Exception as exc:
            LOGGER.debug("silent_cache_unreadable key=%s error=%s", self._cache_key, exc)
            return None

    def _write_cache(self, value: T) -> None:
        try:
            payload = self._serialize(value) if self._serialize is not None else dumps(value)
            self._storage.set_item(self._cache_key, payload)
        except Exception as exc:
            LOGGER.debug("silent_cache_write_failed key=%s error=%s", self._cache_key, exc)

    def _start_loop(self) -> None:
        if not self._revalidate_interval:
            return
        stop = threading.Event()
        self._stop = stop
        thread = threading.Thread(
            target=self._revalidate, args=(stop, self._revalidate_interval), name="silent-data-revalidate", daemon=True
        )
        thread.start()

    def _stop_loop(self) -> None:
        if self._stop is not None:
            self._stop.set()
            self._stop = None

    def _revalidate(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            self.refresh()

    def _start_stale_timer(self, generation: int) -> None:
        if not self._stale_timeout:
            return
        timer = threading.Timer(self._stale_timeout, self._expire_stale, args=(generation,))
        timer.daemon = True
        self._stale_timer = timer
        timer.start()

    def _cancel_stale_timer(self) -> None:
        if self._stale_timer is not None:
            self._stale_timer.cancel()
            self._stale_timer = None

    def _expire_stale(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._fetching or not self._stale:
                return
            # the fetch keeps its in-flight slot; only the indicator is released
            self._stale = False
            self._stale_timer = None
        LOGGER.warning("silent_fetch_slow key=%s timeout_s=%s", self._cache_key, self._stale_timeout)
        self._notify()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        result = self.snapshot()
        for listener in listeners:
            try:
                listener(result)
            except Exception:
                LOGGER.exception("silent_listener_failed key=%s", self._cache_key)


# ---------------------------------------------------------------------------
# Listings flavour
# ---------------------------------------------------------------------------


def parse_listings(raw: Any) -> Optional[List[Listing]]:
    if not isinstance(raw, list):
        return None
    return [Listing.model_validate(item) for item in raw]


def same_listings(current: List[Listing], fresh: List[Listing]) -> bool:
    """Equal when ids, update stamps and prices line up in the same order."""

    if len(current) != len(fresh):
        return False
    return all(
        (a.id, a.updated_at, a.price, a.status) == (b.id, b.updated_at, b.price, b.status)
        for a, b in zip(current, fresh)
    )


def silent_listings(client, cache_key: str = "houses_cache_v1", **options: Any) -> SilentData[List[Listing]]:
    """SilentData preconfigured for the full house list."""

    options.setdefault("parse", parse_listings)
    options.setdefault("compare", same_listings)
    return SilentData(cache_key, client.get_houses, **options)


__all__ = ["SilentData", "SilentDataResult", "dumps", "parse_listings", "same_listings", "silent_listings"]
