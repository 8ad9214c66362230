"""Observable application state shared by the listing screens."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .. import config
from ..errors import AuthenticationError, KejaniError
from ..models.community import Notification
from ..models.listing import Listing, SearchFilters
from ..utils.logging import get_logger
from .filters import search_listings
from .toasts import ToastCenter

LOGGER = get_logger("services.store")

Listener = Callable[["AppState", "AppState"], None]


@dataclass(frozen=True)
class AppState:
    houses: Tuple[Listing, ...] = ()
    loading: bool = False
    error: Optional[str] = None
    current_house: Optional[Listing] = None
    favorites: Tuple[Listing, ...] = ()
    search_filters: SearchFilters = field(default_factory=SearchFilters)
    search_query: str = ""
    search_results: Tuple[Listing, ...] = ()
    notifications: Tuple[Notification, ...] = ()
    unread_count: int = 0
    compare_list: Tuple[Listing, ...] = ()


class AppStore:
    """Explicit state holder: every change swaps in a new :class:`AppState`.

    Listeners receive ``(new_state, old_state)``. Actions never raise for
    remote failures; they record ``error`` and, for writes, push a toast.
    """

    def __init__(self, client, toasts: Optional[ToastCenter] = None, compare_limit: Optional[int] = None) -> None:
        self.client = client
        self.toasts = toasts if toasts is not None else ToastCenter()
        self.compare_limit = compare_limit if compare_limit is not None else config.COMPARE_LIMIT
        self._state = AppState()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    @property
    def state(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _update(self, compute: Callable[[AppState], Optional[Dict[str, Any]]]) -> Optional[AppState]:
        """Derive changes from the current state and apply them under one lock.

        ``compute`` returns None to leave the state untouched. Listeners run
        after the lock is released.
        """

        with self._lock:
            changes = compute(self._state)
            if changes is None:
                return None
            old = self._state
            new = replace(old, **changes)
            self._state = new
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(new, old)
            except Exception:
                LOGGER.exception("store_listener_failed")
        return new

    def _set(self, **changes: Any) -> AppState:
        return self._update(lambda state: changes)

    # ------------------------------------------------------------------
    # Houses
    def fetch_houses(self) -> None:
        self._set(loading=True, error=None)
        try:
            houses = self.client.get_houses(self._state.search_filters)
        except KejaniError as exc:
            LOGGER.warning("fetch_houses_failed error=%s", exc)
            self._set(error="Failed to fetch houses", loading=False)
            return
        self._set(houses=tuple(houses), loading=False)

    def fetch_house(self, house_id: str) -> None:
        self._set(loading=True, error=None)
        try:
            house = self.client.get_house(house_id)
        except KejaniError as exc:
            LOGGER.warning("fetch_house_failed id=%s error=%s", house_id, exc)
            self._set(error="Failed to fetch house details", loading=False)
            return
        self._set(current_house=house.with_review_stats(), loading=False)

    # ------------------------------------------------------------------
    # Search
    def set_search_filters(self, **changes: Any) -> None:
        self._update(lambda state: {"search_filters": state.search_filters.merge(**changes)})

    def reset_search_filters(self) -> None:
        self._set(search_filters=SearchFilters())

    def set_search_query(self, query: str) -> None:
        self._set(search_query=query)

    def search_houses(self) -> None:
        self._set(loading=True, error=None)
        state = self._state
        try:
            houses = list(state.houses) or self.client.get_houses()
        except KejaniError as exc:
            LOGGER.warning("search_failed query=%s error=%s", state.search_query, exc)
            self._set(error="Search failed", loading=False)
            return
        results = search_listings(houses, state.search_query, state.search_filters)
        self._set(search_results=tuple(results), loading=False)

    # ------------------------------------------------------------------
    # Favorites
    def add_to_favorites(self, house: Listing) -> None:
        try:
            self.client.add_favorite(house.id)
        except KejaniError as exc:
            self._write_failed("Failed to add to favorites", exc)
            return

        def append(state: AppState) -> Optional[Dict[str, Any]]:
            if any(fav.id == house.id for fav in state.favorites):
                return None
            return {"favorites": state.favorites + (house,)}

        self._update(append)

    def remove_from_favorites(self, house_id: str) -> None:
        try:
            self.client.remove_favorite(house_id)
        except KejaniError as exc:
            self._write_failed("Failed to remove from favorites", exc)
            return
        self._update(lambda state: {"favorites": tuple(fav for fav in state.favorites if fav.id != house_id)})

    def is_favorite(self, house_id: str) -> bool:
        return any(fav.id == house_id for fav in self._state.favorites)

    # ------------------------------------------------------------------
    # Compare
    def add_to_compare(self, house: Listing) -> bool:
        def append(state: AppState) -> Optional[Dict[str, Any]]:
            current = state.compare_list
            if len(current) >= self.compare_limit or any(item.id == house.id for item in current):
                return None
            return {"compare_list": current + (house,)}

        return self._update(append) is not None

    def remove_from_compare(self, house_id: str) -> None:
        self._update(lambda state: {"compare_list": tuple(item for item in state.compare_list if item.id != house_id)})

    def clear_compare(self) -> None:
        self._set(compare_list=())

    # ------------------------------------------------------------------
    # Notifications
    def fetch_notifications(self) -> None:
        try:
            notifications = self.client.get_notifications()
        except KejaniError as exc:
            LOGGER.warning("fetch_notifications_failed error=%s", exc)
            self._set(error="Failed to fetch notifications")
            return
        self._set(notifications=tuple(notifications), unread_count=sum(1 for n in notifications if not n.read))

    def mark_notification_read(self, notification_id: str) -> None:
        try:
            self.client.mark_notification_read(notification_id)
        except KejaniError as exc:
            self._write_failed("Failed to mark notification as read", exc)
            return
        def mark(state: AppState) -> Dict[str, Any]:
            notifications = tuple(
                n.model_copy(update={"read": True}) if n.id == notification_id else n for n in state.notifications
            )
            return {"notifications": notifications, "unread_count": sum(1 for n in notifications if not n.read)}

        self._update(mark)

    # ------------------------------------------------------------------
    def set_error(self, error: Optional[str]) -> None:
        self._set(error=error)

    def set_loading(self, loading: bool) -> None:
        self._set(loading=loading)

    def _write_failed(self, message: str, exc: KejaniError) -> None:
        LOGGER.warning("store_write_failed message=%s error=%s", message, exc)
        self._set(error=message)
        if isinstance(exc, AuthenticationError):
            self.toasts.error(str(exc), title=message)
        else:
            self.toasts.error(f"{message}: {exc}")


__all__ = ["AppState", "AppStore"]
