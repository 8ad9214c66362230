"""Short-lived user-visible messages for operation outcomes."""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .. import config
from ..utils.logging import get_logger

LOGGER = get_logger("services.toasts")

TOAST_KINDS = ("success", "error", "warning", "info")


@dataclass(frozen=True)
class Toast:
    id: int
    kind: str
    message: str
    created_at: float
    duration: float
    title: Optional[str] = None

    def expired(self, now: float) -> bool:
        return now >= self.created_at + self.duration


class ToastCenter:
    def __init__(self, default_duration: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_duration = default_duration if default_duration is not None else config.TOAST_DURATION
        self._clock = clock
        self._ids = itertools.count(1)
        self._toasts: List[Toast] = []
        self._lock = threading.Lock()

    def push(self, kind: str, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> Toast:
        if kind not in TOAST_KINDS:
            raise ValueError(f"Unknown toast kind: {kind}")
        toast = Toast(
            id=next(self._ids),
            kind=kind,
            message=message,
            created_at=self._clock(),
            duration=self.default_duration if duration is None else duration,
            title=title,
        )
        with self._lock:
            self._toasts.append(toast)
        LOGGER.debug("toast kind=%s message=%s", kind, message)
        return toast

    def success(self, message: str, title: Optional[str] = None) -> Toast:
        return self.push("success", message, title)

    def error(self, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> Toast:
        return self.push("error", message, title, duration)

    def warning(self, message: str, title: Optional[str] = None) -> Toast:
        return self.push("warning", message, title)

    def info(self, message: str, title: Optional[str] = None) -> Toast:
        return self.push("info", message, title)

    def active(self) -> List[Toast]:
        """Toasts still on screen; expired ones are dropped as a side effect."""

        now = self._clock()
        with self._lock:
            self._toasts = [toast for toast in self._toasts if not toast.expired(now)]
            return list(self._toasts)

    def dismiss(self, toast_id: int) -> None:
        with self._lock:
            self._toasts = [toast for toast in self._toasts if toast.id != toast_id]

    def clear(self) -> None:
        with self._lock:
            self._toasts = []


__all__ = ["Toast", "ToastCenter", "TOAST_KINDS"]
