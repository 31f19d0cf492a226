import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_WINDOW_SECONDS = 60 * 60
DEFAULT_MAX_PER_WINDOW = 5


@dataclass
class RateWindow:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """In-memory only; a restart starts every key with a fresh budget."""

    def __init__(
        self,
        *,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def admit(self, key: str) -> bool:
        with self._lock_for(key):
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now >= window.reset_at:
                self._windows[key] = RateWindow(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_per_window:
                return False

            window.count += 1
            return True

    def window_for(self, key: str) -> RateWindow | None:
        with self._lock_for(key):
            window = self._windows.get(key)
            return RateWindow(window.count, window.reset_at) if window else None

    def reset(self) -> None:
        with self._registry_lock:
            self._windows.clear()
            self._locks.clear()

    def __len__(self) -> int:
        return len(self._windows)
