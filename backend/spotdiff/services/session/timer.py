import threading
import time
from typing import Callable, Optional


class TimerHandle:
    def __init__(self, duration: float):
        self.deadline = time.time() + duration
        self.cancelled = False


class ProgressionTimer:
    """At most one pending deadline per room.

    Starting a timer releases the previous handle before arming the new one,
    and an expiry only runs its callback if its handle is still the current one.
    """

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def deadline(self) -> Optional[float]:
        handle = self._handle
        return handle.deadline if handle else None

    def start(self, duration: float, on_expire: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(duration)
        with self._lock:
            if self._handle:
                self._handle.cancelled = True
            self._handle = handle
        self._scheduler.call_later(duration, self._expire, handle, on_expire,
                                   cancelled=lambda: handle.cancelled)
        return handle

    def cancel(self) -> bool:
        with self._lock:
            handle, self._handle = self._handle, None
        if handle:
            handle.cancelled = True
            return True
        return False

    def _expire(self, handle: TimerHandle, on_expire: Callable[[], None]) -> None:
        with self._lock:
            if handle.cancelled or handle is not self._handle:
                return
            self._handle = None
        on_expire()
