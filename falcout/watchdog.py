"""Background watchdog that calls back when a deadline passes."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class _Timeout(Generic[T]):
    deadline: float | None
    payload: T | None


class Watchdog(Generic[T]):
    """Runs a polling thread that invokes a callback once per expired timeout."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: _Timeout | None = None
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "Watchdog[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def start(self, callback: Callable[[T], None], resolution: float = 0.1) -> None:
        """Start (or restart) the polling thread, checking every ``resolution`` seconds."""
        self.stop()
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run, args=(callback, resolution, stop_event), daemon=True
        )
        self._thread.start()

    def _run(
        self, callback: Callable[[T], None], resolution: float, stop_event: threading.Event
    ) -> None:
        current = _Timeout(None, None)
        while not stop_event.is_set():
            with self._lock:
                pending, self._pending = self._pending, None
            if pending is not None:
                current = pending
            if current.deadline is not None and current.deadline < time.monotonic():
                callback(current.payload)
                current = _Timeout(None, current.payload)
            stop_event.wait(resolution)

    def stop(self) -> None:
        """Stop the polling thread and drop any pending timeout."""
        if self._stop_event is None:
            return
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None
        self._stop_event = None
        with self._lock:
            self._pending = None

    def set_timeout(self, timeout: float, payload: T) -> None:
        """Arm the watchdog to fire ``timeout`` seconds from now with ``payload``."""
        with self._lock:
            self._pending = _Timeout(time.monotonic() + timeout, payload)

    def cancel_timeout(self) -> None:
        """Disarm the watchdog."""
        with self._lock:
            self._pending = _Timeout(None, None)