"""Thread-safe queue of responses waiting to be streamed to gRPC clients."""

from __future__ import annotations

import queue
import threading
from typing import Any, ClassVar


class ResponseQueue:
    """Unbounded FIFO of output responses shared by producers and streamers."""

    _instance: ClassVar["ResponseQueue | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()

    @classmethod
    def instance(cls) -> "ResponseQueue":
        """Return the process-wide queue, creating it on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def push(self, res: Any) -> None:
        """Append a response."""
        self._queue.put(res)

    def try_pop(self) -> Any | None:
        """Remove and return the oldest response, or None if the queue is empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()