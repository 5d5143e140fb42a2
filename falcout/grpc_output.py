"""Output that queues alerts for gRPC subscribers."""

from __future__ import annotations

from typing import Any

from .grpc_queue import ResponseQueue
from .outputs import Message, Output, OutputError, Priority

_NANOS_PER_SECOND = 1_000_000_000

# Numeric identifiers of the known event sources on the wire.
_SOURCE_SYSCALL = 0
_SOURCE_IDS = {
    "syscall": _SOURCE_SYSCALL,
    "k8s_audit": 1,
    "internal": 2,
    "plugin": 3,
}
_SOURCE_PLUGIN = _SOURCE_IDS["plugin"]


class GrpcOutput(Output):
    """Turns each message into a response and pushes it onto a response queue."""

    def __init__(self, *args, queue: ResponseQueue | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._queue = queue

    @property
    def queue(self) -> ResponseQueue:
        return self._queue if self._queue is not None else ResponseQueue.instance()

    def output(self, msg: Message) -> None:
        try:
            priority = Priority(msg.priority)
        except ValueError:
            raise OutputError("Unknown priority passed to grpc output") from None

        seconds, nanos = divmod(msg.ts, _NANOS_PER_SECOND)
        # Unknown source names are expected to come from plugins.
        source_id = _SOURCE_IDS.get(msg.source.lower(), _SOURCE_PLUGIN)

        response: dict[str, Any] = {
            "time": {"seconds": seconds, "nanos": nanos},
            "rule": msg.rule,
            "source_deprecated": source_id,
            "priority": priority,
            "output": msg.msg,
            "output_fields": dict(msg.fields),
            "hostname": self.hostname,
            "tags": sorted(msg.tags),
            "source": msg.source,
        }
        self.queue.push(response)