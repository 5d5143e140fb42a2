"""Fan-out of alert messages to every configured output on a worker thread."""

from __future__ import annotations

import json
import queue
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from .grpc_output import GrpcOutput
from .logger import LogPriority, log
from .outputs import (
    FileOutput,
    HttpOutput,
    Message,
    Output,
    OutputConfig,
    OutputError,
    Priority,
    ProgramOutput,
    StdoutOutput,
    SyslogOutput,
)
from .watchdog import Watchdog

INTERNAL_SOURCE = "internal"

_NANOS_PER_SECOND = 1_000_000_000

_OUTPUT_TYPES: dict[str, type[Output]] = {
    "file": FileOutput,
    "program": ProgramOutput,
    "stdout": StdoutOutput,
    "syslog": SyslogOutput,
    "http": HttpOutput,
    "grpc": GrpcOutput,
}


class OutputQueueFull(Exception):
    """Raised when the output queue has reached its capacity."""


class _CtrlType(Enum):
    STOP = 0
    OUTPUT = 1
    CLEANUP = 2
    REOPEN = 3


@dataclass
class _CtrlMsg:
    type: _CtrlType
    message: Message = field(default_factory=Message)


def create_output(
    config: OutputConfig, buffered: bool, hostname: str, json_output: bool
) -> Output:
    """Build the output named by ``config``; raise OutputError if unsupported."""
    try:
        output_type = _OUTPUT_TYPES[config.name]
    except KeyError:
        raise OutputError(f"Output not supported: {config.name}") from None
    return output_type(
        config, buffered=buffered, hostname=hostname, json_output=json_output
    )


def _iso8601(ts: int) -> str:
    seconds, nanos = divmod(ts, _NANOS_PER_SECOND)
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds)) + f".{nanos:09d}Z"


def _clock_time(ts: int) -> str:
    seconds, nanos = divmod(ts, _NANOS_PER_SECOND)
    return time.strftime("%H:%M:%S", time.localtime(seconds)) + f".{nanos:09d}"


class FalcoOutputs:
    """Queues messages and delivers them to all outputs from one worker thread.

    ``timeout`` is in milliseconds: an output that blocks longer than that is
    reported, and on close the remaining messages are discarded after it.
    """

    def __init__(
        self,
        outputs: Iterable[OutputConfig | Output],
        json_output: bool = False,
        timeout: int = 2000,
        buffered: bool = True,
        time_format_iso_8601: bool = False,
        hostname: str = "",
        queue_capacity: int = 0,
    ) -> None:
        self.json_output = json_output
        self.timeout = timeout
        self.buffered = buffered
        self.time_format_iso_8601 = time_format_iso_8601
        self.hostname = hostname

        self._outputs: list[Output] = [
            item
            if isinstance(item, Output)
            else create_output(item, buffered, hostname, json_output)
            for item in outputs
        ]
        self._queue: queue.Queue[_CtrlMsg] = queue.Queue(maxsize=queue_capacity)
        self._closed = False
        self._worker = threading.Thread(target=self._work, daemon=True)
        self._worker.start()

    @property
    def outputs(self) -> list[Output]:
        return list(self._outputs)

    @property
    def _timeout_seconds(self) -> float:
        return self.timeout / 1000.0

    def __enter__(self) -> "FalcoOutputs":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def handle_msg(
        self,
        ts: int,
        priority: Priority,
        msg: str,
        rule: str,
        output_fields: Mapping[str, str],
    ) -> None:
        """Format a generic message, not tied to an event, and send it to all outputs."""
        priority = Priority(priority)
        fields = dict(sorted(output_fields.items()))

        if self.json_output:
            text = json.dumps(
                {
                    "output": msg,
                    "priority": priority.label,
                    "rule": rule,
                    "time": _iso8601(ts),
                    "output_fields": fields,
                    "hostname": self.hostname,
                },
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
            )
        else:
            pairs = " ".join(f"{key}={value}" for key, value in fields.items())
            text = f"{_clock_time(ts)}: {priority.label} {msg} ({pairs})"

        message = Message(
            ts=ts,
            priority=priority,
            msg=text,
            rule=rule,
            source=INTERNAL_SOURCE,
            fields=fields,
        )
        self._push(_CtrlMsg(_CtrlType.OUTPUT, message))

    def cleanup_outputs(self) -> None:
        """Ask every output to flush or clean its buffers."""
        self._push(_CtrlMsg(_CtrlType.CLEANUP))

    def reopen_outputs(self) -> None:
        """Ask every output to close and reopen itself."""
        self._push(_CtrlMsg(_CtrlType.REOPEN))

    def close(self) -> None:
        """Stop the worker after it has drained the queue (or after the timeout)."""
        if self._closed:
            return
        self._closed = True

        def _discard(_payload) -> None:
            log(
                LogPriority.NOTICE,
                "output channels still blocked, discarding all remaining notifications\n",
            )
            self._drain()
            self._queue.put(_CtrlMsg(_CtrlType.STOP))

        with Watchdog() as watchdog:
            watchdog.start(_discard)
            watchdog.set_timeout(self._timeout_seconds, None)
            self._queue.put(_CtrlMsg(_CtrlType.STOP))
            self._worker.join()

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def _push(self, cmsg: _CtrlMsg) -> None:
        try:
            self._queue.put_nowait(cmsg)
        except queue.Full:
            raise OutputQueueFull("Output queue reached maximum capacity") from None

    def _dispatch(self, output: Output, cmsg: _CtrlMsg) -> None:
        if cmsg.type is _CtrlType.OUTPUT:
            output.output(cmsg.message)
        elif cmsg.type in (_CtrlType.CLEANUP, _CtrlType.STOP):
            output.cleanup()
        elif cmsg.type is _CtrlType.REOPEN:
            output.reopen()
        else:
            log(LogPriority.DEBUG, "Outputs worker received an unknown message type\n")

    def _work(self) -> None:
        def _blocked(name: str) -> None:
            log(
                LogPriority.CRIT,
                f'"{name}" output timeout, all output channels are blocked\n',
            )

        with Watchdog() as watchdog:
            watchdog.start(_blocked)
            while True:
                cmsg = self._queue.get()
                for output in self._outputs:
                    watchdog.set_timeout(self._timeout_seconds, output.name)
                    try:
                        self._dispatch(output, cmsg)
                    except Exception as exc:
                        log(LogPriority.ERR, f"{output.name}: {exc}\n")
                watchdog.cancel_timeout()
                if cmsg.type is _CtrlType.STOP:
                    return