"""Output channels that deliver formatted alert messages."""

from __future__ import annotations

import contextlib
import subprocess
import sys
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import IO

from .logger import LogPriority, log

try:
    import syslog
except ImportError:  # pragma: no cover - not available on every platform
    syslog = None


class Priority(IntEnum):
    """Alert priorities, numbered like syslog priorities."""

    EMERGENCY = 0
    ALERT = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFORMATIONAL = 6
    DEBUG = 7

    @property
    def label(self) -> str:
        """Human-readable name, e.g. ``Critical``."""
        return self.name.capitalize()


class OutputError(Exception):
    """Raised when an output cannot deliver a message."""


@dataclass
class OutputConfig:
    """An output's name and its string options."""

    name: str
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class Message:
    """A message to deliver: an event alert or a generic notification."""

    ts: int = 0
    priority: Priority = Priority.EMERGENCY
    msg: str = ""
    rule: str = ""
    source: str = ""
    fields: dict[str, str] = field(default_factory=dict)
    tags: set[str] = field(default_factory=set)


class Output(ABC):
    """Base class of every output channel."""

    def __init__(
        self,
        config: OutputConfig,
        buffered: bool = True,
        hostname: str = "",
        json_output: bool = False,
    ) -> None:
        self.config = config
        self.buffered = buffered
        self.hostname = hostname
        self.json_output = json_output

    @property
    def name(self) -> str:
        return self.config.name

    def _option(self, key: str) -> str:
        return self.config.options.get(key, "")

    @property
    def _keep_alive(self) -> bool:
        return self._option("keep_alive") == "true"

    @abstractmethod
    def output(self, msg: Message) -> None:
        """Deliver one message."""

    def reopen(self) -> None:
        """Close and open the channel again, where that means anything."""

    def cleanup(self) -> None:
        """Flush or close the channel, where that means anything."""


class FileOutput(Output):
    """Appends each message as a line to the file named by option ``filename``."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._file: IO[str] | None = None

    def _open(self) -> None:
        if self._file is not None:
            return
        filename = self._option("filename")
        try:
            self._file = open(filename, "a", encoding="utf-8")
        except OSError as exc:
            raise OutputError(f"failed to open output file {filename}") from exc

    def output(self, msg: Message) -> None:
        self._open()
        self._file.write(msg.msg + "\n")
        if not self.buffered:
            self._file.flush()
        if not self._keep_alive:
            self.cleanup()

    def cleanup(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def reopen(self) -> None:
        self.cleanup()
        self._open()


class ProgramOutput(Output):
    """Pipes each message as a line into the shell command in option ``program``."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._proc: subprocess.Popen | None = None

    def _open(self) -> None:
        if self._proc is None:
            self._proc = subprocess.Popen(
                self._option("program"),
                shell=True,
                stdin=subprocess.PIPE,
                bufsize=-1 if self.buffered else 0,
            )

    def output(self, msg: Message) -> None:
        self._open()
        self._proc.stdin.write((msg.msg + "\n").encode("utf-8"))
        if not self._keep_alive:
            self.cleanup()

    def cleanup(self) -> None:
        if self._proc is None:
            return
        proc, self._proc = self._proc, None
        with contextlib.suppress(BrokenPipeError):
            proc.stdin.close()
        proc.wait()

    def reopen(self) -> None:
        self.cleanup()
        self._open()


class StdoutOutput(Output):
    """Writes each message as a line to standard output."""

    def output(self, msg: Message) -> None:
        sys.stdout.write(msg.msg + "\n")
        if not self.buffered:
            sys.stdout.flush()

    def cleanup(self) -> None:
        sys.stdout.flush()


class SyslogOutput(Output):
    """Sends each message to syslog at the message's priority."""

    def output(self, msg: Message) -> None:
        if syslog is None:
            raise OutputError("syslog is not available on this platform")
        syslog.syslog(int(msg.priority), msg.msg)


class HttpOutput(Output):
    """POSTs each message to the URL in option ``url``."""

    def output(self, msg: Message) -> None:
        headers = {
            "Content-Type": "application/json" if self.json_output else "text/plain"
        }
        user_agent = self._option("user_agent")
        if user_agent:
            headers["User-Agent"] = user_agent
        try:
            request = urllib.request.Request(
                self._option("url"),
                data=msg.msg.encode("utf-8"),
                headers=headers,
                method="POST",
            )
            with urllib.request.urlopen(request) as response:
                response.read()
        except urllib.error.HTTPError as exc:
            # The server answered; a non-2xx status is not a transport failure.
            exc.close()
        except (urllib.error.URLError, OSError, ValueError) as exc:
            log(LogPriority.ERR, f"http output error: {exc}")