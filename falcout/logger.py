"""Process-wide logger writing to syslog and standard error."""

from __future__ import annotations

import sys
import time
from enum import IntEnum
from typing import TextIO

try:
    import syslog
except ImportError:  # pragma: no cover - not available on every platform
    syslog = None


class LogPriority(IntEnum):
    """Syslog priorities; lower values are more severe."""

    EMERG = 0
    ALERT = 1
    CRIT = 2
    ERR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


_LEVEL_NAMES = {
    "emergency": LogPriority.EMERG,
    "alert": LogPriority.ALERT,
    "critical": LogPriority.CRIT,
    "error": LogPriority.ERR,
    "warning": LogPriority.WARNING,
    "notice": LogPriority.NOTICE,
    "info": LogPriority.INFO,
    "debug": LogPriority.DEBUG,
}


class FalcoLogger:
    """Filters messages by priority and sends them to syslog and/or a stream."""

    def __init__(
        self,
        level: LogPriority = LogPriority.INFO,
        log_stderr: bool = True,
        log_syslog: bool = True,
        time_format_iso_8601: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.level = LogPriority(level)
        self.log_stderr = log_stderr
        self.log_syslog = log_syslog
        self.time_format_iso_8601 = time_format_iso_8601
        self.stream = stream

    def set_level(self, level: str) -> None:
        """Set the minimum priority from its name; raise ValueError if unknown."""
        try:
            self.level = _LEVEL_NAMES[level]
        except KeyError:
            raise ValueError(f"Unknown log level {level}") from None

    def set_time_format_iso_8601(self, val: bool) -> None:
        self.time_format_iso_8601 = bool(val)

    def _timestamp(self) -> str:
        now = time.time()
        if self.time_format_iso_8601:
            return time.strftime("%Y-%m-%dT%H:%M:%S%z", time.gmtime(now))
        return time.asctime(time.localtime(now))

    def log(self, priority: int, msg: str) -> None:
        """Emit ``msg`` unless ``priority`` is less severe than the level."""
        if priority > self.level:
            return

        if self.log_syslog and syslog is not None:
            # Syslog lines carry no trailing newline.
            syslog.syslog(int(priority), msg[:-1] if msg.endswith("\n") else msg)

        if self.log_stderr:
            line = msg if msg.endswith("\n") else msg + "\n"
            stream = self.stream if self.stream is not None else sys.stderr
            stream.write(f"{self._timestamp()}: {line}")


default_logger = FalcoLogger()


def log(priority: int, msg: str) -> None:
    """Log through the process-wide logger."""
    default_logger.log(priority, msg)