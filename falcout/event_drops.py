"""Detection of kernel-side syscall event drops and the actions taken on them."""

from __future__ import annotations

import sys
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Protocol, TextIO

from .logger import LogPriority, log
from .outputs import Priority

ONE_SECOND_IN_NS = 1_000_000_000
DROP_RULE = "Falco internal: syscall event drop"


class DropAction(IntEnum):
    """What to do when syscall event drops are detected."""

    IGNORE = 0
    LOG = 1
    ALERT = 2
    EXIT = 3


@dataclass
class CaptureStats:
    """Counters reported by the capture engine."""

    n_evts: int = 0
    n_drops: int = 0
    n_drops_buffer: int = 0
    n_drops_buffer_clone_fork_enter: int = 0
    n_drops_buffer_clone_fork_exit: int = 0
    n_drops_buffer_execve_enter: int = 0
    n_drops_buffer_execve_exit: int = 0
    n_drops_buffer_connect_enter: int = 0
    n_drops_buffer_connect_exit: int = 0
    n_drops_buffer_open_enter: int = 0
    n_drops_buffer_open_exit: int = 0
    n_drops_buffer_dir_file_enter: int = 0
    n_drops_buffer_dir_file_exit: int = 0
    n_drops_buffer_other_interest_enter: int = 0
    n_drops_buffer_other_interest_exit: int = 0
    n_drops_scratch_map: int = 0
    n_drops_pf: int = 0
    n_drops_bug: int = 0
    n_preemptions: int = 0
    n_suppressed: int = 0
    n_tids_suppressed: int = 0

    def __sub__(self, other: "CaptureStats") -> "CaptureStats":
        return CaptureStats(
            **{f.name: getattr(self, f.name) - getattr(other, f.name) for f in fields(self)}
        )


class Inspector(Protocol):
    def get_capture_stats(self) -> CaptureStats: ...


class MessageSink(Protocol):
    def handle_msg(
        self,
        ts: int,
        priority: Priority,
        msg: str,
        rule: str,
        output_fields: Mapping[str, str],
    ) -> None: ...


class TokenBucket:
    """Rate limiter: ``rate`` tokens per second, holding at most ``max_tokens``."""

    def __init__(
        self, rate: float = 1.0, max_tokens: float = 1.0, now: int | None = None
    ) -> None:
        self.rate = rate
        self.max_tokens = max_tokens
        self.tokens = max_tokens
        self.last_seen = time.time_ns() if now is None else now

    def claim(self, tokens: float = 1, now: int | None = None) -> bool:
        """Take ``tokens`` at time ``now`` (ns) if enough are available."""
        if now is None:
            now = time.time_ns()
        elapsed = max(0, now - self.last_seen)
        self.tokens = min(self.max_tokens, self.tokens + self.rate * elapsed / ONE_SECOND_IN_NS)
        self.last_seen = now
        if self.tokens < tokens:
            return False
        self.tokens -= tokens
        return True


class SyscallEventDropManager:
    """Checks capture stats once a second and acts on new event drops."""

    def __init__(
        self,
        inspector: Inspector,
        outputs: MessageSink,
        actions: Iterable[DropAction | int] = (DropAction.LOG, DropAction.ALERT),
        threshold: float = 0.1,
        rate: float = 0.03333,
        max_tokens: float = 1,
        simulate_drops: bool = False,
    ) -> None:
        self.inspector = inspector
        self.outputs = outputs
        self.actions = tuple(dict.fromkeys(actions))
        self.bucket = TokenBucket(rate, max_tokens)
        self.simulate_drops = simulate_drops
        # When simulating drops the threshold is always zero.
        self.threshold = 0.0 if simulate_drops else threshold
        self.num_syscall_evt_drops = 0
        self.num_actions = 0
        self._next_check_ts = 0
        self._last_stats = inspector.get_capture_stats()

    def process_event(self, ts: int, bpf_enabled: bool = False) -> bool:
        """Account for an event at ``ts`` (ns); return False if processing must stop."""
        if self._next_check_ts == 0:
            self._next_check_ts = ts + ONE_SECOND_IN_NS

        if self._next_check_ts >= ts:
            return True

        self._next_check_ts = ts + ONE_SECOND_IN_NS
        stats = self.inspector.get_capture_stats()
        delta = stats - self._last_stats
        self._last_stats = stats

        if self.simulate_drops:
            log(LogPriority.INFO, "Simulating syscall event drop")
            delta.n_drops += 1

        if delta.n_drops <= 0:
            return True

        # n_evts always includes n_drops.
        ratio = delta.n_drops / delta.n_evts if delta.n_evts else float("inf")
        if ratio <= self.threshold:
            return True

        self.num_syscall_evt_drops += 1
        if not self.bucket.claim(1, ts):
            log(
                LogPriority.DEBUG,
                "Syscall event drop but token bucket depleted, skipping actions",
            )
            return True

        self.num_actions += 1
        return self._perform_actions(ts, delta, bpf_enabled)

    def print_stats(self, stream: TextIO | None = None) -> None:
        out = stream if stream is not None else sys.stderr
        out.write("Syscall event drop monitoring:\n")
        out.write(f"   - event drop detected: {self.num_syscall_evt_drops} occurrences\n")
        out.write(f"   - num times actions taken: {self.num_actions}\n")

    def _alert_fields(self, delta: CaptureStats, bpf_enabled: bool) -> dict[str, str]:
        return {
            "n_evts": str(delta.n_evts),
            "n_drops": str(delta.n_drops),
            "n_drops_buffer_total": str(delta.n_drops_buffer),
            "n_drops_buffer_clone_fork_enter": str(delta.n_drops_buffer_clone_fork_enter),
            "n_drops_buffer_clone_fork_exit": str(delta.n_drops_buffer_clone_fork_exit),
            "n_drops_buffer_execve_enter": str(delta.n_drops_buffer_execve_enter),
            "n_drops_buffer_execve_exit": str(delta.n_drops_buffer_execve_exit),
            "n_drops_buffer_connect_enter": str(delta.n_drops_buffer_connect_enter),
            "n_drops_buffer_connect_exit": str(delta.n_drops_buffer_connect_exit),
            "n_drops_buffer_open_enter": str(delta.n_drops_buffer_open_enter),
            "n_drops_buffer_open_exit": str(delta.n_drops_buffer_open_exit),
            "n_drops_buffer_dir_file_enter": str(delta.n_drops_buffer_dir_file_enter),
            "n_drops_buffer_dir_file_exit": str(delta.n_drops_buffer_dir_file_exit),
            "n_drops_buffer_other_interest_enter": str(
                delta.n_drops_buffer_other_interest_enter
            ),
            "n_drops_buffer_other_interest_exit": str(
                delta.n_drops_buffer_other_interest_exit
            ),
            "n_drops_scratch_map": str(delta.n_drops_scratch_map),
            "n_drops_page_faults": str(delta.n_drops_pf),
            "n_drops_bug": str(delta.n_drops_bug),
            "ebpf_enabled": "1" if bpf_enabled else "0",
        }

    def _perform_actions(self, now: int, delta: CaptureStats, bpf_enabled: bool) -> bool:
        msg = f"{DROP_RULE}. {delta.n_drops} system calls dropped in last second."

        for act in self.actions:
            try:
                action = DropAction(act)
            except ValueError:
                log(LogPriority.ERR, f"Ignoring unknown action {int(act)}")
                return True

            if action is DropAction.IGNORE:
                return True
            if action is DropAction.LOG:
                log(LogPriority.DEBUG, msg)
                return True
            if action is DropAction.ALERT:
                self.outputs.handle_msg(
                    now, Priority.DEBUG, msg, DROP_RULE, self._alert_fields(delta, bpf_enabled)
                )
                return True
            log(LogPriority.CRIT, msg)
            log(LogPriority.CRIT, "Exiting.")
            return False

        return True