"""Cooldown gating for sync triggers.

A sync may run at most once per window per caller key.  Run history lives in
a ``RunLedger`` and time comes from an injected clock, so tests can advance
time without sleeping.  Trusted callers (the scheduler presenting the cron
secret) bypass the gate entirely.

The gate takes no lock: two requests racing past ``check`` can both run.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from typing import Protocol

from clubsite.errors import RateLimited

DEFAULT_COOLDOWN_SECONDS = 60.0


class RunLedger(Protocol):
    """Storage for the last run time per caller key."""

    def last_run_at(self, key: str) -> float | None: ...

    def record_run(self, key: str, at: float) -> None: ...

    def forget_before(self, cutoff: float) -> None: ...


class InMemoryRunLedger:
    """Process-local ledger; history is lost on restart."""

    def __init__(self) -> None:
        self._runs: dict[str, float] = {}

    def last_run_at(self, key: str) -> float | None:
        return self._runs.get(key)

    def record_run(self, key: str, at: float) -> None:
        self._runs[key] = at

    def forget_before(self, cutoff: float) -> None:
        stale = [key for key, at in self._runs.items() if at < cutoff]
        for key in stale:
            del self._runs[key]

    def __len__(self) -> int:
        return len(self._runs)


class CooldownGate:
    """Reject runs for *key* until ``window_seconds`` have passed since the last one."""

    def __init__(
        self,
        window_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        *,
        ledger: RunLedger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds < 0:
            raise ValueError("window_seconds must be >= 0")
        self.window_seconds = window_seconds
        self._ledger = ledger if ledger is not None else InMemoryRunLedger()
        self._clock = clock

    def remaining(self, key: str) -> float:
        """Seconds left before *key* may run again (0 when allowed)."""
        last = self._ledger.last_run_at(key)
        if last is None:
            return 0.0
        return max(0.0, self.window_seconds - (self._clock() - last))

    def check(self, key: str, *, trusted: bool = False) -> float:
        """Return the current clock reading, or raise if *key* is cooling down.

        Raises:
            RateLimited: With ``retry_after`` rounded up to whole seconds
        """
        now = self._clock()
        if trusted:
            return now
        remaining = self.remaining(key)
        if remaining > 0:
            raise RateLimited(retry_after=max(1, math.ceil(remaining)))
        return now

    def record(self, key: str, at: float | None = None) -> None:
        """Mark a run for *key* and forget callers whose window has lapsed."""
        now = self._clock() if at is None else at
        self._ledger.forget_before(now - self.window_seconds)
        self._ledger.record_run(key, now)
