from __future__ import annotations

import time
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

COOLDOWN_S = 60.0


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CooldownTracker:
    """In-memory map of container name -> time it was last handed to the restarter.

    Entries are never removed; a stale entry simply stops suppressing once the
    window has passed. Timestamps come from `clock` (monotonic by default).
    """

    def __init__(self, cooldown_s: float = COOLDOWN_S, clock: Callable[[], float] = time.monotonic) -> None:
        self.cooldown_s = float(cooldown_s)
        self.clock = clock
        self.lock = Lock()
        self.last_processed_at: dict[str, float] = {}

    def _now(self, now: float | None) -> float:
        return self.clock() if now is None else now

    def _eligible(self, name: str, now: float) -> bool:
        last = self.last_processed_at.get(name)
        return last is None or now - last >= self.cooldown_s

    def is_eligible(self, name: str, now: float | None = None) -> bool:
        now = self._now(now)
        with self.lock:
            return self._eligible(name, now)

    def mark_processed(self, name: str, now: float | None = None) -> None:
        now = self._now(now)
        with self.lock:
            self.last_processed_at[name] = now

    def claim(self, name: str, now: float | None = None) -> bool:
        """Check eligibility and record `now` in one step.

        Returns False (and leaves the entry untouched) while in cooldown.
        """
        now = self._now(now)
        with self.lock:
            if not self._eligible(name, now):
                return False
            self.last_processed_at[name] = now
            return True

    def last_processed(self, name: str) -> float | None:
        with self.lock:
            return self.last_processed_at.get(name)
