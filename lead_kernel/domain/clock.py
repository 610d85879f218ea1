"""
Injectable time source.

Ledger entries, grants and batch lifecycle stamps all take their time from
a Clock, never from ``datetime.now()`` directly, so tests can pin it.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware UTC now."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Pinned clock for tests and seed tooling.

    With ``auto_tick=True`` every ``now()`` advances one second, so rows
    written in sequence (ledger entries, batches) get distinct, ordered
    timestamps even when several threads share the clock.
    """

    def __init__(self, fixed_time: datetime | None = None, auto_tick: bool = False):
        self._base = fixed_time or DEFAULT_TEST_TIME
        self._offset = 0
        self._auto_tick = auto_tick
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._base + timedelta(seconds=self._offset)
            if self._auto_tick:
                self._offset += 1
            return current

    def set_time(self, time: datetime) -> None:
        with self._lock:
            self._base = time
            self._offset = 0

    def advance(self, seconds: int = 1) -> None:
        with self._lock:
            self._offset += seconds

    def tick(self) -> datetime:
        """Advance one second and return the new time (does not auto-tick)."""
        with self._lock:
            self._offset += 1
            return self._base + timedelta(seconds=self._offset)
