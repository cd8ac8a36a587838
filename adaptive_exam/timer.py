"""
Session Timer - Once-per-interval callback for timed sessions.

Each start() opens a new generation. Ticks carry the generation they were
scheduled under, so a tick that fires after cancel() (or after a restart)
is recognised as stale and dropped by the session.

Ticks are scheduled against fixed deadlines (start + n * interval), not
chained off the previous callback. If a callback runs long, the ticks that
fell due meanwhile are delivered together on the next firing, so the number
of ticks always tracks elapsed wall-clock time.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SessionTimer:
    """Repeating threading.Timer wrapper with generation-based cancellation."""

    def __init__(self, on_tick: Callable[[int], None], interval: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        self.on_tick = on_tick
        self.interval = interval
        self.clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._started_at = 0.0
        self._delivered = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._timer is not None

    def start(self, generation: int):
        """Begin ticking under `generation`, replacing any earlier schedule."""
        with self._lock:
            self._cancel_locked()
            self._generation = generation
            self._started_at = self.clock()
            self._delivered = 0
            self._schedule_locked(generation)

    def cancel(self):
        with self._lock:
            self._cancel_locked()

    def _schedule_locked(self, generation: int):
        deadline = self._started_at + (self._delivered + 1) * self.interval
        timer = threading.Timer(max(0.0, deadline - self.clock()), self._fire, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_locked(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # Anything already in flight now belongs to a dead generation
        self._generation += 1

    def _due_locked(self) -> int:
        elapsed = int((self.clock() - self._started_at) / self.interval)
        # A firing always owes at least one tick, even with float rounding
        due = max(1, elapsed - self._delivered)
        self._delivered += due
        return due

    def _fire(self, generation: int):
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            due = self._due_locked()
        if due > 1:
            logger.debug(f"Timer catching up {due} ticks")
        try:
            for _ in range(due):
                self.on_tick(generation)
        except Exception:
            logger.exception("Timer tick failed")
        with self._lock:
            if generation == self._generation and self._timer is not None:
                self._schedule_locked(generation)
