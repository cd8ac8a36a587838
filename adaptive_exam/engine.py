"""
Adaptive Exam Engine - Handle-based entry point for callers.

One engine serves many concurrent test-takers. Each start() creates an
isolated SessionMachine stored under a fresh handle; every other call
looks the machine up and forwards to it.
"""

import logging
import random
import time
from functools import partial
from typing import Callable, List, Optional

from .adaptive_tester import ItemSelector
from .errors import InvalidStateError
from .item_bank import Item
from .session import AnswerOutcome, SessionMachine, TestConfiguration, TestResult
from .session_store import SessionStore
from .settings import Settings
from .timer import SessionTimer

logger = logging.getLogger(__name__)


class AdaptiveExamEngine:
    """
    Args:
        gateway: item bank (see item_bank for the contract)
        settings: limits and timer interval; read from the environment if omitted
        rng_factory: builds the random source for each session's selector
        clock: monotonic seconds, used for response timing
        use_timer: run a background timer for timed sessions; tests turn
            this off and call tick() themselves
    """

    def __init__(self, gateway, settings: Optional[Settings] = None,
                 rng_factory: Optional[Callable[[], random.Random]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 use_timer: bool = True):
        self.gateway = gateway
        self.settings = settings or Settings.from_env()
        self.rng_factory = rng_factory or self._default_rng_factory
        self.clock = clock
        self.use_timer = use_timer
        self.store = SessionStore()

    def _default_rng_factory(self) -> random.Random:
        return random.Random(self.settings.random_seed)

    # ==================== Caller Interface ====================

    def start(self, config: TestConfiguration) -> str:
        """Validate, present the first item and return the new session's handle."""
        self.purge_expired()
        handle = self.store.new_handle()
        timer_factory = None
        if self.use_timer:
            timer_factory = partial(SessionTimer, interval=self.settings.timer_interval_seconds)

        machine = SessionMachine(
            config,
            ItemSelector(self.gateway, rng=self.rng_factory()),
            settings=self.settings,
            clock=self.clock,
            timer_factory=timer_factory,
            session_id=handle,
        )
        # Invalid configs and gateway failures propagate; nothing is stored
        machine.start()
        self.store.add(handle, machine)
        return handle

    def submit_answer(self, handle: str, option_index: int) -> AnswerOutcome:
        return self.store.get(handle).submit_answer(option_index)

    def toggle_flag(self, handle: str) -> Optional[bool]:
        return self.store.get(handle).toggle_flag()

    def pause(self, handle: str):
        self.store.get(handle).pause()

    def resume(self, handle: str):
        self.store.get(handle).resume()

    def finish(self, handle: str) -> TestResult:
        return self.store.get(handle).finish()

    def tick(self, handle: str):
        """Advance a session's clock by one tick by hand."""
        self.store.get(handle).tick()

    def navigate(self, handle: str, index: int) -> Item:
        return self.store.get(handle).navigate(index)

    def get_snapshot(self, handle: str) -> dict:
        return self.store.get(handle).snapshot()

    def get_result(self, handle: str) -> TestResult:
        machine = self.store.get(handle)
        if machine.result is None:
            raise InvalidStateError("Session has not completed")
        return machine.result

    def discard(self, handle: str):
        """Drop a session, stopping its timer first."""
        machine = self.store.remove(handle)
        machine.pause()
        logger.info(f"Session {handle} discarded")

    def handles(self) -> List[str]:
        return self.store.handles()

    def purge_expired(self) -> List[str]:
        """
        Drop sessions that completed more than completed_session_ttl_seconds
        ago. Runs on every start(), so the store stays bounded without a
        sweeper thread.
        """
        ttl = self.settings.completed_session_ttl_seconds
        now = self.clock()
        expired = self.store.remove_where(
            lambda machine: machine.completed_clock is not None and now - machine.completed_clock >= ttl
        )
        if expired:
            logger.info(f"Evicted {len(expired)} completed sessions")
        return expired
