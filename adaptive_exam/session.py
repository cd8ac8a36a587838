"""
Test Session - The adaptive exam state machine.

States:
    configuring -> active -> (paused <-> active) -> completed

Every mutation of a session goes through one SessionMachine and happens
under that machine's lock, so answers, pauses, finishes and timer ticks
never interleave. The one thing done outside the lock is the item bank
fetch for the next item, so a slow bank never holds up the timer.
Sessions share nothing mutable with each other; the item bank behind the
selector is read-only.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .adaptive_tester import ItemSelector
from .errors import (
    BankUnavailableError,
    ExhaustedBankError,
    InvalidAnswerError,
    InvalidConfigurationError,
    InvalidNavigationError,
    InvalidStateError,
)
from .item_bank import ALL_CATEGORIES, Item, Leaf
from .performance import PerformanceTracker
from .settings import Settings
from .student_model import (
    AbilityEstimate,
    Response,
    confidence_interval,
    estimate_ability,
    is_passing,
    pass_probability,
)
from .termination import StopReason, stop_reason

logger = logging.getLogger(__name__)


class TestMode(str, Enum):
    __test__ = False

    TUTORIAL = "tutorial"
    TIMED = "timed"


class SessionStatus(str, Enum):
    CONFIGURING = "configuring"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


# ==================== Data Model ====================

@dataclass(frozen=True)
class TestConfiguration:
    """What the test-taker asked for. Immutable once the session starts."""
    __test__ = False

    categories: FrozenSet[str] = frozenset({ALL_CATEGORIES})
    item_count: int = 75
    mode: TestMode = TestMode.TUTORIAL
    time_limit_seconds: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.categories, str):
            object.__setattr__(self, "categories", frozenset({self.categories}))
        else:
            object.__setattr__(self, "categories", frozenset(self.categories))
        try:
            object.__setattr__(self, "mode", TestMode(self.mode))
        except ValueError as e:
            raise InvalidConfigurationError(f"Unknown mode: {self.mode!r}") from e

    @property
    def is_timed(self) -> bool:
        return self.mode == TestMode.TIMED

    def validate(self, min_items: int = 1, max_items: int = 200):
        """Raise InvalidConfigurationError on the first problem found."""
        if not self.categories:
            raise InvalidConfigurationError("At least one category is required")
        if isinstance(self.item_count, bool) or not isinstance(self.item_count, int):
            raise InvalidConfigurationError("item_count must be an integer")
        if not min_items <= self.item_count <= max_items:
            raise InvalidConfigurationError(
                f"item_count must be between {min_items} and {max_items}, got {self.item_count}"
            )
        if self.is_timed:
            if self.time_limit_seconds is None:
                raise InvalidConfigurationError("Timed mode requires time_limit_seconds")
            if isinstance(self.time_limit_seconds, bool) or not isinstance(self.time_limit_seconds, int):
                raise InvalidConfigurationError("time_limit_seconds must be an integer")
            if self.time_limit_seconds <= 0:
                raise InvalidConfigurationError("time_limit_seconds must be positive")
        elif self.time_limit_seconds is not None:
            raise InvalidConfigurationError("time_limit_seconds is only allowed in timed mode")

    def to_dict(self) -> dict:
        return {
            "categories": sorted(self.categories),
            "item_count": self.item_count,
            "mode": self.mode.value,
            "time_limit_seconds": self.time_limit_seconds,
        }


@dataclass
class TestSession:
    """Aggregate root for one exam attempt. Owned by its SessionMachine."""
    __test__ = False

    config: TestConfiguration
    status: SessionStatus = SessionStatus.CONFIGURING
    asked_item_ids: List[str] = field(default_factory=list)
    responses: List[Response] = field(default_factory=list)
    ability: AbilityEstimate = field(default_factory=AbilityEstimate)
    current_index: int = 0
    remaining_seconds: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    finish_requested: bool = False
    stop_reason: Optional[StopReason] = None


@dataclass(frozen=True)
class TestResult:
    """Final report, built once when the session completes."""
    __test__ = False

    score: int
    total_answered: int
    item_count: int
    final_ability: AbilityEstimate
    confidence_interval: Tuple[float, float]
    passing_probability: float
    passed: bool
    category_breakdown: Dict[str, dict]
    subcategory_breakdown: Dict[str, dict]
    difficulty_breakdown: Dict[str, dict]
    strengths: Tuple[str, ...]
    weaknesses: Tuple[str, ...]
    flagged_item_ids: Tuple[str, ...]
    time_spent_seconds: int
    stop_reason: StopReason

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "total_answered": self.total_answered,
            "item_count": self.item_count,
            "final_ability": self.final_ability.to_dict(),
            "confidence_interval": list(self.confidence_interval),
            "passing_probability": self.passing_probability,
            "passed": self.passed,
            "category_breakdown": self.category_breakdown,
            "subcategory_breakdown": self.subcategory_breakdown,
            "difficulty_breakdown": self.difficulty_breakdown,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "flagged_item_ids": list(self.flagged_item_ids),
            "time_spent_seconds": self.time_spent_seconds,
            "stop_reason": self.stop_reason.value,
        }


@dataclass(frozen=True)
class AnswerOutcome:
    accepted: bool
    completed: bool
    is_correct: Optional[bool] = None
    next_item: Optional[Item] = None
    stop_reason: Optional[StopReason] = None

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "completed": self.completed,
            "is_correct": self.is_correct,
            "next_item": self.next_item.to_public_dict() if self.next_item else None,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
        }


# ==================== State Machine ====================

class SessionMachine:
    """
    Drives one TestSession from configuration to its final TestResult.

    The clock is injectable (seconds, monotonic) so tests can control
    response timing; time limits are driven by tick(), which the optional
    timer calls once per interval while the session is active.
    """

    def __init__(self, config: TestConfiguration, selector: ItemSelector,
                 settings: Optional[Settings] = None,
                 clock: Callable[[], float] = time.monotonic,
                 timer_factory: Optional[Callable] = None,
                 session_id: Optional[str] = None):
        self.session = TestSession(config=config)
        self.selector = selector
        self.settings = settings or Settings()
        self.clock = clock
        self.session_id = session_id

        self._lock = threading.RLock()
        self._generation = 0
        # Bumped by every committed answer and by completion
        self._version = 0
        self._timer = timer_factory(self.tick) if timer_factory and config.is_timed else None

        self._presented: List[Item] = []
        self._pending_flag = False
        self._leaf_categories: FrozenSet[Leaf] = frozenset()

        self._categories = PerformanceTracker()
        self._subcategories = PerformanceTracker()
        self._difficulties = PerformanceTracker()

        # Active (unpaused) time for the whole session and the pending item
        self._active_elapsed = 0.0
        self._active_since: Optional[float] = None
        self._item_elapsed = 0.0
        self._item_since: Optional[float] = None

        self._result: Optional[TestResult] = None
        self.completed_clock: Optional[float] = None

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def result(self) -> Optional[TestResult]:
        return self._result

    # ==================== Lifecycle ====================

    def start(self) -> Optional[Item]:
        """
        Validate the configuration and present the first item.

        Returns the first item, or None if the bank had nothing to offer
        (the session is then already completed).
        """
        with self._lock:
            if self.session.status != SessionStatus.CONFIGURING:
                raise InvalidStateError(f"Session already {self.session.status.value}")

            config = self.session.config
            config.validate(self.settings.min_item_count, self.settings.max_item_count)
            try:
                leaves = self.selector.gateway.expand_categories(config.categories)
            except ValueError as e:
                raise InvalidConfigurationError(str(e)) from e
            if not leaves:
                raise InvalidConfigurationError("Selected categories contain no items")
            self._leaf_categories = frozenset(leaves)

            # BankUnavailableError leaves the session in configuring
            try:
                first = self._select_next(AbilityEstimate().theta, None, self.session.asked_item_ids)
            except ExhaustedBankError:
                first = None

            now = self.clock()
            self.session.started_at = datetime.now(timezone.utc)
            self.session.remaining_seconds = config.time_limit_seconds if config.is_timed else None
            self.session.status = SessionStatus.ACTIVE
            self._active_since = now

            if first is None:
                logger.warning(f"Session {self.session_id}: item bank empty for {sorted(config.categories)}")
                self.session.stop_reason = StopReason.BANK_EXHAUSTED
                self._complete(StopReason.BANK_EXHAUSTED)
                return None

            self._present(first)
            self._start_timer()
            logger.info(
                f"Session {self.session_id} started: mode={config.mode.value} "
                f"items={config.item_count} categories={len(self._leaf_categories)}"
            )
            return first

    def submit_answer(self, option_index: int) -> AnswerOutcome:
        """
        Answer the pending item.

        The answer is scored under the session lock, the next item is
        fetched with the lock released so timer ticks keep flowing during a
        slow gateway call, and the lock is retaken to commit.

        Nothing is committed until the next item has been fetched, so a
        BankUnavailableError leaves history untouched and the same call can
        simply be retried. If the session moved on while the fetch ran (time
        ran out, it was finished, another answer landed first) the fetched
        item is thrown away.
        """
        with self._lock:
            session = self.session
            if session.status == SessionStatus.COMPLETED:
                return self._late_answer()
            if session.status != SessionStatus.ACTIVE:
                raise InvalidStateError(f"Cannot answer while {session.status.value}")

            item = self._presented[-1]
            if isinstance(option_index, bool) or not isinstance(option_index, int) \
                    or not 0 <= option_index < len(item.options):
                raise InvalidAnswerError(
                    f"Option {option_index!r} out of range for item {item.id} "
                    f"({len(item.options)} options)"
                )

            is_correct = option_index == item.correct_option_index
            response = Response(
                item_id=item.id,
                chosen_option_index=option_index,
                is_correct=is_correct,
                difficulty=item.difficulty,
                category=item.category,
                subcategory=item.subcategory,
                time_spent_seconds=int(round(self._item_active_seconds())),
            )
            history = session.responses + [response]
            ability = estimate_ability(history)
            version = self._version
            asked = list(session.asked_item_ids)
            wants_next = len(history) < session.config.item_count

        next_item = None
        exhausted = False
        if wants_next:
            try:
                next_item = self._select_next(ability.theta, item.category, asked)
            except ExhaustedBankError:
                exhausted = True

        with self._lock:
            if self._version != version:
                if session.status == SessionStatus.COMPLETED:
                    return self._late_answer()
                raise InvalidStateError("Session changed while the answer was being scored; resubmit")

            # Commit
            response = replace(response, flagged=self._pending_flag)
            self._version += 1
            session.responses.append(response)
            session.ability = ability
            self._categories.record(item.category, is_correct)
            self._subcategories.record(item.subcategory, is_correct)
            self._difficulties.record(item.difficulty.value, is_correct)
            if exhausted:
                logger.warning(f"Session {self.session_id}: bank exhausted after {len(history)} answers")
                session.stop_reason = StopReason.BANK_EXHAUSTED

            reason = stop_reason(session)
            if reason is not None:
                self._complete(reason)
                return AnswerOutcome(accepted=True, completed=True, is_correct=is_correct, stop_reason=reason)

            self._present(next_item)
            return AnswerOutcome(accepted=True, completed=False, is_correct=is_correct, next_item=next_item)

    def toggle_flag(self) -> Optional[bool]:
        """Flag or unflag the viewed item. Returns the new flag, or None if not active."""
        with self._lock:
            session = self.session
            if session.status != SessionStatus.ACTIVE:
                return None
            index = session.current_index
            if index < len(session.responses):
                response = session.responses[index]
                session.responses[index] = replace(response, flagged=not response.flagged)
                return session.responses[index].flagged
            self._pending_flag = not self._pending_flag
            return self._pending_flag

    def pause(self):
        """Freeze the clock and the timer. No-op unless active."""
        with self._lock:
            if self.session.status != SessionStatus.ACTIVE:
                return
            self._stop_clocks()
            self._stop_timer()
            self.session.status = SessionStatus.PAUSED
            logger.debug(f"Session {self.session_id} paused")

    def resume(self):
        """Restart the clock and the timer. No-op unless paused."""
        with self._lock:
            if self.session.status != SessionStatus.PAUSED:
                return
            now = self.clock()
            self._active_since = now
            self._item_since = now
            self.session.status = SessionStatus.ACTIVE
            self._start_timer()
            logger.debug(f"Session {self.session_id} resumed")

    def tick(self, generation: Optional[int] = None):
        """
        One second of exam time passes.

        Ticks from a cancelled timer generation, or arriving while the
        session isn't active, are ignored. Reaching zero finishes the test.
        """
        with self._lock:
            session = self.session
            if session.status != SessionStatus.ACTIVE or not session.config.is_timed:
                logger.debug(f"Session {self.session_id}: ignoring tick while {session.status.value}")
                return
            if generation is not None and generation != self._generation:
                logger.debug(f"Session {self.session_id}: ignoring stale tick")
                return
            session.remaining_seconds = max(0, session.remaining_seconds - 1)
            if session.remaining_seconds <= 0:
                self._complete(StopReason.TIME_LIMIT)

    def finish(self) -> TestResult:
        """End the test now. A second call returns the same result."""
        with self._lock:
            if self.session.status == SessionStatus.COMPLETED:
                return self._result
            if self.session.status == SessionStatus.CONFIGURING:
                raise InvalidStateError("Session has not started")
            self.session.finish_requested = True
            return self._complete(stop_reason(self.session))

    # ==================== Navigation ====================

    def navigate(self, index: int) -> Item:
        """Move the view to a presented item (answered ones are read-only)."""
        with self._lock:
            if self.session.status != SessionStatus.ACTIVE:
                raise InvalidStateError(f"Cannot navigate while {self.session.status.value}")
            if not 0 <= index < len(self._presented):
                raise InvalidNavigationError(f"Item {index} has not been presented")
            self.session.current_index = index
            return self._presented[index]

    def previous(self) -> Item:
        with self._lock:
            return self.navigate(max(0, self.session.current_index - 1))

    def next(self) -> Item:
        with self._lock:
            return self.navigate(min(len(self._presented) - 1, self.session.current_index + 1))

    # ==================== Views ====================

    def snapshot(self) -> dict:
        """Plain-data view of the session for callers and the UI."""
        with self._lock:
            session = self.session
            answered = len(session.responses)
            theta = session.ability.theta
            current = None
            current_response = None
            if session.status != SessionStatus.COMPLETED and self._presented:
                current = self._presented[session.current_index].to_public_dict()
                if session.current_index < answered:
                    current_response = session.responses[session.current_index].to_dict()

            remaining = session.remaining_seconds
            return {
                "session_id": self.session_id,
                "status": session.status.value,
                "mode": session.config.mode.value,
                "current_item": current,
                "current_response": current_response,
                "progress": {
                    "answered": answered,
                    "item_count": session.config.item_count,
                    "current_index": session.current_index,
                    "flagged_count": self._flagged_count(),
                },
                "ability": session.ability.to_dict(),
                "confidence_interval": list(confidence_interval(theta, answered)),
                "passing_probability": pass_probability(theta, answered),
                "remaining_seconds": remaining,
                "time_warning": remaining is not None and remaining <= self.settings.time_warning_seconds,
                "stop_reason": session.stop_reason.value if session.stop_reason else None,
            }

    # ==================== Internals ====================

    def _select_next(self, theta: float, last_category: Optional[str], asked: List[str]) -> Item:
        try:
            return self.selector.select_next(
                theta,
                asked,
                last_category=last_category,
                categories=self._leaf_categories,
            )
        except BankUnavailableError as e:
            logger.warning(f"Session {self.session_id}: item bank unavailable: {e}")
            raise

    def _present(self, item: Item):
        self._presented.append(item)
        self.session.asked_item_ids.append(item.id)
        self.session.current_index = len(self._presented) - 1
        self._pending_flag = False
        self._item_elapsed = 0.0
        # Presented while paused: the item clock starts on resume
        self._item_since = self.clock() if self.session.status == SessionStatus.ACTIVE else None

    def _item_active_seconds(self) -> float:
        running = self.clock() - self._item_since if self._item_since is not None else 0.0
        return self._item_elapsed + running

    def _stop_clocks(self):
        now = self.clock()
        if self._active_since is not None:
            self._active_elapsed += now - self._active_since
            self._active_since = None
        if self._item_since is not None:
            self._item_elapsed += now - self._item_since
            self._item_since = None

    def _start_timer(self):
        if self._timer is not None:
            self._generation += 1
            self._timer.start(self._generation)

    def _stop_timer(self):
        # Bump first so a tick already waiting on the lock is recognised as stale
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()

    def _late_answer(self) -> AnswerOutcome:
        logger.debug(f"Session {self.session_id}: discarding late answer")
        return AnswerOutcome(accepted=False, completed=True, stop_reason=self.session.stop_reason)

    def _flagged_count(self) -> int:
        flagged = sum(1 for r in self.session.responses if r.flagged)
        return flagged + (1 if self._pending_flag and self.session.status != SessionStatus.COMPLETED else 0)

    def _complete(self, reason: StopReason) -> TestResult:
        session = self.session
        if session.status == SessionStatus.ACTIVE:
            self._stop_clocks()
        self._stop_timer()
        self._version += 1
        self.completed_clock = self.clock()
        session.stop_reason = reason
        session.status = SessionStatus.COMPLETED
        session.completed_at = datetime.now(timezone.utc)
        session.current_index = len(session.responses)
        self._result = self._build_result(reason)
        logger.info(
            f"Session {self.session_id} completed: reason={reason.value} "
            f"answered={self._result.total_answered}/{session.config.item_count}"
        )
        return self._result

    def _build_result(self, reason: StopReason) -> TestResult:
        responses = self.session.responses
        answered = len(responses)
        theta = self.session.ability.theta
        strengths, weaknesses = self._categories.strengths_and_weaknesses()
        return TestResult(
            score=sum(1 for r in responses if r.is_correct),
            total_answered=answered,
            item_count=self.session.config.item_count,
            final_ability=self.session.ability,
            confidence_interval=confidence_interval(theta, answered),
            passing_probability=pass_probability(theta, answered),
            passed=is_passing(theta),
            category_breakdown=self._categories.snapshot(),
            subcategory_breakdown=self._subcategories.snapshot(),
            difficulty_breakdown=self._difficulties.snapshot(),
            strengths=tuple(strengths),
            weaknesses=tuple(weaknesses),
            flagged_item_ids=tuple(r.item_id for r in responses if r.flagged),
            time_spent_seconds=int(round(self._active_elapsed)),
            stop_reason=reason,
        )
