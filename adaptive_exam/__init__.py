"""
Adaptive exam engine - Computerized adaptive testing for exam practice.

Components:
    - item_bank: Read-only item catalog with a category taxonomy
    - student_model: Ability estimate, passing probability, confidence interval
    - performance: Correct/total tallies per category, subcategory, difficulty
    - adaptive_tester: Difficulty-banded, diversified next-item selection
    - termination: Stop rules (item count, time limit, finish, exhausted bank)
    - session: Session state machine and its data model
    - engine: Handle-based entry point over a store of live sessions
"""

from .errors import (
    AdaptiveExamError,
    BankUnavailableError,
    ExhaustedBankError,
    InvalidAnswerError,
    InvalidConfigurationError,
    InvalidNavigationError,
    InvalidStateError,
    SessionNotFoundError,
)
from .item_bank import ALL_CATEGORIES, Difficulty, Item, ItemBank
from .student_model import (
    AbilityEstimate,
    Response,
    confidence_interval,
    estimate_ability,
    pass_probability,
)
from .performance import PerformanceTracker
from .adaptive_tester import ItemSelector, target_difficulty
from .termination import StopReason, should_stop
from .session import (
    AnswerOutcome,
    SessionMachine,
    SessionStatus,
    TestConfiguration,
    TestMode,
    TestResult,
    TestSession,
)
from .engine import AdaptiveExamEngine
from .settings import Settings

__all__ = [
    "AdaptiveExamError",
    "BankUnavailableError",
    "ExhaustedBankError",
    "InvalidAnswerError",
    "InvalidConfigurationError",
    "InvalidNavigationError",
    "InvalidStateError",
    "SessionNotFoundError",
    "ALL_CATEGORIES",
    "Difficulty",
    "Item",
    "ItemBank",
    "AbilityEstimate",
    "Response",
    "confidence_interval",
    "estimate_ability",
    "pass_probability",
    "PerformanceTracker",
    "ItemSelector",
    "target_difficulty",
    "StopReason",
    "should_stop",
    "AnswerOutcome",
    "SessionMachine",
    "SessionStatus",
    "TestConfiguration",
    "TestMode",
    "TestResult",
    "TestSession",
    "AdaptiveExamEngine",
    "Settings",
]
