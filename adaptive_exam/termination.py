"""
Termination Policy - When a test session ends.

A session stops as soon as any of these holds:
    - every configured item has been answered
    - a timed session has run out of time
    - the test-taker asked to finish
    - the item bank has nothing left to ask
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .session import TestSession


class StopReason(str, Enum):
    ITEM_COUNT = "item_count"
    TIME_LIMIT = "time_limit"
    USER_REQUESTED = "user_requested"
    BANK_EXHAUSTED = "bank_exhausted"


def stop_reason(session: "TestSession") -> Optional[StopReason]:
    """Return why the session must stop, or None if it may continue."""
    if session.stop_reason is not None:
        return session.stop_reason
    if len(session.responses) >= session.config.item_count:
        return StopReason.ITEM_COUNT
    if session.config.is_timed and session.remaining_seconds is not None and session.remaining_seconds <= 0:
        return StopReason.TIME_LIMIT
    if session.finish_requested:
        return StopReason.USER_REQUESTED
    return None


def should_stop(session: "TestSession") -> bool:
    return stop_reason(session) is not None
