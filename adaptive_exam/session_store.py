"""
Session Store - Live exam sessions keyed by an opaque handle.

Key Structure:
    {handle} -> SessionMachine

The store only guards its own dictionary; each SessionMachine serialises
its own state changes, so one busy session never blocks another.
"""

import threading
import uuid
from typing import Callable, Dict, List

from .errors import SessionNotFoundError
from .session import SessionMachine


class SessionStore:
    def __init__(self):
        self._sessions: Dict[str, SessionMachine] = {}
        self._lock = threading.Lock()

    # ==================== Key Builders ====================

    @staticmethod
    def new_handle() -> str:
        """Opaque, unguessable session handle."""
        return uuid.uuid4().hex

    # ==================== Session Management ====================

    def add(self, handle: str, machine: SessionMachine):
        with self._lock:
            if handle in self._sessions:
                raise ValueError(f"Handle already in use: {handle}")
            self._sessions[handle] = machine

    def get(self, handle: str) -> SessionMachine:
        """Look up a session, raising SessionNotFoundError if missing."""
        with self._lock:
            try:
                return self._sessions[handle]
            except KeyError:
                raise SessionNotFoundError(handle) from None

    def remove(self, handle: str) -> SessionMachine:
        with self._lock:
            try:
                return self._sessions.pop(handle)
            except KeyError:
                raise SessionNotFoundError(handle) from None

    def remove_where(self, predicate: Callable[[SessionMachine], bool]) -> List[str]:
        """Drop every session the predicate selects; returns their handles."""
        with self._lock:
            doomed = [handle for handle, machine in self._sessions.items() if predicate(machine)]
            for handle in doomed:
                del self._sessions[handle]
            return doomed

    def handles(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, handle: str) -> bool:
        with self._lock:
            return handle in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
