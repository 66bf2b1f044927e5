from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Tuple

from .models import ConfirmSearch, Product

logger = logging.getLogger("stockbot.sessions")

ResultSet = Tuple[Product, ...]


class SessionState(str, Enum):
    INITIAL = "INITIAL"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    SEARCH_MODE = "SEARCH_MODE"


@dataclass(frozen=True)
class Session:
    """Per-conversation dialogue state; replaced wholesale on every transition."""
    state: SessionState = SessionState.INITIAL
    pending_action: Optional[ConfirmSearch] = None
    current_results: ResultSet = ()
    result_history: Tuple[ResultSet, ...] = ()

    def __post_init__(self) -> None:
        if self.current_results and self.state is not SessionState.SEARCH_MODE:
            raise ValueError(f"current_results set outside SEARCH_MODE (state={self.state.value})")
        if self.pending_action is not None and self.state is not SessionState.AWAITING_CONFIRMATION:
            raise ValueError(f"pending_action set outside AWAITING_CONFIRMATION (state={self.state.value})")

    @property
    def has_results(self) -> bool:
        return self.state is SessionState.SEARCH_MODE and bool(self.current_results)


class SessionStore:
    """In-memory, process-local session storage with per-conversation locking."""

    def __init__(self) -> None:
        """Purpose: Initialize empty session and lock maps.
        Inputs/Outputs: No inputs; no return value.
        Side Effects / State: Allocates the session, lock, and lock-user dictionaries.
        Dependencies: None.
        Failure Modes: None.
        If Removed: The dialogue controller has nowhere to keep conversation state.
        Testing Notes: A new store reports zero sessions.
        """
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, conversation_id: str) -> Optional[Session]:
        """Return the stored session or None without creating one."""
        return self._sessions.get(conversation_id)

    def get_or_create(self, conversation_id: str) -> Session:
        """Purpose: Fetch the session for a conversation, creating it on first contact.
        Inputs/Outputs: Input is conversation_id; output is the current Session.
        Side Effects / State: Inserts a fresh INITIAL session for unknown ids.
        Dependencies: Session defaults.
        Failure Modes: None; sessions are never evicted.
        If Removed: First messages from new conversations have no state to read.
        Testing Notes: Two calls for the same id return the same object until save().
        """
        # Lazily create sessions; there is no expiry policy.
        session = self._sessions.get(conversation_id)
        if session is None:
            session = Session()
            self._sessions[conversation_id] = session
            logger.debug("conversation=%s session created", conversation_id)
        return session

    def save(self, conversation_id: str, session: Session) -> None:
        """Purpose: Replace the stored session with the result of a transition.
        Inputs/Outputs: Inputs are conversation_id and the new Session; no return value.
        Side Effects / State: Mutates the session map; later lookups see the new value.
        Dependencies: None.
        Failure Modes: None.
        If Removed: Transitions computed by the controller would be lost.
        Testing Notes: save() then get_or_create() returns the saved session.
        """
        previous = self._sessions.get(conversation_id)
        self._sessions[conversation_id] = session
        if previous is None or previous.state is not session.state:
            logger.debug(
                "conversation=%s state=%s results=%d history=%d",
                conversation_id,
                session.state.value,
                len(session.current_results),
                len(session.result_history),
            )

    @property
    def active_locks(self) -> int:
        """Number of conversations with a handler holding or waiting for the lock."""
        return len(self._locks)

    @asynccontextmanager
    async def locked(self, conversation_id: str) -> AsyncIterator[Session]:
        """Purpose: Serialize read-decide-mutate sequences per conversation.
        Inputs/Outputs: Input is conversation_id; yields the current Session while the
            conversation lock is held.
        Side Effects / State: Acquires and releases the per-conversation asyncio.Lock;
            the lock is discarded once no handler holds or awaits it.
        Dependencies: get_or_create.
        Failure Modes: Exceptions inside the block release the lock and propagate.
        If Removed: Concurrent messages for one conversation could interleave mutations.
        Testing Notes: Two concurrent handlers for one id must run one after the other;
            active_locks drops back to 0 afterwards.
        """
        # No await between lookup and insert, so one event loop cannot race here.
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield self.get_or_create(conversation_id)
        finally:
            remaining = self._lock_users[conversation_id] - 1
            if remaining:
                self._lock_users[conversation_id] = remaining
            else:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]
