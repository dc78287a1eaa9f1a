"""Session tracking for tool invocations.

Provides SessionManager, a thread-safe registry of Session records with
message history, monotonic status transitions, time-bounded cleanup and
JSON save/load for persistence across process restarts.
"""

import json
import logging
import threading
from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from dispatcher.errors import NotFoundError, SessionStateError
from dispatcher.models import (
    Message,
    MessageRole,
    Session,
    SessionStatus,
    new_session_id,
    utcnow,
)

logger = logging.getLogger(__name__)

STATE_FILE = "sessions.json"
TERMINAL_STATUSES = ("completed", "failed")


class SessionManager:
    """Registry of sessions keyed by id.

    All mutations happen under a single lock. Queries return snapshot
    copies, so callers never observe or mutate registry internals.

    Usage:
        sessions = SessionManager()
        session = sessions.create("claude-code")
        sessions.add_message(session.id, "user", "refactor the parser")
        sessions.complete(session.id, "completed")
    """

    def __init__(self, sessions: list[Session] | None = None) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {s.id: s for s in sessions or []}

    def create(
        self,
        tool: str,
        session_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """Start a new active session.

        Args:
            tool: Name of the tool owning the session
            session_id: Pre-assigned id (generated when None)
            metadata: Free-form metadata stored with the session

        Raises:
            SessionStateError: If a session with that id already exists
        """
        session = Session(
            id=session_id or new_session_id(tool),
            tool=tool,
            metadata=dict(metadata) if metadata is not None else None,
        )
        with self._lock:
            if session.id in self._sessions:
                raise SessionStateError(f"Session {session.id} already exists")
            self._sessions[session.id] = session
        return session.copy()

    def add_message(self, session_id: str, role: MessageRole, content: str) -> Message:
        """Append a timestamped message to an active session.

        Raises:
            NotFoundError: If the session id is unknown
            SessionStateError: If the session is already terminal
        """
        with self._lock:
            session = self._require(session_id)
            if session.is_terminal:
                raise SessionStateError(
                    f"Session {session_id} is {session.status}; cannot add messages"
                )
            # Stamped under the lock so list order matches timestamp order
            message = Message(role=role, content=content)
            session.messages.append(message)
        return message

    def complete(self, session_id: str, status: SessionStatus = "completed") -> Session:
        """Move an active session to a terminal status and stamp its end time.

        Raises:
            ValueError: If status is not a terminal status
            NotFoundError: If the session id is unknown
            SessionStateError: If the session is already terminal
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Invalid terminal status: {status}")

        with self._lock:
            session = self._require(session_id)
            if session.is_terminal:
                raise SessionStateError(f"Session {session_id} is already {session.status}")
            session.status = status
            session.end_time = utcnow()
            return session.copy()

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    def get_all(self) -> list[Session]:
        return self._snapshot()

    def get_by_tool(self, tool: str) -> list[Session]:
        return [s for s in self._snapshot() if s.tool == tool]

    def get_active(self) -> list[Session]:
        return [s for s in self._snapshot() if not s.is_terminal]

    def delete(self, session_id: str) -> bool:
        """Remove a session regardless of status. Returns False if unknown."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def cleanup(self, max_age_seconds: float = 3600, now: datetime | None = None) -> int:
        """Remove terminal sessions that ended more than ``max_age_seconds`` ago.

        Active sessions are never removed.

        Returns:
            Number of sessions removed
        """
        cutoff = (now or utcnow()) - timedelta(seconds=max_age_seconds)

        with self._lock:
            expired = [
                s.id
                for s in self._sessions.values()
                if s.is_terminal and s.end_time is not None and s.end_time < cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]

        if expired:
            logger.debug(f"Cleaned up {len(expired)} sessions")
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        """Counts by status and by tool, computed from a snapshot."""
        sessions = self._snapshot()
        statuses = Counter(s.status for s in sessions)
        return {
            "total": len(sessions),
            "active": statuses["active"],
            "completed": statuses["completed"],
            "failed": statuses["failed"],
            "by_tool": dict(Counter(s.tool for s in sessions)),
        }

    def save(self, state_dir: Path) -> Path:
        """Persist all sessions to ``state_dir/sessions.json``.

        Creates the state directory if it doesn't exist.
        """
        sessions = self._snapshot()

        state_dir.mkdir(parents=True, exist_ok=True)
        path = state_dir / STATE_FILE
        with open(path, "w") as f:
            json.dump([s.to_dict() for s in sessions], f, indent=2)

        return path

    @classmethod
    def load(cls, state_dir: Path) -> "SessionManager":
        """Restore sessions saved by save().

        Returns an empty manager if no state file exists.
        """
        path = state_dir / STATE_FILE
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls([Session.from_dict(item) for item in data])

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _snapshot(self) -> list[Session]:
        with self._lock:
            return [s.copy() for s in self._sessions.values()]

    def _require(self, session_id: str) -> Session:
        # Caller holds the lock
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session
