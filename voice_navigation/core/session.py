"""
Retry tracking for voice navigation sessions.
Counts repeated attempts of the same utterance within a session.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from voice_navigation.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class RetrySession:
    """Attempts of one message within one session."""
    key: str
    count: int = 0
    first_attempt: datetime = field(default_factory=datetime.now)
    last_attempt: datetime = field(default_factory=datetime.now)

    def is_expired(self, timeout: timedelta) -> bool:
        """Check if the counter has gone stale through inactivity."""
        return datetime.now() - self.last_attempt > timeout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "count": self.count,
            "first_attempt": self.first_attempt.isoformat(),
            "last_attempt": self.last_attempt.isoformat()
        }


class RetryTracker:
    """
    Per-process retry counters keyed by `f"{session_id}_{message}"`.

    `increment` reads and bumps the counter without awaiting, so two
    requests on one event loop never interleave on the same key.
    Callers clear the key on every terminal outcome; counters left
    behind expire after `session_timeout_minutes` and the map never
    holds more than `max_sessions` keys.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        session_timeout_minutes: Optional[float] = None,
        max_sessions: Optional[int] = None
    ):
        self.max_attempts = settings.MAX_RETRY_ATTEMPTS if max_attempts is None else max_attempts
        self.timeout = timedelta(minutes=(
            settings.SESSION_TIMEOUT_MINUTES if session_timeout_minutes is None else session_timeout_minutes
        ))
        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions
        self._sessions: Dict[str, RetrySession] = {}

    @staticmethod
    def make_key(session_id: str, message: str) -> str:
        return f"{session_id}_{message}"

    def increment(self, session_id: str, message: str) -> int:
        """Record an attempt and return its 1-based number."""
        key = self.make_key(session_id, message)
        session = self._live(key)
        if session is None:
            if len(self._sessions) >= self.max_sessions:
                self.cleanup_expired()
            if len(self._sessions) >= self.max_sessions:
                self._evict_oldest()
            session = RetrySession(key=key)
            self._sessions[key] = session
        session.count += 1
        session.last_attempt = datetime.now()
        return session.count

    def get_count(self, session_id: str, message: str) -> int:
        session = self._live(self.make_key(session_id, message))
        return session.count if session else 0

    def get_session(self, session_id: str, message: str) -> Optional[RetrySession]:
        return self._live(self.make_key(session_id, message))

    def clear(self, session_id: str, message: str) -> bool:
        removed = self._sessions.pop(self.make_key(session_id, message), None)
        return removed is not None

    def clear_session(self, session_id: str) -> int:
        """Drop every counter belonging to a session."""
        prefix = f"{session_id}_"
        keys = [k for k in self._sessions if k.startswith(prefix)]
        for key in keys:
            del self._sessions[key]
        if keys:
            logger.info(f"Cleared {len(keys)} retry counters for session {session_id}")
        return len(keys)

    def cleanup_expired(self) -> int:
        """Remove counters whose last attempt is older than the timeout."""
        expired = [k for k, s in self._sessions.items() if s.is_expired(self.timeout)]
        for key in expired:
            del self._sessions[key]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired retry counters")
        return len(expired)

    def _live(self, key: str) -> Optional[RetrySession]:
        session = self._sessions.get(key)
        if session is not None and session.is_expired(self.timeout):
            del self._sessions[key]
            return None
        return session

    def _evict_oldest(self):
        if not self._sessions:
            return
        oldest = min(self._sessions.values(), key=lambda s: s.last_attempt)
        del self._sessions[oldest.key]
        logger.debug(f"Evicted retry counter {oldest.key}")

    def keys(self) -> List[str]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        return key in self._sessions
