"""Stream session registry: per-request cancellation flags.

One registry is owned by the serving component (``ChatService``) and
shared by every in-flight stream it runs. Critical sections are limited to
dict lookups, inserts and removals, so the lock is never held across I/O.

Request ids are expected to be fresh per logical user action. Reusing an
id while an earlier call with the same id is still running resets that
call's flag and lets whichever finishes first remove the entry.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

_logger = logging.getLogger(__name__)


@dataclass
class StreamSession:
    """Cancellation state of one in-flight stream."""

    request_id: str
    cancelled: bool = False


class StreamSessionRegistry:
    """Thread-safe table of request id -> ``StreamSession``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, StreamSession] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(self, request_id: str) -> StreamSession:
        """Create (or reset) the entry for *request_id*."""
        session = StreamSession(request_id=request_id)
        with self._lock:
            replaced = request_id in self._sessions
            self._sessions[request_id] = session
        if replaced:
            _logger.warning("Request id %r re-registered while still active", request_id)
        return session

    def cancel(self, request_id: str) -> bool:
        """Flag *request_id* as cancelled.

        Unknown ids are ignored. Returns ``True`` if a session was flagged.
        """
        with self._lock:
            session = self._sessions.get(request_id)
            if session is not None:
                session.cancelled = True
        return session is not None

    def cancel_all(self) -> int:
        """Flag every active session. Returns the number flagged."""
        with self._lock:
            for session in self._sessions.values():
                session.cancelled = True
            return len(self._sessions)

    def is_cancelled(self, request_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(request_id)
            return session is not None and session.cancelled

    def cleanup(self, request_id: str) -> None:
        """Remove the entry for *request_id* if present."""
        with self._lock:
            self._sessions.pop(request_id, None)

    def active_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    @contextmanager
    def session(self, request_id: str) -> Iterator[StreamSession]:
        """Register *request_id* for the duration of the ``with`` block.

        The entry is removed exactly once on every exit path.
        """
        session = self.register(request_id)
        try:
            yield session
        finally:
            self.cleanup(request_id)
