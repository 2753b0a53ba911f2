from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator
from uuid import uuid4

from dermascan.analysis.models import Phase
from dermascan.analysis.session import AnalysisSession


class SessionNotFoundError(KeyError):
    pass


class SessionStore:
    """In-memory registry of page sessions. All mutations go through the lock."""

    def __init__(self) -> None:
        self._records: dict[str, AnalysisSession] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> AnalysisSession:
        session = AnalysisSession(id=uuid4().hex)
        async with self._lock:
            self._records[session.id] = session
        return session

    async def get(self, session_id: str) -> AnalysisSession:
        async with self._lock:
            session = self._records.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[AnalysisSession]:
        """Hold the registry lock while the caller mutates one session."""
        async with self._lock:
            session = self._records.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            yield session

    async def discard(self, session_id: str) -> bool:
        async with self._lock:
            return self._records.pop(session_id, None) is not None

    async def evict_idle(self, max_idle_seconds: float, now: datetime | None = None) -> list[str]:
        """
        Drop sessions untouched for longer than `max_idle_seconds`.

        Sessions with an analysis in flight are kept; their runner still
        has to apply or discard the completion.
        """
        cutoff = (now or datetime.now(tz=timezone.utc)) - timedelta(seconds=max_idle_seconds)
        async with self._lock:
            expired = [
                session_id
                for session_id, session in self._records.items()
                if session.updated_at < cutoff and session.phase is not Phase.ANALYZING
            ]
            for session_id in expired:
                del self._records[session_id]
        return expired

    def __len__(self) -> int:
        return len(self._records)


session_store = SessionStore()
