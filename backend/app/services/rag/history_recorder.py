"""
Fire-and-forget persistence of chat turns.

Each turn is written by its own detached task with its own timeout. The response
path never awaits these tasks; failures are reported on the log channel only.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Set

from app.config import settings
from app.services.history_store import ConversationStore

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Schedule user/assistant turn writes without blocking the caller."""

    def __init__(self, store: ConversationStore, timeout: Optional[float] = None):
        self._store = store
        self._timeout = timeout if timeout is not None else settings.persistence_timeout_seconds
        # Strong references so pending tasks are not garbage collected mid-write
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def record_exchange(
        self,
        session_id: str,
        caller_id: str,
        user_text: str,
        assistant_text: str,
        user_timestamp: Optional[datetime] = None,
    ) -> None:
        """Schedule both turns; the two writes run in parallel and are not awaited."""
        now = datetime.utcnow()
        self._schedule(session_id, caller_id, "user", user_text, user_timestamp or now)
        self._schedule(session_id, caller_id, "assistant", assistant_text, now)

    def _schedule(self, session_id: str, caller_id: str, role: str, content: str, timestamp: datetime) -> None:
        task = asyncio.create_task(
            self._write(session_id, caller_id, role, content, timestamp),
            name=f"history-{role}-{session_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, session_id: str, caller_id: str, role: str, content: str, timestamp: datetime) -> None:
        try:
            await asyncio.wait_for(
                self._store.append(session_id, caller_id, role, content, timestamp),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Failed to persist %s turn: %s",
                role,
                e,
                extra={"session_id": session_id, "caller_id": caller_id, "error": str(e)},
            )

    async def wait_pending(self) -> None:
        """Wait for all scheduled writes (app shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
