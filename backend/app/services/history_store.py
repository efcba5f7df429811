"""Durable conversation store backed by the chat_history table."""
from __future__ import annotations

from app.database.db import AsyncSessionLocal
from app.database.models import ChatHistory
from app.errors import PersistenceWarning
from app.models import HistoryEntry
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class ConversationStore:
    """Append-only store of chat turns, keyed by session and caller."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def append(
        self,
        session_id: str,
        caller_id: str,
        role: str,
        content: str,
        timestamp: Optional[datetime] = None,
    ) -> int:
        """
        Insert one turn.

        Args:
            session_id: Conversation session identifier
            caller_id: Authenticated caller the turn belongs to
            role: "user" or "assistant"
            content: Turn text as shown to the user
            timestamp: Turn time; defaults to now (UTC)

        Returns:
            ID of the created row

        Raises:
            PersistenceWarning: if the insert fails
        """
        try:
            async with self._session_factory() as session:
                turn = ChatHistory(
                    session_id=session_id,
                    caller_id=caller_id,
                    role=role,
                    content=content,
                    timestamp=timestamp or datetime.utcnow(),
                )
                session.add(turn)
                await session.flush()  # Flush to get the ID
                record_id = turn.id
                await session.commit()
                return record_id
        except SQLAlchemyError as e:
            raise PersistenceWarning(f"Failed to store {role} turn: {str(e)}") from e

    async def list_turns(self, caller_id: str, session_id: Optional[str] = None) -> List[HistoryEntry]:
        """Return the caller's turns oldest first, optionally for one session."""
        async with self._session_factory() as session:
            query = select(ChatHistory).where(ChatHistory.caller_id == caller_id)
            if session_id:
                query = query.where(ChatHistory.session_id == session_id)
            result = await session.execute(query.order_by(ChatHistory.timestamp, ChatHistory.id))
            rows = result.scalars().all()
        return [
            HistoryEntry(session_id=row.session_id, role=row.role, content=row.content, timestamp=row.timestamp)
            for row in rows
        ]

    async def clear(self, caller_id: str, session_id: Optional[str] = None) -> int:
        """Delete the caller's turns (optionally one session). Returns rows removed."""
        async with self._session_factory() as session:
            stmt = delete(ChatHistory).where(ChatHistory.caller_id == caller_id)
            if session_id:
                stmt = stmt.where(ChatHistory.session_id == session_id)
            result = await session.execute(stmt)
            await session.commit()
        logger.info(
            "Chat history cleared",
            extra={"caller_id": caller_id, "session_id": session_id or "all", "num_rows": result.rowcount},
        )
        return result.rowcount or 0
