"""Read-only access to published announcements for answer grounding."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import select

from app.config import settings
from app.database.db import AsyncSessionLocal
from app.database.models import Announcement
from app.models import CandidateDocument
from app.services.text_utils import html_to_plain_text

logger = logging.getLogger(__name__)


def to_candidate(row: Announcement) -> CandidateDocument:
    """Project an announcement row onto the fields the pipeline reads."""
    return CandidateDocument(
        id=str(row.id),
        title=row.title or "",
        summary_text=html_to_plain_text(row.summary),
        target_audience=row.target_audience,
        application_deadline=row.application_deadline,
        announcement_end_date=row.announcement_end_date,
        submission_method=row.submission_method,
        application_limitations=row.application_limitations,
    )


class AnnouncementRepository:
    """Loads active announcements. Every call hits the database; nothing is cached between requests."""

    def __init__(self, session_factory=None, timeout: Optional[float] = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._timeout = timeout if timeout is not None else settings.repository_timeout_seconds

    async def list_active(self) -> List[CandidateDocument]:
        """Return all announcements where is_active is true, oldest id first."""
        return await asyncio.wait_for(self._load_active(), timeout=self._timeout)

    async def _load_active(self) -> List[CandidateDocument]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Announcement)
                .where(Announcement.is_active.is_(True))
                .order_by(Announcement.id)
            )
            rows = result.scalars().all()
        logger.debug("Loaded %d active announcements", len(rows))
        return [to_candidate(row) for row in rows]
