"""
Internal retrieval over published announcements.

There is no vector index: every active announcement is a candidate, and the LLM
scores each one for relevance to the question (see relevance_scorer). Only
high-confidence documents are kept. Errors propagate; the pipeline decides to
degrade to the web fallback.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from app.models import CandidateDocument, ConversationTurn, RelevanceScore
from app.services.announcement_repository import AnnouncementRepository
from app.services.rag.relevance_scorer import RelevanceScorer, select_relevant

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """Selected documents plus the scores that selected them."""
    candidates: int = 0
    scores: List[RelevanceScore] = field(default_factory=list)
    selected: List[CandidateDocument] = field(default_factory=list)


class InternalRetriever:
    """Load active announcements and keep the ones the model scores as relevant."""

    def __init__(self, repository: AnnouncementRepository, scorer: RelevanceScorer):
        self._repository = repository
        self._scorer = scorer

    async def retrieve(
        self,
        user_query: str,
        history: Sequence[ConversationTurn] = (),
    ) -> RetrievalResult:
        documents = await self._repository.list_active()
        if not documents:
            logger.info("No active announcements; skipping relevance scoring")
            return RetrievalResult()

        # Scoring is a blocking completion call; keep it off the event loop
        scores = await asyncio.to_thread(self._scorer.score, user_query, documents, history)
        selected = select_relevant(documents, scores)
        logger.info(
            "Relevance scoring selected %d of %d announcements",
            len(selected),
            len(documents),
            extra={
                "num_docs": len(selected),
                "document_ids": [d.id for d in selected][:20],
            },
        )
        return RetrievalResult(candidates=len(documents), scores=scores, selected=selected)
