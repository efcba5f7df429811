"""
Relevance scoring for candidate announcements: 0–10 per document.
One LLM call scores every candidate; documents at or above RELEVANCE_THRESHOLD are selected.
An unparseable response raises UpstreamDegradable so the caller can fall back to web search.
"""
from __future__ import annotations

import json
import logging
import math
from typing import Iterable, List, Sequence

from app.config import settings
from app.errors import UpstreamDegradable
from app.models import CandidateDocument, RelevanceScore, RELEVANCE_THRESHOLD, ConversationTurn
from app.services.openai_service import AzureOpenAIService
from app.services.rag.prompts import RELEVANCE_SCORING_PROMPT
from app.services.rag.rag_prompt_builder import format_history

logger = logging.getLogger(__name__)


def build_scoring_documents(documents: Sequence[CandidateDocument]) -> str:
    """Compact id + title + plain summary list, serialized as JSON for the prompt."""
    compact = [
        {"id": doc.id, "content": f"Title: {doc.title}\nSummary: {doc.summary_text}"}
        for doc in documents
    ]
    return json.dumps(compact, ensure_ascii=False)


def _coerce_score(raw) -> int | None:
    # Fractional scores are floored so 6.6 never clears a threshold of 7
    if isinstance(raw, bool):
        return None
    try:
        score = math.floor(float(raw))
    except (TypeError, ValueError, OverflowError):
        return None
    return max(0, min(10, score))


def parse_relevance_scores(response_text: str, candidate_ids: Iterable[str]) -> List[RelevanceScore]:
    """
    Parse the scoring response into RelevanceScore entries.

    Accepts a bare JSON array or an object wrapping one (``{"scores": [...]}``), since
    JSON mode only guarantees an object. Entries for unknown ids or with non-numeric
    scores are dropped. Raises UpstreamDegradable when no list can be found.
    """
    try:
        payload = json.loads(response_text or "")
    except json.JSONDecodeError as e:
        raise UpstreamDegradable(f"Relevance scores are not valid JSON: {e}") from e

    if isinstance(payload, dict):
        items = payload.get("scores")
        if items is None:
            items = next((v for v in payload.values() if isinstance(v, list)), None)
    else:
        items = payload
    if not isinstance(items, list):
        raise UpstreamDegradable("Relevance scores response does not contain a list")

    known = set(candidate_ids)
    scores: List[RelevanceScore] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict) or "id" not in item:
            continue
        doc_id = str(item["id"])
        score = _coerce_score(item.get("score"))
        if doc_id not in known or doc_id in seen or score is None:
            continue
        seen.add(doc_id)
        scores.append(RelevanceScore(document_id=doc_id, score=score))

    missing = known - seen
    if missing:
        logger.warning("Relevance scorer omitted %d of %d candidates", len(missing), len(known))
    return scores


def select_relevant(
    documents: Sequence[CandidateDocument],
    scores: Iterable[RelevanceScore],
) -> List[CandidateDocument]:
    """Keep documents scoring at or above the threshold, in repository order."""
    selected_ids = {s.document_id for s in scores if s.score >= RELEVANCE_THRESHOLD}
    return [doc for doc in documents if doc.id in selected_ids]


class RelevanceScorer:
    """Score candidate announcements against the user's question with one LLM call."""

    def __init__(self, openai_service: AzureOpenAIService | None = None):
        self._openai = openai_service or AzureOpenAIService()

    def score(
        self,
        user_query: str,
        documents: Sequence[CandidateDocument],
        history: Sequence[ConversationTurn] = (),
    ) -> List[RelevanceScore]:
        if not documents:
            return []
        prompt = RELEVANCE_SCORING_PROMPT.format(
            history=format_history(history),
            user_query=user_query.strip(),
            documents=build_scoring_documents(documents),
        )
        response = self._openai.complete(
            prompt,
            temperature=0.0,
            structured_output=True,
            timeout=settings.scoring_timeout_seconds,
            max_tokens=2048,
        )
        return parse_relevance_scores(response, [doc.id for doc in documents])
