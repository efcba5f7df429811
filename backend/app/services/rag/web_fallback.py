"""
External fallback search, entered only when internal retrieval found no confident match.
Reformulate the conversation into one query, search the web, keep usable snippets.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence

from app.config import settings
from app.models import ConversationTurn, ExternalResult, MAX_EXTERNAL_RESULTS
from app.services.openai_service import AzureOpenAIService
from app.services.rag.prompts import QUERY_REFORMULATION_PROMPT
from app.services.rag.rag_prompt_builder import format_history
from app.services.search_service import SerpApiSearchProvider

logger = logging.getLogger(__name__)


def filter_results(raw_results: Iterable[Dict[str, Any]], limit: int = MAX_EXTERNAL_RESULTS) -> List[ExternalResult]:
    """Keep entries with non-empty title, link and snippet; first `limit`, provider order."""
    kept: List[ExternalResult] = []
    for item in raw_results:
        if len(kept) >= limit:
            break
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        link = str(item.get("link") or "").strip()
        snippet = str(item.get("snippet") or "").strip()
        if title and link and snippet:
            kept.append(ExternalResult(title=title, link=link, snippet=snippet))
    return kept


def clean_query(response_text: str | None) -> str:
    """First non-empty line of the reformulation, without wrapping quotes."""
    for line in (response_text or "").splitlines():
        line = line.strip().strip('"').strip("'").strip()
        if line:
            return line
    return ""


class WebFallbackSearcher:
    """Reformulate → search → filter."""

    def __init__(
        self,
        openai_service: AzureOpenAIService | None = None,
        search_provider: SerpApiSearchProvider | None = None,
    ):
        self._openai = openai_service or AzureOpenAIService()
        self._search = search_provider or SerpApiSearchProvider()

    @property
    def available(self) -> bool:
        return self._search.is_configured

    def reformulate(self, user_query: str, history: Sequence[ConversationTurn] = ()) -> str:
        """Condense history plus the current message into one search query."""
        prompt = QUERY_REFORMULATION_PROMPT.format(
            history=format_history(history),
            user_query=user_query.strip(),
        )
        response = self._openai.complete(
            prompt,
            temperature=0.0,
            timeout=settings.reformulate_timeout_seconds,
            max_tokens=100,
        )
        return clean_query(response) or user_query.strip()

    def search(self, user_query: str, history: Sequence[ConversationTurn] = ()) -> tuple[str, List[ExternalResult]]:
        """
        Returns (search_query, usable_results). An unconfigured provider yields no
        results without spending a reformulation call. Provider errors propagate.
        """
        if not self.available:
            logger.info("External search unavailable; no fallback results")
            return "", []
        search_query = self.reformulate(user_query, history)
        raw = self._search.search(search_query)
        results = filter_results(raw)
        logger.info(
            "External search kept %d of %d results",
            len(results),
            len(raw),
            extra={"search_query": search_query[:200], "num_results": len(results)},
        )
        return search_query, results
