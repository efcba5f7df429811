"""
Web search provider (SerpAPI) used by the external fallback.
Absence of an API key is not an error: the provider just reports no results.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from app.config import settings
from app.errors import UpstreamDegradable

logger = logging.getLogger(__name__)


class SerpApiSearchProvider:
    """Google results through SerpAPI, biased toward institutional and government sites."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self._api_key = api_key if api_key is not None else settings.serp_api_key
        self._session = session or requests.Session()
        self._timeout = timeout if timeout is not None else settings.search_timeout_seconds

    @property
    def is_configured(self) -> bool:
        key = (self._api_key or "").strip()
        return bool(key) and key != "YOUR_SERP_API_KEY_HERE"

    @staticmethod
    def build_query(query: str) -> str:
        """Append the domain bias (scholarship keyword + site filters) to the query."""
        suffix = settings.search_query_suffix.strip()
        return f"{query.strip()} {suffix}" if suffix else query.strip()

    def search(self, query: str) -> List[Dict[str, Any]]:
        """
        Return raw organic results (dicts with title/link/snippet when present).
        Raises UpstreamDegradable on HTTP, timeout or decoding failure.
        """
        if not self.is_configured:
            logger.info("SerpAPI key not configured; external search disabled")
            return []

        params = {
            "q": self.build_query(query),
            "api_key": self._api_key,
            "gl": settings.search_locale_gl,
            "hl": settings.search_locale_hl,
        }
        try:
            r = self._session.get(settings.serp_api_url, params=params, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise UpstreamDegradable(f"SerpAPI request failed: {e}") from e
        except ValueError as e:
            raise UpstreamDegradable(f"SerpAPI returned invalid JSON: {e}") from e

        results = data.get("organic_results") if isinstance(data, dict) else None
        return results if isinstance(results, list) else []
