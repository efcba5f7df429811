"""
Intent classification using the LLM (not keyword matching).
Outputs: RELATED | UNRELATED.
Anything the model returns other than those two labels counts as RELATED (fail-open),
so format drift never rejects a legitimate scholarship question.
"""
from __future__ import annotations

import logging

from app.config import settings
from app.models import IntentLabel
from app.services.openai_service import AzureOpenAIService
from app.services.rag.prompts import INTENT_CLASSIFICATION_PROMPT

logger = logging.getLogger(__name__)

VALID_LABELS: tuple[str, ...] = ("RELATED", "UNRELATED")


def parse_intent_label(response_text: str | None) -> IntentLabel:
    """Map raw model output to a label; only an exact UNRELATED rejects."""
    label = (response_text or "").strip().upper()
    if label in VALID_LABELS:
        return label  # type: ignore[return-value]
    logger.warning("Intent classifier returned unexpected label: %r; treating as RELATED", label)
    return "RELATED"


class IntentClassifier:
    """Classify a user message as RELATED or UNRELATED to scholarship matters."""

    def __init__(self, openai_service: AzureOpenAIService | None = None):
        self._openai = openai_service or AzureOpenAIService()

    def classify(self, user_query: str) -> IntentLabel:
        """
        Classify the user message alone; history is deliberately not sent so the
        decision is stateless. Raises LLMServiceError when the call itself fails;
        the pipeline degrades that to RELATED.
        """
        user_content = INTENT_CLASSIFICATION_PROMPT.format(user_query=user_query.strip())
        response_text = self._openai.complete(
            user_content,
            temperature=0.0,
            timeout=settings.classify_timeout_seconds,
            max_tokens=10,
        )
        return parse_intent_label(response_text)
