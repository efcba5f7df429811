"""
Generate the answer from the persona contract, conversation history, message and context.
This is the only load-bearing model call: any failure here is fatal to the request.
"""
from __future__ import annotations

import logging
from typing import Sequence

from app.config import settings
from app.errors import LLMServiceError, UpstreamFatal
from app.models import AssembledContext, ConversationTurn
from app.services.openai_service import AzureOpenAIService
from app.services.rag.rag_prompt_builder import build_answer_prompt

logger = logging.getLogger(__name__)


class AnswerGenerator:
    """Generate an answer grounded in the assembled context."""

    def __init__(self, openai_service: AzureOpenAIService | None = None):
        self._openai = openai_service or AzureOpenAIService()

    def generate(
        self,
        user_query: str,
        history: Sequence[ConversationTurn],
        context: AssembledContext,
    ) -> str:
        """
        One completion at the fixed generation temperature. With an empty context the
        prompt tells the model to give the no-information sentence; that is not enforced here.
        """
        system_prompt, user_message = build_answer_prompt(user_query, history, context)
        try:
            text = self._openai.complete(
                user_message,
                temperature=settings.generation_temperature,
                timeout=settings.generation_timeout_seconds,
                max_tokens=settings.generation_max_tokens,
                system_prompt=system_prompt,
            )
        except LLMServiceError as e:
            raise UpstreamFatal(f"Answer generation failed: {e.message}") from e
        if not text:
            logger.warning("Answer generation returned empty text; using fallback message")
            return settings.empty_answer_message
        return text
