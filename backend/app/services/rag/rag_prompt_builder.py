"""
Build the answer-generation prompt: persona/formatting contract, history, message, context.
"""
from __future__ import annotations

import logging
from typing import Sequence

from app.models import AssembledContext, ConversationTurn
from app.services.rag.prompts import ANSWER_SYSTEM_PROMPT, ANSWER_USER_TEMPLATE, SOURCE_LABELS

logger = logging.getLogger(__name__)

# Max context length (chars) to avoid token overflow; tune per model
MAX_CONTEXT_CHARS = 12000


def format_history(history: Sequence[ConversationTurn]) -> str:
    """Render prior turns as `role: content` lines, in the order given."""
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history)


def build_answer_prompt(
    user_query: str,
    history: Sequence[ConversationTurn],
    context: AssembledContext,
) -> tuple[str, str]:
    """
    Build system and user messages for answer generation.
    Returns (system_prompt, user_message). Context is truncated if too long.
    """
    body = context.body
    if len(body) > MAX_CONTEXT_CHARS:
        body = body[:MAX_CONTEXT_CHARS] + "\n\n[Context truncated.]"
        logger.debug("Answer context truncated to %d chars", MAX_CONTEXT_CHARS)
    user_message = ANSWER_USER_TEMPLATE.format(
        history=format_history(history),
        user_query=user_query.strip(),
        source_label=SOURCE_LABELS[context.source_type.value],
        context=body,
    )
    return ANSWER_SYSTEM_PROMPT, user_message
