"""RAG pipeline: intent classification, internal retrieval, web fallback, answer generation, post-processing."""
from app.services.rag.main_chat_service import MainChatService
from app.services.rag.intent_classifier import IntentClassifier
from app.services.rag.retriever import InternalRetriever
from app.services.rag.web_fallback import WebFallbackSearcher
from app.services.rag.answer_generator import AnswerGenerator
from app.services.rag.context_assembler import assemble_context
from app.services.rag.post_processor import finalize_answer

__all__ = [
    "MainChatService",
    "IntentClassifier",
    "InternalRetriever",
    "WebFallbackSearcher",
    "AnswerGenerator",
    "assemble_context",
    "finalize_answer",
]
