"""
Main chat service: one user question in, one grounded answer out.

The pipeline is a small state machine:

    classify ──related──▶ retrieve_internal ──matched──▶ assemble ─▶ generate ─▶ postprocess ─▶ persist ─▶ done
       │                        │                          ▲
       │                     no_match                      │
       │                        ▼                          │
       │                  search_external ──found/empty────┘
       └──unrelated──────────────────────────────────────────────────────────────▶ persist

Every stage before generation degrades on failure to a declared outcome; generation
failures are fatal. Persistence is detached and never blocks the response.
Blocking collaborator calls (completions, web search) run in worker threads via
asyncio.to_thread so the event loop keeps serving other requests.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from app.config import settings
from app.errors import UpstreamFatal
from app.models import (
    AnswerEnvelope,
    AssembledContext,
    ChatRequest,
    ExternalResult,
    IntentLabel,
    ProcessedAnswer,
    SourceType,
)
from app.services.announcement_repository import AnnouncementRepository
from app.services.history_store import ConversationStore
from app.services.openai_service import AzureOpenAIService
from app.services.search_service import SerpApiSearchProvider
from app.services.rag.answer_generator import AnswerGenerator
from app.services.rag.context_assembler import assemble_context
from app.services.rag.history_recorder import HistoryRecorder
from app.services.rag.intent_classifier import IntentClassifier
from app.services.rag.post_processor import postprocess, render_answer
from app.services.rag.relevance_scorer import RelevanceScorer
from app.services.rag.retriever import InternalRetriever, RetrievalResult
from app.services.rag.web_fallback import WebFallbackSearcher

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    CLASSIFY = "classify"
    RETRIEVE_INTERNAL = "retrieve_internal"
    SEARCH_EXTERNAL = "search_external"
    ASSEMBLE = "assemble"
    GENERATE = "generate"
    POSTPROCESS = "postprocess"
    PERSIST = "persist"
    DONE = "done"


class FailurePolicy(str, Enum):
    DEGRADE = "degrade"
    FAIL = "fail"


@dataclass(frozen=True)
class StagePolicy:
    policy: FailurePolicy
    degraded_outcome: Optional[str] = None


STAGE_POLICIES: Dict[Stage, StagePolicy] = {
    Stage.CLASSIFY: StagePolicy(FailurePolicy.DEGRADE, "related"),  # fail-open
    Stage.RETRIEVE_INTERNAL: StagePolicy(FailurePolicy.DEGRADE, "no_match"),
    Stage.SEARCH_EXTERNAL: StagePolicy(FailurePolicy.DEGRADE, "empty"),
    Stage.ASSEMBLE: StagePolicy(FailurePolicy.FAIL),
    Stage.GENERATE: StagePolicy(FailurePolicy.FAIL),
    Stage.POSTPROCESS: StagePolicy(FailurePolicy.FAIL),
    Stage.PERSIST: StagePolicy(FailurePolicy.DEGRADE, "scheduled"),
}

TRANSITIONS: Dict[Tuple[Stage, str], Stage] = {
    (Stage.CLASSIFY, "related"): Stage.RETRIEVE_INTERNAL,
    (Stage.CLASSIFY, "unrelated"): Stage.PERSIST,
    (Stage.RETRIEVE_INTERNAL, "matched"): Stage.ASSEMBLE,
    (Stage.RETRIEVE_INTERNAL, "no_match"): Stage.SEARCH_EXTERNAL,
    (Stage.SEARCH_EXTERNAL, "found"): Stage.ASSEMBLE,
    (Stage.SEARCH_EXTERNAL, "empty"): Stage.ASSEMBLE,
    (Stage.ASSEMBLE, "assembled"): Stage.GENERATE,
    (Stage.GENERATE, "generated"): Stage.POSTPROCESS,
    (Stage.POSTPROCESS, "processed"): Stage.PERSIST,
    (Stage.PERSIST, "scheduled"): Stage.DONE,
}


@dataclass
class PipelineRun:
    """Request-scoped state; built fresh for every request and never shared."""
    request: ChatRequest
    caller_id: str
    received_at: datetime = field(default_factory=datetime.utcnow)
    intent: IntentLabel = "RELATED"
    retrieval: RetrievalResult = field(default_factory=RetrievalResult)
    search_query: str = ""
    external_results: List[ExternalResult] = field(default_factory=list)
    source_type: SourceType = SourceType.NONE
    context: Optional[AssembledContext] = None
    raw_answer: str = ""
    answer: Optional[ProcessedAnswer] = None
    response_text: str = ""
    trace: List[Tuple[str, str]] = field(default_factory=list)


class MainChatService:
    """
    Scholarship assistant: classify → internal retrieval → web fallback → generate → post-process.
    Collaborators are injected so each can be replaced independently.
    """

    def __init__(
        self,
        openai_service: Optional[AzureOpenAIService] = None,
        repository: Optional[AnnouncementRepository] = None,
        search_provider: Optional[SerpApiSearchProvider] = None,
        store: Optional[ConversationStore] = None,
        recorder: Optional[HistoryRecorder] = None,
    ):
        self._openai = openai_service or AzureOpenAIService()
        self._intent = IntentClassifier(self._openai)
        self._retriever = InternalRetriever(
            repository or AnnouncementRepository(),
            RelevanceScorer(self._openai),
        )
        self._fallback = WebFallbackSearcher(self._openai, search_provider or SerpApiSearchProvider())
        self._answer_gen = AnswerGenerator(self._openai)
        self.store = store or ConversationStore()
        self.recorder = recorder or HistoryRecorder(self.store)
        self._handlers: Dict[Stage, Callable[[PipelineRun], Awaitable[str]]] = {
            Stage.CLASSIFY: self._classify,
            Stage.RETRIEVE_INTERNAL: self._retrieve_internal,
            Stage.SEARCH_EXTERNAL: self._search_external,
            Stage.ASSEMBLE: self._assemble,
            Stage.GENERATE: self._generate,
            Stage.POSTPROCESS: self._postprocess,
            Stage.PERSIST: self._persist,
        }

    async def process_message(self, request: ChatRequest, caller_id: str) -> AnswerEnvelope:
        """
        Run the pipeline for one normalized request.
        Raises UpstreamFatal when the answer cannot be generated; nothing else escapes.
        """
        run = PipelineRun(request=request, caller_id=caller_id)
        stage = Stage.CLASSIFY
        while stage is not Stage.DONE:
            outcome = await self._run_stage(stage, run)
            run.trace.append((stage.value, outcome))
            stage = TRANSITIONS[(stage, outcome)]

        citations = run.answer.citations if run.answer else []
        logger.info(
            f"Chat completed | intent={run.intent} source={run.source_type.value} "
            f"docs={len(run.retrieval.selected)} web_results={len(run.external_results)}",
            extra={
                "caller_id": caller_id,
                "session_id": request.session_id,
                "user_query": request.message[:200],
                "intent": run.intent,
                "source_type": run.source_type.value,
                "document_ids": citations[:20],
                "num_results": len(run.external_results),
                "response_length": len(run.response_text),
            },
        )
        return AnswerEnvelope(
            text=run.response_text,
            session_id=request.session_id,
            source_type=run.source_type,
            citations=citations,
        )

    async def _run_stage(self, stage: Stage, run: PipelineRun) -> str:
        policy = STAGE_POLICIES[stage]
        started = time.perf_counter()
        try:
            outcome = await self._handlers[stage](run)
        except Exception as e:
            if policy.policy is FailurePolicy.FAIL:
                logger.error(
                    "Stage %s failed: %s",
                    stage.value,
                    e,
                    extra={"stage": stage.value, "session_id": run.request.session_id, "error": str(e)},
                )
                if isinstance(e, UpstreamFatal):
                    raise
                raise UpstreamFatal(f"Stage {stage.value} failed: {e}") from e
            outcome = policy.degraded_outcome
            logger.warning(
                "Stage %s degraded to %s: %s",
                stage.value,
                outcome,
                e,
                extra={"stage": stage.value, "outcome": outcome, "session_id": run.request.session_id, "error": str(e)},
            )
        logger.debug(
            "Stage %s -> %s",
            stage.value,
            outcome,
            extra={
                "stage": stage.value,
                "outcome": outcome,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return outcome

    async def _classify(self, run: PipelineRun) -> str:
        run.intent = await asyncio.to_thread(self._intent.classify, run.request.message)
        if run.intent == "UNRELATED":
            run.response_text = settings.off_topic_message
            logger.info(
                "Intent UNRELATED: declining non-scholarship question",
                extra={"caller_id": run.caller_id, "user_query": run.request.message[:200], "intent": run.intent},
            )
            return "unrelated"
        return "related"

    async def _retrieve_internal(self, run: PipelineRun) -> str:
        run.retrieval = await self._retriever.retrieve(run.request.message, run.request.history)
        if run.retrieval.selected:
            run.source_type = SourceType.INTERNAL
            return "matched"
        return "no_match"

    async def _search_external(self, run: PipelineRun) -> str:
        run.search_query, run.external_results = await asyncio.to_thread(
            self._fallback.search, run.request.message, run.request.history
        )
        if run.external_results:
            run.source_type = SourceType.EXTERNAL
            return "found"
        return "empty"

    async def _assemble(self, run: PipelineRun) -> str:
        run.context = assemble_context(run.source_type, run.retrieval.selected, run.external_results)
        return "assembled"

    async def _generate(self, run: PipelineRun) -> str:
        run.raw_answer = await asyncio.to_thread(
            self._answer_gen.generate, run.request.message, run.request.history, run.context
        )
        return "generated"

    async def _postprocess(self, run: PipelineRun) -> str:
        run.answer = postprocess(run.raw_answer, run.context)
        run.response_text = render_answer(run.answer)
        return "processed"

    async def _persist(self, run: PipelineRun) -> str:
        self.recorder.record_exchange(
            run.request.session_id,
            run.caller_id,
            run.request.message,
            run.response_text,
            user_timestamp=run.received_at,
        )
        return "scheduled"
