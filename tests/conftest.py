import asyncio
import json
import os
from datetime import date
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SERP_API_KEY", "")
os.environ.setdefault("REQUIRE_AUTH", "true")

from app.errors import PersistenceWarning  # noqa: E402
from app.models import CandidateDocument, ChatRequest, HistoryEntry  # noqa: E402
from app.services.rag.history_recorder import HistoryRecorder  # noqa: E402
from app.services.rag.main_chat_service import MainChatService  # noqa: E402


class ScriptedLLM:
    """Stands in for AzureOpenAIService; replies are routed by which prompt is being sent.

    A reply may be a string, an exception instance (raised), or a callable taking the prompt.
    """

    def __init__(
        self,
        intent: Any = "RELATED",
        scores: Any = None,
        query: Any = "scholarship application deadline",
        answer: Any = "Here is what I found.",
    ) -> None:
        self.replies = {"intent": intent, "score": scores, "reformulate": query, "answer": answer}
        self.calls: List[Dict[str, Any]] = []

    def kind_of(self, prompt: str, system_prompt: Optional[str]) -> str:
        if system_prompt:
            return "answer"
        if "intent classifier" in prompt:
            return "intent"
        if "relevance score" in prompt:
            return "score"
        if "search query optimizer" in prompt:
            return "reformulate"
        raise AssertionError(f"unexpected prompt: {prompt[:80]}")

    def complete(self, prompt, temperature=0.4, structured_output=False, timeout=None, max_tokens=1024, system_prompt=None):
        kind = self.kind_of(prompt, system_prompt)
        self.calls.append(
            {
                "kind": kind,
                "prompt": prompt,
                "temperature": temperature,
                "structured_output": structured_output,
                "timeout": timeout,
                "system_prompt": system_prompt,
            }
        )
        reply = self.replies[kind]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        if reply is None:
            return ""
        if not isinstance(reply, str):
            return json.dumps(reply)
        return reply

    def calls_of(self, kind: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["kind"] == kind]


class FakeRepository:
    def __init__(self, documents=None, error: Optional[Exception] = None) -> None:
        self.documents = list(documents or [])
        self.error = error
        self.calls = 0

    async def list_active(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.documents)


class FakeSearchProvider:
    def __init__(self, results=None, error: Optional[Exception] = None, configured: bool = True) -> None:
        self.results = list(results or [])
        self.error = error
        self.configured = configured
        self.queries: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def search(self, query: str):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.results)


class InMemoryStore:
    def __init__(self, fail: bool = False) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.fail = fail

    async def append(self, session_id, caller_id, role, content, timestamp=None):
        if self.fail:
            raise PersistenceWarning("database is locked")
        self.rows.append(
            {"session_id": session_id, "caller_id": caller_id, "role": role, "content": content, "timestamp": timestamp}
        )
        return len(self.rows)

    async def list_turns(self, caller_id, session_id=None):
        return [
            HistoryEntry(session_id=r["session_id"], role=r["role"], content=r["content"], timestamp=r["timestamp"])
            for r in self.rows
            if r["caller_id"] == caller_id and (session_id is None or r["session_id"] == session_id)
        ]

    async def clear(self, caller_id, session_id=None):
        before = len(self.rows)
        self.rows = [
            r for r in self.rows
            if not (r["caller_id"] == caller_id and (session_id is None or r["session_id"] == session_id))
        ]
        return before - len(self.rows)


def make_document(doc_id: str = "1", title: str = "Low-income tuition waiver", **overrides) -> CandidateDocument:
    fields = dict(
        id=doc_id,
        title=title,
        summary_text="Students holding a low-income certificate may apply for a full tuition waiver.",
        target_audience="Undergraduate students",
        application_deadline=date(2025, 9, 30),
        announcement_end_date=date(2025, 10, 15),
        submission_method="Online system",
        application_limitations="N",
    )
    fields.update(overrides)
    return CandidateDocument(**fields)


def build_service(llm=None, repository=None, search=None, store=None) -> MainChatService:
    store = store if store is not None else InMemoryStore()
    return MainChatService(
        openai_service=llm or ScriptedLLM(),
        repository=repository or FakeRepository(),
        search_provider=search or FakeSearchProvider(),
        store=store,
        recorder=HistoryRecorder(store),
    )


def run_pipeline(service: MainChatService, message: str, history=None, session_id: str = "session-1", caller_id: str = "student-1"):
    async def _run():
        request = ChatRequest(message=message, history=history or [], session_id=session_id)
        envelope = await service.process_message(request, caller_id)
        await service.recorder.wait_pending()
        return envelope

    return asyncio.run(_run())


@pytest.fixture()
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()
