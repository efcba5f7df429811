import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.errors import LLMServiceError
from app.main import app, get_chat_service, get_guardrail_gate
from app.services.guardrails import ApiTokenAuthProvider, GuardrailGate, SlidingWindowRateLimiter

from conftest import FakeRepository, FakeSearchProvider, InMemoryStore, ScriptedLLM, build_service, make_document

AUTH = {"Authorization": "Bearer student-token"}


def _override(service, rate_limit=30):
    gate = GuardrailGate(
        ApiTokenAuthProvider(tokens={"student-token": "student-1", "other-token": "student-2"}, require_auth=True),
        SlidingWindowRateLimiter(limit=rate_limit, window_seconds=60),
    )
    app.dependency_overrides[get_chat_service] = lambda: service
    app.dependency_overrides[get_guardrail_gate] = lambda: gate


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def test_chat_returns_internal_answer():
    llm = ScriptedLLM(scores={"scores": [{"id": "1", "score": 9}]}, answer="Apply online before **2025-09-30**.")
    _override(build_service(llm=llm, repository=FakeRepository([make_document("1")])))
    client = TestClient(app)

    response = client.post("/api/chat", json={"message": "tuition waiver?", "sessionId": "abc"}, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["sessionId"] == "abc"
    assert body["sourceType"] == "internal"
    assert body["citations"] == ["1"]
    assert body["response"].endswith("[ANNOUNCEMENT_CARD:1]")


def test_chat_generates_session_id_and_accepts_model_role():
    _override(build_service(repository=FakeRepository([])))
    client = TestClient(app)

    response = client.post(
        "/api/chat",
        json={"message": "tuition waiver?", "history": [{"role": "model", "content": "Hello!"}]},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert len(response.json()["sessionId"]) == 36


def test_off_topic_question_gets_fixed_reply():
    _override(build_service(llm=ScriptedLLM(intent="UNRELATED")))
    client = TestClient(app)

    response = client.post("/api/chat", json={"message": "write me a poem"}, headers=AUTH)

    assert response.status_code == 200
    assert response.json()["response"] == settings.off_topic_message
    assert response.json()["sourceType"] == "none"


@pytest.mark.parametrize(
    "payload",
    [{"message": "   "}, {}, {"message": "x" * 1001}, {"message": "hi", "history": "not a list"}],
)
def test_invalid_body_is_validation_error(payload):
    _override(build_service())
    client = TestClient(app)

    response = client.post("/api/chat", json=payload, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation_error"


def test_missing_token_is_auth_error():
    llm = ScriptedLLM()
    _override(build_service(llm=llm))
    client = TestClient(app)

    response = client.post("/api/chat", json={"message": "tuition waiver?"})

    assert response.status_code == 401
    assert response.json()["error"]["kind"] == "auth_error"
    assert llm.calls == []


def test_rate_limit_is_per_caller():
    _override(build_service(repository=FakeRepository([])), rate_limit=1)
    client = TestClient(app)

    assert client.post("/api/chat", json={"message": "first"}, headers=AUTH).status_code == 200
    limited = client.post("/api/chat", json={"message": "second"}, headers=AUTH)
    other = client.post("/api/chat", json={"message": "first"}, headers={"Authorization": "Bearer other-token"})

    assert limited.status_code == 429
    assert limited.json()["error"]["kind"] == "rate_limit_error"
    assert other.status_code == 200


def test_generation_failure_is_upstream_error():
    llm = ScriptedLLM(answer=LLMServiceError("Error calling Azure OpenAI: 500"))
    _override(build_service(llm=llm, repository=FakeRepository([]), search=FakeSearchProvider(configured=False)))
    client = TestClient(app)

    response = client.post("/api/chat", json={"message": "tuition waiver?"}, headers=AUTH)

    assert response.status_code == 502
    assert response.json() == {
        "error": {"kind": "upstream_error", "message": settings.upstream_failure_message}
    }


def test_unexpected_error_is_internal_error():
    class BrokenService:
        async def process_message(self, request, caller_id):
            raise RuntimeError("boom")

    _override(BrokenService())
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/api/chat", json={"message": "tuition waiver?"}, headers=AUTH)

    assert response.status_code == 500
    assert response.json()["error"]["kind"] == "internal_error"


def _seeded_store():
    store = InMemoryStore()

    async def seed():
        await store.append("s1", "student-1", "user", "tuition waiver?", datetime(2025, 9, 1, 10, 0))
        await store.append("s1", "student-1", "assistant", "Apply online.", datetime(2025, 9, 1, 10, 1))
        await store.append("s2", "student-1", "user", "art awards?", datetime(2025, 9, 2, 9, 0))
        await store.append("s3", "student-2", "user", "someone else", datetime(2025, 9, 2, 9, 0))

    asyncio.run(seed())
    return store


def test_history_lists_only_the_callers_turns():
    _override(build_service(store=_seeded_store()))
    client = TestClient(app)

    all_turns = client.get("/api/chat/history", headers=AUTH)
    one_session = client.get("/api/chat/history", params={"sessionId": "s1"}, headers=AUTH)

    assert all_turns.status_code == 200
    assert [t["content"] for t in all_turns.json()["data"]] == ["tuition waiver?", "Apply online.", "art awards?"]
    assert [t["role"] for t in one_session.json()["data"]] == ["user", "assistant"]
    assert one_session.json()["data"][0]["sessionId"] == "s1"


def test_history_requires_auth():
    _override(build_service(store=_seeded_store()))
    client = TestClient(app)

    assert client.get("/api/chat/history").status_code == 401
    assert client.delete("/api/chat/history").status_code == 401


def test_clear_history_removes_only_the_callers_turns():
    store = _seeded_store()
    _override(build_service(store=store))
    client = TestClient(app)

    response = client.delete("/api/chat/history", params={"sessionId": "s1"}, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "removed": 2}
    assert [r["session_id"] for r in store.rows] == ["s2", "s3"]


def test_health_check():
    client = TestClient(app)

    assert client.get("/api/health").json()["status"] == "healthy"
