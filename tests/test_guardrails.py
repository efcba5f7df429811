import pytest

from app.errors import AuthError, RateLimitError, ValidationError
from app.models import ChatRequestBody
from app.services.guardrails import (
    ANONYMOUS_CALLER,
    ApiTokenAuthProvider,
    GuardrailGate,
    SlidingWindowRateLimiter,
    normalize_request,
    parse_api_tokens,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_parse_api_tokens():
    assert parse_api_tokens("abc:student-1, def:student-2,broken,:x,y:") == {
        "abc": "student-1",
        "def": "student-2",
    }


def test_bearer_token_resolves_caller():
    auth = ApiTokenAuthProvider(tokens={"abc": "student-1"}, require_auth=True)

    caller = auth.authenticate("Bearer abc")

    assert caller.caller_id == "student-1"
    assert caller.authenticated is True


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer wrong"])
def test_missing_or_invalid_credentials_are_rejected(header):
    auth = ApiTokenAuthProvider(tokens={"abc": "student-1"}, require_auth=True)

    with pytest.raises(AuthError):
        auth.authenticate(header)


def test_anonymous_allowed_when_auth_not_required():
    auth = ApiTokenAuthProvider(tokens={}, require_auth=False)

    caller = auth.authenticate(None)

    assert caller.caller_id == ANONYMOUS_CALLER
    assert caller.authenticated is False


def test_rate_limiter_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    limiter.check("student-1")
    limiter.check("student-1")
    with pytest.raises(RateLimitError):
        limiter.check("student-1")
    limiter.check("student-2")

    clock.now += 61
    limiter.check("student-1")


def test_normalize_request_fills_defaults():
    request = normalize_request(ChatRequestBody(message="  tuition waiver?  "))

    assert request.message == "tuition waiver?"
    assert request.history == []
    assert len(request.session_id) == 36


def test_normalize_request_keeps_session_and_history():
    body = ChatRequestBody.model_validate(
        {
            "message": "and for graduates?",
            "sessionId": "session-9",
            "history": [{"role": "user", "content": "hi"}, {"role": "model", "content": "hello"}],
        }
    )

    request = normalize_request(body)

    assert request.session_id == "session-9"
    assert [t.role for t in request.history] == ["user", "assistant"]


@pytest.mark.parametrize("message", [None, "", "   \n"])
def test_blank_message_is_rejected(message):
    with pytest.raises(ValidationError):
        normalize_request(ChatRequestBody(message=message))


def test_message_and_history_limits():
    with pytest.raises(ValidationError):
        normalize_request(ChatRequestBody(message="x" * 11), max_message_length=10)

    history = [{"role": "user", "content": "hi"}] * 3
    with pytest.raises(ValidationError):
        normalize_request(ChatRequestBody(message="ok", history=history), max_history_turns=2)


def test_gate_authenticates_before_rate_limiting_and_validation():
    limiter = SlidingWindowRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    gate = GuardrailGate(ApiTokenAuthProvider(tokens={"abc": "student-1"}, require_auth=True), limiter)

    with pytest.raises(AuthError):
        gate.admit("Bearer wrong", ChatRequestBody(message=""))

    caller, request = gate.admit("Bearer abc", ChatRequestBody(message="tuition waiver?"))
    assert caller.caller_id == "student-1"
    assert request.message == "tuition waiver?"

    with pytest.raises(RateLimitError):
        gate.admit("Bearer abc", ChatRequestBody(message=""))
