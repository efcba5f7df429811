"""
Guardrail gate for the chat endpoint: authentication, per-caller rate limiting,
and structural validation of the request body. All checks run before any model call.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional

from app.config import settings
from app.errors import AuthError, RateLimitError, ValidationError
from app.models import ChatRequest, ChatRequestBody

logger = logging.getLogger(__name__)

ANONYMOUS_CALLER = "anonymous"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity the request runs as."""
    caller_id: str
    authenticated: bool = True


def parse_api_tokens(raw: str) -> Dict[str, str]:
    """Parse "token:caller,token2:caller2" into {token: caller}."""
    tokens: Dict[str, str] = {}
    for item in (raw or "").split(","):
        token, sep, caller_id = item.strip().partition(":")
        if sep and token.strip() and caller_id.strip():
            tokens[token.strip()] = caller_id.strip()
    return tokens


class ApiTokenAuthProvider:
    """Bearer-token authentication against a configured token table."""

    def __init__(self, tokens: Optional[Dict[str, str]] = None, require_auth: Optional[bool] = None):
        self._tokens = tokens if tokens is not None else parse_api_tokens(settings.api_tokens)
        self._require_auth = settings.require_auth if require_auth is None else require_auth

    def authenticate(self, authorization: Optional[str]) -> Caller:
        if not authorization or not authorization.startswith("Bearer "):
            if not self._require_auth:
                return Caller(caller_id=ANONYMOUS_CALLER, authenticated=False)
            raise AuthError("Unauthorized: please sign in")
        token = authorization[len("Bearer "):].strip()
        caller_id = self._tokens.get(token)
        if caller_id is None:
            logger.warning("Rejected invalid bearer token")
            raise AuthError("Unauthorized: invalid token")
        return Caller(caller_id=caller_id)


class SlidingWindowRateLimiter:
    """In-process sliding-window limiter keyed by caller identity."""

    def __init__(self, limit: Optional[int] = None, window_seconds: Optional[int] = None, clock=time.monotonic):
        self.limit = limit if limit is not None else settings.chat_rate_limit
        self.window_seconds = window_seconds if window_seconds is not None else settings.chat_rate_limit_window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> None:
        """Record one request for the identifier; raise RateLimitError if over the limit."""
        if self.limit <= 0 or self.window_seconds <= 0:
            return
        now = self._clock()
        window_start = now - self.window_seconds
        with self._lock:
            hits = self._hits.setdefault(identifier, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self.limit:
                logger.warning(
                    "Chat rate limit exceeded for %s (limit: %d/%ds)",
                    identifier,
                    self.limit,
                    self.window_seconds,
                    extra={"caller_id": identifier},
                )
                raise RateLimitError("Too many requests, please try again later")
            hits.append(now)


def normalize_request(
    body: ChatRequestBody,
    max_message_length: Optional[int] = None,
    max_history_turns: Optional[int] = None,
) -> ChatRequest:
    """Validate the raw body and fill defaults (empty history, generated session id)."""
    max_message_length = max_message_length or settings.max_message_length
    max_history_turns = max_history_turns or settings.max_history_turns

    message = (body.message or "").strip()
    if not message:
        raise ValidationError("Message cannot be empty")
    if len(message) > max_message_length:
        raise ValidationError(f"Message cannot exceed {max_message_length} characters")

    history = list(body.history or [])
    if len(history) > max_history_turns:
        raise ValidationError(f"Conversation history cannot exceed {max_history_turns} turns")

    session_id = (body.session_id or "").strip() or str(uuid.uuid4())
    return ChatRequest(message=message, history=history, session_id=session_id)


class GuardrailGate:
    """Auth → rate limit → validation, in that order."""

    def __init__(
        self,
        auth_provider: Optional[ApiTokenAuthProvider] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        self.auth_provider = auth_provider or ApiTokenAuthProvider()
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()

    def admit(self, authorization: Optional[str], body: ChatRequestBody) -> tuple[Caller, ChatRequest]:
        caller = self.auth_provider.authenticate(authorization)
        self.rate_limiter.check(caller.caller_id)
        return caller, normalize_request(body)
