"""Error taxonomy for the chat pipeline.

Guardrail errors (validation, auth, rate limit) are rejected before any model
call. Upstream errors are split into those the pipeline degrades around and
the single fatal one raised when the answer itself cannot be generated.
"""
from __future__ import annotations


class ChatServiceError(Exception):
    """Base class for errors surfaced with a machine-readable kind."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"kind": self.kind, "message": self.message}}


class ValidationError(ChatServiceError):
    kind = "validation_error"
    status_code = 400


class AuthError(ChatServiceError):
    kind = "auth_error"
    status_code = 401


class RateLimitError(ChatServiceError):
    kind = "rate_limit_error"
    status_code = 429


class UpstreamDegradable(ChatServiceError):
    """A collaborator failed in a stage that has a fallback; never reaches the caller."""

    kind = "upstream_degradable"
    status_code = 502


class LLMServiceError(UpstreamDegradable):
    """Completion request failed (transport, timeout, or API error)."""


class UpstreamFatal(ChatServiceError):
    """Answer generation failed; there is nothing to post-process."""

    kind = "upstream_error"
    status_code = 502


class PersistenceWarning(ChatServiceError):
    """History write failed. Logged by the recorder, never surfaced."""

    kind = "persistence_warning"
