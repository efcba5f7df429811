"""Data models for API requests/responses and pipeline values."""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal, Tuple
from datetime import date, datetime


# Relevance scores at or above this value select a document for grounding.
RELEVANCE_THRESHOLD = 7
# At most this many usable web results are kept, in provider order.
MAX_EXTERNAL_RESULTS = 3


class SourceType(str, Enum):
    """Where the evidence for an answer came from."""
    INTERNAL = "internal"
    EXTERNAL = "external"
    NONE = "none"


IntentLabel = Literal["RELATED", "UNRELATED"]


class ConversationTurn(BaseModel):
    """Single chat turn supplied by the client as prior context."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value):
        # Older clients label assistant turns "model"
        if isinstance(value, str) and value.strip().lower() == "model":
            return "assistant"
        return value


class ChatRequestBody(BaseModel):
    """Raw inbound body for the chat endpoint; validated by the guardrail gate."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    history: Optional[List[ConversationTurn]] = None
    session_id: Optional[str] = Field(None, alias="sessionId")


class ChatRequest(BaseModel):
    """Normalized request handed to the pipeline."""
    message: str
    history: List[ConversationTurn] = Field(default_factory=list)
    session_id: str


class CandidateDocument(BaseModel):
    """Read-only projection of an active announcement."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    summary_text: str = ""
    target_audience: Optional[str] = None
    application_deadline: Optional[date] = None
    announcement_end_date: Optional[date] = None
    submission_method: Optional[str] = None
    application_limitations: Optional[str] = None


class RelevanceScore(BaseModel):
    document_id: str
    score: int = Field(..., ge=0, le=10)


class ExternalResult(BaseModel):
    """One usable web search hit."""
    model_config = ConfigDict(frozen=True)

    title: str
    link: str
    snippet: str


class AssembledContext(BaseModel):
    """Evidence block rendered for the generator, with its declared source."""
    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    body: str = ""
    referenced_document_ids: Tuple[str, ...] = ()


class ProcessedAnswer(BaseModel):
    """Post-processed answer; citations stay structured until rendering."""
    text: str
    source_type: SourceType
    citations: List[str] = Field(default_factory=list)


class AnswerEnvelope(BaseModel):
    """Final pipeline output."""
    text: str
    session_id: str
    source_type: SourceType = SourceType.NONE
    citations: List[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Response model for chat endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    response: str
    session_id: str = Field(..., serialization_alias="sessionId")
    source_type: SourceType = Field(SourceType.NONE, serialization_alias="sourceType")
    citations: List[str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    """Stored chat turn as returned by the history endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., serialization_alias="sessionId")
    role: str
    content: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    success: bool = True
    data: List[HistoryEntry]


class ErrorDetail(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
