"""
Render selected evidence into the context block for answer generation.
Pure and deterministic: no I/O, same inputs give the same block.
"""
from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from app.models import AssembledContext, CandidateDocument, ExternalResult, SourceType

NOT_SPECIFIED = "Not specified"
LIMITATION_LABELS = {
    "Y": "Cannot be combined with other scholarships",
    "N": "No restriction on applying for other scholarships",
}


def _field(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or NOT_SPECIFIED


def _date(value: Optional[date]) -> str:
    return value.isoformat() if value else NOT_SPECIFIED


def _limitations(value: Optional[str]) -> str:
    value = (value or "").strip()
    return LIMITATION_LABELS.get(value.upper(), value) or NOT_SPECIFIED


def render_document(doc: CandidateDocument) -> str:
    return (
        f"## Announcement: {doc.title}\n"
        f"**Summary:** {_field(doc.summary_text)}\n"
        f"**Target audience:** {_field(doc.target_audience)}\n"
        f"**Application deadline:** {_date(doc.application_deadline)}\n"
        f"**Announcement end date:** {_date(doc.announcement_end_date)}\n"
        f"**Submission method:** {_field(doc.submission_method)}\n"
        f"**Application limitations:** {_limitations(doc.application_limitations)}\n"
        "---"
    )


def render_result(result: ExternalResult) -> str:
    return (
        f"## Page title: {result.title}\n"
        f"## Page link: {result.link}\n"
        f"## Snippet: {result.snippet}\n"
        "---"
    )


def assemble_context(
    source_type: SourceType,
    documents: Sequence[CandidateDocument] = (),
    results: Sequence[ExternalResult] = (),
) -> AssembledContext:
    """Build the context for the declared source type; other inputs are ignored."""
    if source_type == SourceType.INTERNAL:
        return AssembledContext(
            source_type=source_type,
            body="\n\n".join(render_document(doc) for doc in documents),
            referenced_document_ids=tuple(doc.id for doc in documents),
        )
    if source_type == SourceType.EXTERNAL:
        return AssembledContext(
            source_type=source_type,
            body="\n\n".join(render_result(result) for result in results),
        )
    return AssembledContext(source_type=SourceType.NONE)
