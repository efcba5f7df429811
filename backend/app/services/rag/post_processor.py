"""
Deterministic post-processing of generated answers.

- Exactly one provenance disclaimer, worded by source type (none for ungrounded answers).
- Internal answers never carry hyperlinks.
- Citations travel as data on ProcessedAnswer; the bracketed reference tag is only
  serialized by render_answer, at the very end.

finalize_answer(finalize_answer(x)) == finalize_answer(x).
"""
from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup

from app.config import settings
from app.models import AssembledContext, ProcessedAnswer, SourceType

DISCLAIMER_MARKER = 'class="ai-disclaimer"'
REFERENCE_TAG_PREFIX = "ANNOUNCEMENT_CARD"

# Extraction matches well-formed tags only; stripping removes anything tag-shaped.
REFERENCE_TAG_RE = re.compile(r"\[ANNOUNCEMENT_CARD:([\w,-]+)\]")
_ANY_REFERENCE_TAG_RE = re.compile(r"[ \t]*\n?[ \t]*\[ANNOUNCEMENT_CARD:[^\]]*\]")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_ANCHOR_RE = re.compile(r"<a\b", re.IGNORECASE)
_BARE_URL_RE = re.compile(r"<?\b(?:https?://|www\.|mailto:)[^\s<>)\]]+>?")


def disclaimer_for(source_type: SourceType) -> str | None:
    """Disclaimer block for a source type; None when no disclaimer applies."""
    if source_type == SourceType.INTERNAL:
        wording = settings.internal_disclaimer
    elif source_type == SourceType.EXTERNAL:
        wording = settings.external_disclaimer
    else:
        return None
    return f'<div {DISCLAIMER_MARKER}>{wording}</div>'


def format_reference_tag(document_ids: List[str]) -> str:
    return f"[{REFERENCE_TAG_PREFIX}:{','.join(document_ids)}]"


def extract_citations(text: str) -> List[str]:
    """All document ids named by reference tags in the text, in order, without duplicates."""
    ids: List[str] = []
    for match in REFERENCE_TAG_RE.finditer(text or ""):
        for doc_id in match.group(1).split(","):
            if doc_id and doc_id not in ids:
                ids.append(doc_id)
    return ids


def strip_reference_tags(text: str) -> str:
    """Remove reference tags, e.g. for plain-text or email rendering."""
    return _ANY_REFERENCE_TAG_RE.sub("", text or "").rstrip()


def _unwrap_anchors(text: str) -> str:
    if not _ANCHOR_RE.search(text):
        return text
    soup = BeautifulSoup(text, "html.parser")
    for anchor in soup.find_all("a"):
        anchor.unwrap()
    return soup.decode(formatter=None)


def remove_links(text: str) -> str:
    """Unwrap HTML anchors and markdown links/images to their label, whatever the target, and drop bare URLs."""
    text = _unwrap_anchors(text)
    text = _MARKDOWN_IMAGE_RE.sub(r"\1", text)
    text = _MARKDOWN_LINK_RE.sub(r"\1", text)
    return _BARE_URL_RE.sub("", text)


def postprocess(text: str, context: AssembledContext) -> ProcessedAnswer:
    """Normalize generated text for the context it was grounded on."""
    body = strip_reference_tags(text)
    if context.source_type == SourceType.INTERNAL:
        body = remove_links(body)

    disclaimer = disclaimer_for(context.source_type)
    if disclaimer and DISCLAIMER_MARKER not in body:
        body = f"{body}\n\n{disclaimer}"

    citations: List[str] = []
    if context.source_type == SourceType.INTERNAL:
        citations = list(context.referenced_document_ids)
    return ProcessedAnswer(text=body, source_type=context.source_type, citations=citations)


def render_answer(answer: ProcessedAnswer) -> str:
    """Serialize the answer for the client, appending the reference tag when citations exist."""
    text = answer.text
    if (
        answer.source_type == SourceType.INTERNAL
        and answer.citations
        and not REFERENCE_TAG_RE.search(text)
    ):
        text = f"{text}\n{format_reference_tag(answer.citations)}"
    return text


def finalize_answer(text: str, context: AssembledContext) -> str:
    return render_answer(postprocess(text, context))
