"""
Plain-text helpers for announcement content.
Announcement summaries are stored as rich-text HTML from the admin editor; the
scoring and answer prompts only ever see the text.
"""
from __future__ import annotations

import re

from bs4 import BeautifulSoup

# Elements whose text is never part of the announcement body
SKIP_TAGS = ("script", "style", "nav", "header", "footer", "noscript", "iframe")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace and trim."""
    return re.sub(r"\s+", " ", text).strip()


def html_to_plain_text(html: str | None) -> str:
    """Convert an HTML fragment to a single clean plain-text string."""
    if not html:
        return ""
    if "<" not in html:
        return normalize_whitespace(html)
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(SKIP_TAGS):
        tag.decompose()
    return normalize_whitespace(soup.get_text(separator=" ", strip=True))
