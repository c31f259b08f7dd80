"""Input sanitization and prompt-injection heuristics."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, CData, Comment, Declaration, Doctype, ProcessingInstruction

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

# Evaluated in order; the filter is advisory and never blocks on its own.
INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"ignore\s+(previous|above|all)(\s+previous)?\s+instructions?",
        r"forget\s+(everything|all|previous)",
        r"you\s+are\s+now",
        r"new\s+instructions?:",
        r"system\s*:",
        r"\[SYSTEM\]",
        r"<\|.*?\|>",
        r"\bprompt\s+injection\b",
        r"role-?\s?play\s+as",
    )
)

ALLOWED_TAGS = frozenset({"p", "br", "strong", "em", "code", "pre", "ul", "ol", "li"})
_DROPPED_WITH_CONTENT = frozenset({"script", "style", "iframe", "object", "embed", "template"})
_MARKUP_ONLY_NODES = (Comment, Declaration, Doctype, ProcessingInstruction, CData)


@dataclass(frozen=True, slots=True)
class InjectionReport:
    safe: bool
    detected: bool
    match_count: int


def sanitize_text(raw: Any) -> str:
    """Strip NUL and control characters (newline, tab, CR kept) and trim."""
    if not isinstance(raw, str) or not raw:
        return ""
    return _CONTROL_CHARS.sub("", raw.replace("\0", "")).strip()


def detect_injection(text: Any) -> InjectionReport:
    if not isinstance(text, str) or not text:
        return InjectionReport(safe=True, detected=False, match_count=0)
    matches = sum(1 for pattern in INJECTION_PATTERNS if pattern.search(text))
    return InjectionReport(safe=matches == 0, detected=matches > 0, match_count=matches)


def sanitize_html(html: Any) -> str:
    """Keep only text-formatting tags, without attributes.

    Comments, doctypes, processing instructions and CDATA sections are
    dropped. Scripting containers are removed along with their contents;
    every other disallowed tag is unwrapped so its text survives.
    """
    if not isinstance(html, str) or not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for node in list(soup.descendants):
        if isinstance(node, _MARKUP_ONLY_NODES):
            node.extract()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in _DROPPED_WITH_CONTENT:
            tag.decompose()
        elif tag.name in ALLOWED_TAGS:
            tag.attrs = {}
        else:
            tag.unwrap()

    return str(soup)
