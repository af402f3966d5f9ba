"""Heuristic parsing of free-text research responses."""

import re

from ..llm import strip_markdown
from ..models import ResearchResult


NUMBERED_LINE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+(.*)$")
KEY_VALUE_LINE = re.compile(r"^([A-Za-z][^:]{1,60}):\s+(.+)$")

SECTION_CUES = [
    ("sources", re.compile(r"\b(sources?|references?|bibliography)\b", re.IGNORECASE)),
    ("contradictions", re.compile(r"\bcontradict", re.IGNORECASE)),
    ("uncertainties", re.compile(r"\b(uncertain|uncertainties|unknown)\b", re.IGNORECASE)),
]


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    unique = []
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            unique.append(item)
    return unique


def _section_header(line: str) -> str | None:
    """Return the section a short header line switches to, if any."""
    # A header is short and mostly the cue itself, e.g. "Sources:" or "Uncertainties"
    if len(line) > 40:
        return None
    for name, pattern in SECTION_CUES:
        if pattern.search(line):
            return name
    return None


def parse_research_response(text: str, topic: str) -> ResearchResult:
    """Split a research response into facts, sources, details, contradictions and uncertainties.

    Header lines mentioning sources, contradictions or uncertainties switch the
    current section. Numbered or bulleted lines are items of the current section
    (facts when no section is active). "Term: explanation" lines become key
    details, and any other substantial line becomes a fact.
    """
    sections: dict[str, list[str]] = {
        "facts": [],
        "sources": [],
        "contradictions": [],
        "uncertainties": [],
    }
    key_details: dict[str, str] = {}
    current = "facts"

    for raw_line in strip_markdown(text).splitlines():
        line = raw_line.strip()
        if not line:
            continue

        numbered = NUMBERED_LINE.match(line)
        if numbered:
            item = numbered.group(1).strip()
            if item:
                sections[current].append(item)
            continue

        header = _section_header(line)
        if header:
            current = header
            # "Sources: Smith 2001" carries its first item inline
            _, _, rest = line.partition(":")
            if rest.strip():
                sections[current].append(rest.strip())
            continue

        key_value = KEY_VALUE_LINE.match(line)
        if key_value and "http" not in line.lower():
            key_details[key_value.group(1).strip()] = key_value.group(2).strip()
            continue

        if len(line) > 10:
            sections[current].append(line)

    return ResearchResult(
        topic=topic,
        facts=_dedupe(sections["facts"]),
        sources=_dedupe(sections["sources"]),
        key_details=key_details,
        contradictions=_dedupe(sections["contradictions"]),
        uncertainties=_dedupe(sections["uncertainties"]),
    )


def placeholder_result(topic: str, error: str = "") -> ResearchResult:
    """Result used when research for a topic failed."""
    return ResearchResult(
        topic=topic,
        facts=[f"Research failed for {topic}"],
        uncertainties=[error] if error else [],
        failed=True,
    )
