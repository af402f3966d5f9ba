"""Research module.

Gathers categorized background research for a premise before planning.
"""

from .collector import ResearchCollector, fallback_topics, find_relevant_research, topics_from_payload
from .parser import parse_research_response, placeholder_result

__all__ = [
    "ResearchCollector",
    "fallback_topics",
    "find_relevant_research",
    "topics_from_payload",
    "parse_research_response",
    "placeholder_result",
]
