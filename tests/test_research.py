"""Tests for research collection and parsing."""

import asyncio
import json

import pytest

from book_forge.errors import GenerationError
from book_forge.models import ComprehensiveResearch, GenerationSettings, ResearchCategory, ResearchResult
from book_forge.research import ResearchCollector, parse_research_response, placeholder_result
from book_forge.research.collector import fallback_topics, find_relevant_research, topics_from_payload
from book_forge.retry import RetryPolicy

from conftest import ScriptedGateway, no_sleep

RESPONSE = """**Key facts**

1. Pilots guided ships through the shoals for a fee.
2. Licences were issued by the harbour board.
- Most pilots kept their own tide tables.

Pilot cutter: a small fast boat that carried pilots out to ships

Sources:
- Port records, 1890-1910
Uncertainties
- Exact fees varied by season
"""


class TestParseResearchResponse:
    """Test heuristic parsing of free-text research."""

    def test_sections(self):
        result = parse_research_response(RESPONSE, "Harbour pilots")
        assert result.facts[:2] == [
            "Pilots guided ships through the shoals for a fee.",
            "Licences were issued by the harbour board.",
        ]
        assert "Most pilots kept their own tide tables." in result.facts
        assert result.key_details["Pilot cutter"].startswith("a small fast boat")
        assert result.sources == ["Port records, 1890-1910"]
        assert result.uncertainties == ["Exact fees varied by season"]
        assert not result.failed

    def test_inline_sources(self):
        result = parse_research_response("Sources: Harbour board minutes", "Pilots")
        assert result.sources == ["Harbour board minutes"]

    def test_duplicates_removed(self):
        result = parse_research_response("1. Tides turn twice a day.\n2. tides turn twice a day.", "Tides")
        assert result.facts == ["Tides turn twice a day."]

    def test_placeholder(self):
        result = placeholder_result("Tides", "timeout")
        assert result.failed
        assert result.facts == ["Research failed for Tides"]
        assert result.uncertainties == ["timeout"]


class TestTopics:
    def test_from_payload(self):
        topics = topics_from_payload({
            "DOMAIN KNOWLEDGE": [{"topic": "Maritime law", "priority": "HIGH"}],
            "settings": ["Harbour towns"],
            "unrelated": ["ignored"],
        })
        assert topics[ResearchCategory.DOMAIN][0].topic == "Maritime law"
        assert topics[ResearchCategory.DOMAIN][0].priority.value == "high"
        assert topics[ResearchCategory.SETTING][0].topic == "Harbour towns"
        assert topics[ResearchCategory.CULTURAL] == []

    def test_fallback_topics(self):
        topics = fallback_topics(GenerationSettings(genre="mystery"))
        assert topics[ResearchCategory.DOMAIN][0].topic == "mystery"
        assert topics[ResearchCategory.TECHNICAL][0].topic == "Technical details of mystery stories"

    def test_fallback_covers_every_category(self):
        topics = fallback_topics(GenerationSettings())
        for category in ResearchCategory:
            assert len(topics[category]) == 1, category
            assert topics[category][0].category == category

    def test_find_relevant(self):
        research = ComprehensiveResearch(setting=[
            ResearchResult(topic="Harbour pilots", facts=["x"]),
            ResearchResult(topic="Lighthouse optics", facts=["y"]),
        ])
        found = find_relevant_research("harbour pilot", research)
        assert [r.topic for r in found] == ["Harbour pilots"]


class TestResearchCollector:
    """Test concurrent collection."""

    @pytest.fixture
    def policy(self):
        return RetryPolicy(attempts=1, backoff_base=0, timeout=5, sleep=no_sleep)

    def test_collect(self, settings, policy):
        gateway = ScriptedGateway([
            ("identifying what a novelist must research", json.dumps({
                "domain": [{"topic": "Maritime law"}],
                "setting": [{"topic": "Harbour pilots"}],
            })),
            ("Research the following topic", RESPONSE),
        ])
        research = asyncio.run(ResearchCollector(gateway, settings, policy).collect("A premise", "", GenerationSettings()))
        assert [r.topic for r in research.domain] == ["Maritime law"]
        assert [r.topic for r in research.setting] == ["Harbour pilots"]
        assert research.character == []

    def test_failed_topic_becomes_placeholder(self, settings, policy):
        gateway = ScriptedGateway([
            ("identifying what a novelist must research", "not json"),
            ("Research the following topic", GenerationError("down")),
        ])
        research = asyncio.run(ResearchCollector(gateway, settings, policy).collect("A premise", "", GenerationSettings()))
        results = research.all_results()
        assert len(results) == len(ResearchCategory)
        assert research.technical and research.cultural
        assert all(r.failed for r in results)
        assert research.summary() == "No research available."

    def test_targeted_research_primed_with_known_facts(self, settings, policy):
        gateway = ScriptedGateway([("Research this specific detail", "1. Cutters flew a red and white flag.")])
        known = ComprehensiveResearch(setting=[ResearchResult(topic="Harbour pilots", facts=["Pilots were licensed."])])
        collector = ResearchCollector(gateway, settings, policy)

        result = asyncio.run(collector.targeted_research("harbour pilots signals", "Mara sees the cutter", known))

        assert result.facts == ["Cutters flew a red and white flag."]
        assert "Harbour pilots: Pilots were licensed." in gateway.prompts[0]
