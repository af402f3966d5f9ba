"""Research collector.

Expands a premise into five categorized topic lists, then researches the
categories concurrently. A failed topic yields a placeholder result instead of
aborting the batch.
"""

import asyncio
import logging
from typing import Optional

from rapidfuzz import fuzz

from ..config import Settings
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import (
    ComprehensiveResearch,
    GenerationSettings,
    ResearchCategory,
    ResearchResult,
    ResearchTopic,
    TopicPriority,
    TopicScope,
)
from ..retry import RetryPolicy, call_with_retry
from .parser import parse_research_response, placeholder_result
from .prompts import (
    CATEGORY_FOCUS,
    IDENTIFY_TOPICS_PROMPT,
    RESEARCH_SYSTEM,
    RESEARCH_TOPIC_PROMPT,
    TARGETED_RESEARCH_PROMPT,
)

logger = logging.getLogger(__name__)

# Response keys, including the shouted variants models like to use
CATEGORY_KEYS = {
    "domain": ResearchCategory.DOMAIN,
    "domain knowledge": ResearchCategory.DOMAIN,
    "character": ResearchCategory.CHARACTER,
    "characters": ResearchCategory.CHARACTER,
    "character backgrounds": ResearchCategory.CHARACTER,
    "setting": ResearchCategory.SETTING,
    "settings": ResearchCategory.SETTING,
    "setting details": ResearchCategory.SETTING,
    "technical": ResearchCategory.TECHNICAL,
    "technical aspects": ResearchCategory.TECHNICAL,
    "cultural": ResearchCategory.CULTURAL,
    "cultural context": ResearchCategory.CULTURAL,
}

MAX_TOPICS_PER_CATEGORY = 3

TopicMap = dict[ResearchCategory, list[ResearchTopic]]


def fallback_topics(settings: GenerationSettings) -> TopicMap:
    """One generic topic per category, derived from genre."""
    return {
        ResearchCategory.DOMAIN: [
            ResearchTopic(
                topic=settings.genre,
                category=ResearchCategory.DOMAIN,
                priority=TopicPriority.HIGH,
                context=f"Core conventions of {settings.genre} fiction",
            )
        ],
        ResearchCategory.CHARACTER: [
            ResearchTopic(
                topic="Character development",
                category=ResearchCategory.CHARACTER,
                context="Believable motivation and growth",
            )
        ],
        ResearchCategory.SETTING: [
            ResearchTopic(
                topic="Story setting",
                category=ResearchCategory.SETTING,
                context="Grounding the story in a concrete place",
            )
        ],
        ResearchCategory.TECHNICAL: [
            ResearchTopic(
                topic=f"Technical details of {settings.genre} stories",
                category=ResearchCategory.TECHNICAL,
                context="Procedures and tools the plot depends on",
            )
        ],
        ResearchCategory.CULTURAL: [
            ResearchTopic(
                topic="Cultural context",
                category=ResearchCategory.CULTURAL,
                context=f"Customs and social norms readers of {settings.genre} expect",
            )
        ],
    }


def _coerce_enum(enum_cls, value, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def topics_from_payload(payload: dict) -> TopicMap:
    """Convert a topic-identification payload into topics per category."""
    topics: TopicMap = {category: [] for category in ResearchCategory}
    for key, value in payload.items():
        category = CATEGORY_KEYS.get(str(key).strip().lower())
        if category is None:
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            if isinstance(item, str):
                item = {"topic": item}
            if not isinstance(item, dict):
                continue
            name = str(item.get("topic") or item.get("Topic") or "").strip()
            if not name:
                continue
            topics[category].append(ResearchTopic(
                topic=name,
                category=category,
                priority=_coerce_enum(TopicPriority, item.get("priority") or item.get("Priority"), TopicPriority.MEDIUM),
                scope=_coerce_enum(TopicScope, item.get("scope") or item.get("Scope"), TopicScope.BROAD),
                context=str(item.get("context") or f"Research for {category.value}"),
            ))
        topics[category] = topics[category][:MAX_TOPICS_PER_CATEGORY]
    return topics


def find_relevant_research(topic: str, research: ComprehensiveResearch, min_score: int = 70) -> list[ResearchResult]:
    """Existing results that look related to a topic."""
    needle = topic.lower()
    relevant = []
    for result in research.all_results():
        if result.failed:
            continue
        name = result.topic.lower()
        if needle in name or name in needle:
            relevant.append(result)
        elif fuzz.token_set_ratio(needle, name) >= min_score:
            relevant.append(result)
        elif any(needle in fact.lower() for fact in result.facts):
            relevant.append(result)
    return relevant


class ResearchCollector:
    """Collects background research for a book.

    Usage:
        collector = ResearchCollector(gateway, settings)
        research = await collector.collect(premise, back_cover, generation_settings)
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    async def collect(
        self,
        premise: str,
        back_cover: str,
        generation_settings: GenerationSettings,
    ) -> ComprehensiveResearch:
        """Identify topics and research all five categories concurrently."""
        topics = await self.identify_topics(premise, back_cover, generation_settings)

        categories = list(ResearchCategory)
        results = await asyncio.gather(*(
            self.research_category(category, topics.get(category, []), generation_settings)
            for category in categories
        ))

        research = ComprehensiveResearch(**{
            category.value: category_results
            for category, category_results in zip(categories, results)
        })
        failed = sum(1 for r in research.all_results() if r.failed)
        logger.info("Research collected: %d topics (%d failed)", len(research.all_results()), failed)
        return research

    async def identify_topics(
        self,
        premise: str,
        back_cover: str,
        generation_settings: GenerationSettings,
    ) -> TopicMap:
        """Ask for research topics; fall back to genre-derived topics on failure."""
        prompt = IDENTIFY_TOPICS_PROMPT.format(
            premise=premise,
            back_cover=back_cover or "(none yet)",
            genre=generation_settings.genre,
            tone=generation_settings.tone,
            audience=generation_settings.target_audience,
        )
        options = GenerationOptions(
            temperature=0.2,
            max_tokens=2000,
            system_prompt="You are a story analyst identifying research needs. Respond with valid JSON only.",
        )
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Topic identification failed, using fallback topics: %s", e)
            return fallback_topics(generation_settings)

        payload = extract_json(response)
        if not isinstance(payload, dict):
            logger.warning("Could not parse research topics, using fallback topics")
            return fallback_topics(generation_settings)

        topics = topics_from_payload(payload)
        if not any(topics.values()):
            logger.warning("Topic response contained no usable topics, using fallback topics")
            return fallback_topics(generation_settings)
        return topics

    async def research_category(
        self,
        category: ResearchCategory,
        topics: list[ResearchTopic],
        generation_settings: GenerationSettings,
    ) -> list[ResearchResult]:
        """Research each topic of one category in turn."""
        results = []
        for topic in topics:
            results.append(await self.research_topic(topic, generation_settings))
        return results

    async def research_topic(self, topic: ResearchTopic, generation_settings: GenerationSettings) -> ResearchResult:
        prompt = RESEARCH_TOPIC_PROMPT.format(
            genre=generation_settings.genre,
            topic=topic.topic,
            context=topic.context or "General background",
            focus=CATEGORY_FOCUS[topic.category.value],
        )
        options = GenerationOptions(temperature=0.3, max_tokens=1500, system_prompt=RESEARCH_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Research failed for %s: %s", topic.topic, e)
            return placeholder_result(topic.topic, str(e))

        result = parse_research_response(response, topic.topic)
        if not result.facts and not result.key_details:
            return placeholder_result(topic.topic, "response contained no facts")
        return result

    async def targeted_research(
        self,
        topic: str,
        context: str,
        research: ComprehensiveResearch,
    ) -> ResearchResult:
        """Research one specific detail, primed with what is already known."""
        relevant = find_relevant_research(topic, research)[:3]
        known = "\n".join(f"- {r.topic}: {'; '.join(r.facts[:2])}" for r in relevant) or "Nothing yet."
        prompt = TARGETED_RESEARCH_PROMPT.format(topic=topic, context=context, known=known)
        options = GenerationOptions(temperature=0.3, max_tokens=1200, system_prompt=RESEARCH_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Targeted research failed for %s: %s", topic, e)
            return placeholder_result(topic, str(e))
        return parse_research_response(response, topic)
