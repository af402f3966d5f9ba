"""Drift guard.

Keeps a semantic profile of what the book has established (genre, setting,
tone, style, voices, world) and scores each new section against it with a
low-temperature comparison call. A section that drifts too far is flagged or
sent back for regeneration.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..config import Settings
from ..context import ProfileState
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import GenerationSettings, SemanticProfile, StoryBible
from ..retry import RetryPolicy, call_with_retry
from .sanity import IssueSeverity

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.1
ENHANCE_MIN_CHARS = 200
ENHANCE_SAMPLE_CHARS = 2000
CONTEXT_TAIL_CHARS = 1000

ISSUE_LEVELS = [
    (60, IssueSeverity.CRITICAL),
    (35, IssueSeverity.MAJOR),
    (20, IssueSeverity.MINOR),
]

GENRE_ENVIRONMENT = {
    "fantasy": ["medieval", "magical", "ancient", "mystical"],
    "science fiction": ["futuristic", "technological", "space", "advanced"],
    "mystery": ["investigative", "suspenseful", "urban", "contemporary"],
    "romance": ["emotional", "intimate", "relationship-focused"],
    "horror": ["dark", "frightening", "supernatural", "threatening"],
    "thriller": ["fast-paced", "dangerous", "high-stakes"],
    "historical fiction": ["period-appropriate", "historical", "authentic"],
}

TONE_STYLE = {
    "serious": ["thoughtful", "contemplative", "earnest"],
    "light": ["cheerful", "upbeat", "optimistic"],
    "humorous": ["witty", "amusing", "playful"],
    "dramatic": ["intense", "emotional", "powerful"],
    "mysterious": ["enigmatic", "puzzling", "secretive"],
}

DRIFT_SYSTEM = "You are a semantic analysis expert. Respond with valid JSON only."
PROFILE_SYSTEM = "You are a literary analysis expert. Respond with valid JSON only."

DRIFT_PROMPT = '''Compare the NEW CONTENT against the ESTABLISHED PROFILE and rate drift (0-100) for each category.
0 means a perfect match, 100 means completely different.

ESTABLISHED PROFILE:
{profile}

NEW CONTENT:
{content}
{context}
Respond with JSON only:
{{
  "overall": <0-100>,
  "genre": <0-100>,
  "environment": <0-100>,
  "tone": <0-100>,
  "style": <0-100>,
  "character": <0-100>,
  "worldbuilding": <0-100>,
  "flagged": ["element that does not fit", "..."],
  "confidence": <0-100>
}}'''

PROFILE_PROMPT = '''Extract the semantic elements that define this story's style and world.

CONTENT:
{content}

CURRENT PROFILE:
{profile}

Respond with JSON only, keeping genre, narrative style and vocabulary level unless the content clearly contradicts them:
{{
  "environment": ["..."],
  "tonal_elements": ["..."],
  "style_phrases": ["..."],
  "character_voices": {{"Name": "how they speak"}},
  "world_building": ["..."]
}}'''


class DriftCategory(Enum):
    GENRE = "genre"
    ENVIRONMENT = "environment"
    TONE = "tone"
    STYLE = "style"
    CHARACTER = "character"
    WORLDBUILDING = "worldbuilding"

    @property
    def label(self) -> str:
        return "World Building" if self is DriftCategory.WORLDBUILDING else self.value.title()


RECOMMENDATIONS = {
    DriftCategory.GENRE: "Genre consistency: stay within {genre} conventions",
    DriftCategory.ENVIRONMENT: "Environment consistency: keep the established setting elements",
    DriftCategory.TONE: "Tone consistency: keep the established narrative voice",
    DriftCategory.STYLE: "Style consistency: keep the writing style aligned with the profile",
    DriftCategory.CHARACTER: "Character consistency: keep established character voices",
    DriftCategory.WORLDBUILDING: "World consistency: respect the established world rules",
}


@dataclass
class DriftAnalysis:
    """Per-category drift scores, 0 = identical to profile."""
    overall: float
    categories: dict[DriftCategory, float]
    flagged: list[str] = field(default_factory=list)
    confidence: float = 0.0
    fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "categories": {c.value: v for c, v in self.categories.items()},
            "flagged": self.flagged,
            "confidence": self.confidence,
            "fallback": self.fallback,
        }


@dataclass
class DriftIssue:
    category: DriftCategory
    severity: IssueSeverity
    description: str
    suggestion: str
    examples: list[str] = field(default_factory=list)


@dataclass
class DriftResult:
    """Verdict of the drift guard on one section."""
    analysis: DriftAnalysis
    is_valid: bool
    should_regenerate: bool
    issues: list[DriftIssue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def drift(self) -> float:
        return self.analysis.overall

    def summary(self) -> str:
        lines = [f"DriftGuard {'PASSED' if self.is_valid else 'FAILED'} ({self.drift:.0f}% drift)"]
        for issue in self.issues:
            lines.append(f"  - {issue.severity.value.upper()}: {issue.description}")
        return "\n".join(lines)


def fallback_analysis() -> DriftAnalysis:
    """Neutral analysis used when the comparison call fails."""
    return DriftAnalysis(
        overall=25.0,
        categories={category: 20.0 for category in DriftCategory},
        flagged=["Analysis failed"],
        confidence=50.0,
        fallback=True,
    )


def vocabulary_level(audience: str) -> str:
    audience = audience.lower()
    if "child" in audience:
        return "simple"
    if "young" in audience or "teen" in audience:
        return "moderate"
    if "adult" in audience:
        return "advanced"
    return "moderate"


def _score(value, default: float) -> float:
    try:
        return max(0.0, min(100.0, float(value)))
    except (TypeError, ValueError):
        return default


def _strings(value) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def _merge(old: list[str], new: list[str]) -> list[str]:
    return list(dict.fromkeys(old + new))


def parse_analysis(payload) -> DriftAnalysis:
    """Analysis from a response payload.

    Raises:
        ValueError: payload lacks the overall score
    """
    if not isinstance(payload, dict) or "overall" not in payload:
        raise ValueError("drift response missing overall score")
    overall = _score(payload.get("overall"), -1.0)
    if overall < 0:
        raise ValueError(f"drift overall score is not a number: {payload.get('overall')!r}")
    return DriftAnalysis(
        overall=overall,
        categories={c: _score(payload.get(c.value), 0.0) for c in DriftCategory},
        flagged=_strings(payload.get("flagged")),
        confidence=_score(payload.get("confidence"), 50.0),
    )


def drift_issues(analysis: DriftAnalysis) -> list[DriftIssue]:
    issues = []
    for category, score in analysis.categories.items():
        for level, severity in ISSUE_LEVELS:
            if score > level:
                examples = analysis.flagged[:2] if severity == IssueSeverity.CRITICAL else analysis.flagged[:1]
                issues.append(DriftIssue(
                    category=category,
                    severity=severity,
                    description=f"{category.label} drift is {score:.0f}%",
                    suggestion=f"Revise {category.label.lower()} elements to match the established story",
                    examples=examples if severity != IssueSeverity.MINOR else [],
                ))
                break
    return issues


class DriftGuard:
    """Scores sections against the run's semantic profile.

    The profile itself lives in the run's ProfileState; the guard only reads
    it for analysis and replaces it on update.

    Usage:
        guard = DriftGuard(gateway, settings)
        state.replace(await guard.initialize_profile(generation_settings, bible))
        result = await guard.analyze(state.current, section_text)
        if result.should_regenerate:
            ...
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    @staticmethod
    def baseline_profile(settings: GenerationSettings, bible: Optional[StoryBible] = None) -> SemanticProfile:
        """Profile seeded from settings and, when present, the story bible."""
        genre = settings.normalized_genre
        environment = [settings.genre] + GENRE_ENVIRONMENT.get(genre, ["general"])
        tonal = [settings.tone]
        voices: dict[str, str] = {}
        world: list[str] = []
        if bible is not None:
            environment.extend(bible.world.locations)
            if bible.overview.theme:
                tonal.append(bible.overview.theme)
            voices = {c.name: c.background[:120] for c in bible.characters if c.background}
            world = bible.world.rules + ([bible.world.setting] if bible.world.setting else [])

        return SemanticProfile(
            genre=settings.genre,
            environment=list(dict.fromkeys(environment)),
            tonal_elements=list(dict.fromkeys(tonal)),
            style_phrases=TONE_STYLE.get(settings.tone.lower(), ["neutral"]),
            character_voices=voices,
            world_building=world,
            narrative_style=settings.tone,
            vocabulary_level=vocabulary_level(settings.target_audience),
        )

    async def initialize_profile(
        self,
        settings: GenerationSettings,
        bible: Optional[StoryBible] = None,
        existing_content: Optional[str] = None,
    ) -> SemanticProfile:
        profile = self.baseline_profile(settings, bible)
        if existing_content and len(existing_content) > ENHANCE_MIN_CHARS:
            profile = await self.enhance(profile, existing_content)
        logger.info("Semantic profile initialized for %s", profile.genre)
        return profile

    async def enhance(self, profile: SemanticProfile, content: str) -> SemanticProfile:
        """Profile merged with elements extracted from content; unchanged on failure."""
        prompt = PROFILE_PROMPT.format(
            content=content[:ENHANCE_SAMPLE_CHARS],
            profile=profile.describe(),
        )
        options = GenerationOptions(temperature=ANALYSIS_TEMPERATURE, max_tokens=1500, system_prompt=PROFILE_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Profile enhancement failed, keeping base profile: %s", e)
            return profile

        payload = extract_json(response)
        if not isinstance(payload, dict):
            logger.warning("Profile enhancement returned no JSON, keeping base profile")
            return profile

        voices = dict(profile.character_voices)
        if isinstance(payload.get("character_voices"), dict):
            voices.update({str(k): str(v) for k, v in payload["character_voices"].items()})
        return profile.model_copy(update={
            "environment": _merge(profile.environment, _strings(payload.get("environment"))),
            "tonal_elements": _merge(profile.tonal_elements, _strings(payload.get("tonal_elements"))),
            "style_phrases": _merge(profile.style_phrases, _strings(payload.get("style_phrases"))),
            "character_voices": voices,
            "world_building": _merge(profile.world_building, _strings(payload.get("world_building"))),
            "timestamp": datetime.now(timezone.utc),
        })

    async def analyze(
        self,
        profile: SemanticProfile,
        content: str,
        accumulated: Optional[str] = None,
    ) -> DriftResult:
        analysis = await self.compare(profile, content, accumulated)
        is_valid = analysis.overall <= self.settings.drift_threshold
        should_regenerate = analysis.overall > self.settings.drift_regenerate_threshold
        result = DriftResult(
            analysis=analysis,
            is_valid=is_valid,
            should_regenerate=should_regenerate,
            issues=drift_issues(analysis),
            recommendations=self.recommendations(analysis, is_valid, profile),
        )
        if not is_valid:
            logger.warning("Drift %.0f%% exceeds threshold %.0f%%", analysis.overall, self.settings.drift_threshold)
        else:
            logger.debug("Drift %.0f%%", analysis.overall)
        return result

    async def compare(self, profile: SemanticProfile, content: str, accumulated: Optional[str] = None) -> DriftAnalysis:
        context = ""
        if accumulated:
            context = f"\nEXISTING CHAPTER CONTENT FOR CONTEXT:\n{accumulated[-CONTEXT_TAIL_CHARS:]}\n"
        prompt = DRIFT_PROMPT.format(profile=profile.describe(), content=content, context=context)
        options = GenerationOptions(temperature=ANALYSIS_TEMPERATURE, max_tokens=800, system_prompt=DRIFT_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
            return parse_analysis(extract_json(response))
        except (RetryableError, ValueError) as e:
            logger.warning("Drift analysis failed, using neutral result: %s", e)
            return fallback_analysis()

    def recommendations(self, analysis: DriftAnalysis, is_valid: bool, profile: SemanticProfile) -> list[str]:
        if is_valid:
            notes = ["Content is consistent with established story elements"]
            if analysis.overall > 15:
                notes.append("Minor drift detected, review flagged elements")
            return notes

        notes = ["Content drift exceeds acceptable threshold"]
        if analysis.overall > self.settings.drift_regenerate_threshold:
            notes.append("Regenerate the section to restore consistency")
        for category, score in analysis.categories.items():
            if score > 35:
                notes.append(RECOMMENDATIONS[category].format(genre=profile.genre))
        return notes

    async def update_profile(self, state: ProfileState, content: str, chapter: int) -> None:
        """Merge an accepted chapter into the profile.

        On failure the old profile stays in place and a warning is logged.
        """
        if state.current is None:
            logger.warning("Cannot update profile for chapter %d: not initialized", chapter)
            return
        try:
            updated = await self.enhance(state.current, content)
        except Exception as e:
            logger.warning("Profile update for chapter %d failed: %s", chapter, e)
            return
        state.replace(updated.model_copy(update={"timestamp": datetime.now(timezone.utc)}))
        logger.info("Semantic profile updated with chapter %d (%d in history)", chapter, len(state.history))
