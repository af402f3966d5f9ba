"""Section transition generator.

Writes the short connective passage between two sections. The preceding
text's voice is analyzed first so the transition keeps the same perspective
and tense; each transition type has its own prompt. Any failure degrades to a
static template, so transitions never stop a run.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..config import Settings
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json, strip_markdown
from ..models import ContinuitySummary, GenerationSettings, NarrativeVoice, TransitionLength, TransitionType
from ..retry import RetryPolicy, call_with_retry
from .prompts import (
    BRIDGE_PROMPT,
    EMOTIONAL_PROMPT,
    PERSPECTIVE_PROMPT,
    SCENE_BREAK_PROMPT,
    TIME_JUMP_PROMPT,
    TRANSITION_SYSTEM,
    VOICE_ANALYSIS_PROMPT,
    VOICE_SAMPLE_PROMPT,
    VOICE_SYSTEM,
)

logger = logging.getLogger(__name__)

BASE_QUALITY = 85
FALLBACK_QUALITY = 70
EXCERPT_CHARS = 1000
SAMPLE_CHARS = 1500

PROMPTS = {
    TransitionType.SCENE_BREAK: SCENE_BREAK_PROMPT,
    TransitionType.BRIDGE_PARAGRAPH: BRIDGE_PROMPT,
    TransitionType.TIME_JUMP: TIME_JUMP_PROMPT,
    TransitionType.PERSPECTIVE_SHIFT: PERSPECTIVE_PROMPT,
    TransitionType.EMOTIONAL_BRIDGE: EMOTIONAL_PROMPT,
}

FALLBACK_TEMPLATES = {
    TransitionType.SCENE_BREAK: "\n\n* * *\n\n",
    TransitionType.BRIDGE_PARAGRAPH: "Meanwhile, ",
    TransitionType.TIME_JUMP: "Later, ",
    TransitionType.PERSPECTIVE_SHIFT: "\n\n",
    TransitionType.EMOTIONAL_BRIDGE: "The feeling shifted as ",
}

PERSPECTIVES = ("first-person", "third-person-limited", "third-person-omniscient")


@dataclass
class TransitionContext:
    """Both sides of a section boundary."""
    previous_text: str
    purpose: str
    transition_type: TransitionType
    settings: GenerationSettings
    chapter_number: int = 1
    length: TransitionLength = TransitionLength.MEDIUM
    voice: NarrativeVoice = field(default_factory=NarrativeVoice)
    characters: list[str] = field(default_factory=list)
    next_characters: list[str] = field(default_factory=list)
    setting: str = "the current scene"
    next_setting: str = "the next scene"
    from_beat: str = "neutral"
    to_beat: str = "neutral"
    timeframe: str = "now"
    next_timeframe: str = "a little later"

    @property
    def last_sentence(self) -> str:
        sentences = re.split(r"(?<=[.!?])\s+", self.previous_text.strip())
        return sentences[-1] if sentences else ""


@dataclass
class TransitionResult:
    text: str
    transition_type: TransitionType
    continuity: ContinuitySummary
    voice: NarrativeVoice
    quality: float
    fallback: bool = False


def extract_narrative_voice(settings: Optional[GenerationSettings] = None) -> NarrativeVoice:
    """Voice implied by settings alone: third-person limited, past tense, the book's tone."""
    if settings is None:
        return NarrativeVoice()
    perspective = "first-person" if "first" in settings.structure.lower() else "third-person-limited"
    return NarrativeVoice(perspective=perspective, tone=settings.tone)


def _voice_from(payload, base: NarrativeVoice) -> NarrativeVoice:
    if not isinstance(payload, dict):
        return base
    perspective = str(payload.get("perspective") or base.perspective).lower().replace(" ", "-")
    if perspective not in PERSPECTIVES:
        perspective = base.perspective
    tense = str(payload.get("tense") or base.tense).lower()
    if tense not in ("past", "present"):
        tense = base.tense

    def strings(key: str, default: list[str]) -> list[str]:
        value = payload.get(key)
        return [str(v) for v in value] if isinstance(value, list) else default

    try:
        score = max(0.0, min(100.0, float(payload.get("consistency_score", base.consistency_score))))
    except (TypeError, ValueError):
        score = base.consistency_score
    return NarrativeVoice(
        perspective=perspective,
        tense=tense,
        tone=str(payload.get("tone") or base.tone),
        voice_characteristics=strings("voice_characteristics", base.voice_characteristics),
        style_tags=strings("style_tags", base.style_tags),
        sentence_fingerprint=str(payload.get("sentence_structure") or base.sentence_fingerprint),
        consistency_score=score,
    )


def assess_quality(text: str, context: TransitionContext) -> float:
    """Heuristic quality of a transition, 60-100."""
    score = BASE_QUALITY
    ratio = len(text.split()) / context.length.target_words
    if ratio < 0.5 or ratio > 2:
        score -= 10
    if context.purpose and context.purpose.lower() in text.lower():
        score += 5
    if "..." in text or "unclear" in text.lower():
        score -= 15
    return float(max(60, min(100, score)))


def continuity_for(context: TransitionContext) -> ContinuitySummary:
    kind = context.transition_type
    characters = context.next_characters or context.characters
    if kind == TransitionType.BRIDGE_PARAGRAPH:
        return ContinuitySummary(
            emotional_flow=f"bridging from {context.from_beat} to {context.to_beat}",
            character_states={name: "present" for name in context.characters},
            setting_continuity="maintained",
            temporal_flow="continuous",
        )
    if kind == TransitionType.TIME_JUMP:
        return ContinuitySummary(
            emotional_flow=f"temporal shift carrying {context.to_beat}",
            character_states={name: "present" for name in characters},
            setting_continuity=f"{context.setting} -> {context.next_setting}",
            temporal_flow=f"time jump: {context.timeframe} -> {context.next_timeframe}",
        )
    if kind == TransitionType.PERSPECTIVE_SHIFT:
        return ContinuitySummary(
            emotional_flow=f"focus shift carrying {context.to_beat}",
            character_states={name: "in focus" for name in characters},
            setting_continuity=f"maintained in {context.next_setting}",
            temporal_flow="continuous",
        )
    if kind == TransitionType.EMOTIONAL_BRIDGE:
        return ContinuitySummary(
            emotional_flow=f"{context.from_beat} -> {context.to_beat}",
            character_states={name: context.to_beat for name in characters},
            setting_continuity="maintained",
            temporal_flow="continuous",
        )
    return ContinuitySummary(
        emotional_flow=f"{context.from_beat} -> {context.to_beat}",
        character_states={name: "present" for name in characters},
        setting_continuity=f"{context.setting} -> {context.next_setting}",
        temporal_flow=f"{context.timeframe} -> {context.next_timeframe}",
    )


def fallback_transition(context: TransitionContext, voice: Optional[NarrativeVoice] = None) -> TransitionResult:
    return TransitionResult(
        text=FALLBACK_TEMPLATES.get(context.transition_type, "\n\n"),
        transition_type=context.transition_type,
        continuity=ContinuitySummary(
            emotional_flow="neutral",
            setting_continuity="maintained",
            temporal_flow="continuous",
        ),
        voice=voice or context.voice,
        quality=float(FALLBACK_QUALITY),
        fallback=True,
    )


class TransitionGenerator:
    """Generates voice-consistent transitions between sections.

    Usage:
        generator = TransitionGenerator(gateway, settings)
        result = await generator.generate(TransitionContext(previous_text, purpose, TransitionType.TIME_JUMP, gen_settings))
        print(result.text)
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    async def generate(self, context: TransitionContext) -> TransitionResult:
        """Never raises; failures return the static template for the type."""
        voice = context.voice
        try:
            voice = await self.analyze_voice(context)
            prompt = PROMPTS[context.transition_type].format(
                last_sentence=context.last_sentence or "(start of chapter)",
                setting=context.setting,
                characters=", ".join(context.characters) or "the current characters",
                next_setting=context.next_setting,
                next_characters=", ".join(context.next_characters or context.characters) or "the same characters",
                from_beat=context.from_beat,
                to_beat=context.to_beat,
                timeframe=context.timeframe,
                next_timeframe=context.next_timeframe,
                purpose=context.purpose,
                perspective=voice.perspective,
                tense=voice.tense,
                tone=voice.tone,
                sentences=voice.sentence_fingerprint,
                genre=context.settings.genre,
                length=context.length.value,
                words=context.length.target_words,
            )
            system = TRANSITION_SYSTEM.format(
                kind=context.transition_type.value, perspective=voice.perspective, tense=voice.tense,
            )
            max_tokens = context.length.target_words * 4
            options = GenerationOptions(temperature=0.7, max_tokens=max_tokens, system_prompt=system)
            text = strip_markdown(await call_with_retry(self.gateway, prompt, options, self.policy))
        except Exception as e:
            logger.warning("Transition (%s) for chapter %d failed, using template: %s",
                           context.transition_type.value, context.chapter_number, e)
            return fallback_transition(context, voice)

        return TransitionResult(
            text=text,
            transition_type=context.transition_type,
            continuity=continuity_for(context),
            voice=voice,
            quality=assess_quality(text, context),
        )

    async def analyze_voice(self, context: TransitionContext) -> NarrativeVoice:
        """Voice of the preceding text; the expected voice if analysis fails."""
        prompt = VOICE_ANALYSIS_PROMPT.format(
            excerpt=context.previous_text[-EXCERPT_CHARS:],
            perspective=context.voice.perspective,
            tense=context.voice.tense,
            tone=context.voice.tone,
            genre=context.settings.genre,
            audience=context.settings.target_audience,
        )
        options = GenerationOptions(temperature=0.3, max_tokens=800, system_prompt=VOICE_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.debug("Voice analysis failed, using expected voice: %s", e)
            return context.voice
        return _voice_from(extract_json(response), context.voice)

    async def voice_from_sample(self, sample: str, settings: GenerationSettings) -> NarrativeVoice:
        """Voice established by a text sample, defaulting from settings."""
        base = extract_narrative_voice(settings)
        if not sample.strip():
            return base
        prompt = VOICE_SAMPLE_PROMPT.format(
            sample=sample[:SAMPLE_CHARS],
            genre=settings.genre,
            tone=settings.tone,
            audience=settings.target_audience,
        )
        options = GenerationOptions(temperature=0.3, max_tokens=800, system_prompt=VOICE_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Narrative voice extraction failed, using defaults: %s", e)
            return base.model_copy(update={
                "voice_characteristics": ["consistent", "engaging"],
                "style_tags": ["standard", "accessible"],
            })
        return _voice_from(extract_json(response), base)
