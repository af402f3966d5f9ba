"""Redundancy reducer.

Counts repeated 2-, 3- and 4-word phrases over a sliding window of recent
prose, scores how repetitive the new section is, and rewrites the worst
offenders. Narrative prose repeats itself naturally, so the raw score is
heavily damped; the damping thresholds live in RedundancyCalibration.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config import Settings
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import GenerationSettings
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

NGRAM_SIZES = (2, 3, 4)
MIN_REWRITE_RATIO = 0.8
MAX_REWRITE_PHRASES = 10

COMMON_WORDS = {"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}

CLICHES = {
    "heart pounded", "heart pounds", "heart racing", "heart skipped",
    "eyes widened", "eyes narrow", "breath caught", "blood ran cold",
    "spine tingled", "stomach dropped", "mind reeled", "world spun",
    "time stood still", "spark ignited", "spark ignites", "fire burned",
    "flame flickered", "shadow fell", "darkness consumed", "light dawned",
    "realization hit", "truth struck", "memory flooded", "emotion washed",
    "wave crashed", "storm raged", "thunder roared", "lightning struck",
}

PHRASE_VARIATIONS = {
    "heart pounded": ["pulse raced", "heartbeat quickened", "chest tightened"],
    "heart pounds": ["pulse races", "heartbeat quickens", "chest tightens"],
    "eyes widened": ["gaze sharpened", "vision focused", "look intensified"],
    "spark ignited": ["connection formed", "feeling awakened", "emotion stirred"],
    "spark ignites": ["connection forms", "feeling awakens", "emotion stirs"],
}

# Substrings of phrases that ordinary narration repeats without it reading as redundant
NATURAL_PATTERNS = (
    "said", "asked", "replied", "continued", "began", "started",
    "walked to", "looked at", "turned to", "moved toward",
    "felt", "seemed", "appeared", "looked like",
    "and then", "but then", "so that", "as if", "even though",
)

REWRITE_SYSTEM = "You are an expert editor who reduces repetitive language while preserving meaning and style."
ALTERNATIVES_SYSTEM = "You are a creative writing assistant. Respond with a JSON array of strings only."

ALTERNATIVES_PROMPT = '''Replace the overused phrase "{phrase}" with fresh alternatives that fit the context.

CONTEXT: {context}
GENRE: {genre}
TONE: {tone}

Give 3-5 alternative ways to express the same meaning. Respond with a JSON array of strings only:
["alternative 1", "alternative 2", "alternative 3"]'''

REWRITE_PROMPT = '''Improve this text by reducing redundancy and repetitive language while keeping its meaning, style and length.

REPETITIVE PHRASES TO VARY: {phrases}
GENRE: {genre}
TONE: {tone}

TEXT TO IMPROVE:
{text}

Rules:
1. Replace repetitive phrases with varied alternatives
2. Keep the same story events and character actions
3. Keep the same narrative voice and style
4. Preserve all dialogue exactly
5. Keep a similar length (within 10%)

Return only the improved text.'''


class PhraseSeverity(Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


SEVERITY_ORDER = {PhraseSeverity.CRITICAL: 3, PhraseSeverity.MAJOR: 2, PhraseSeverity.MINOR: 1}
SEVERITY_WEIGHT = {PhraseSeverity.CRITICAL: 2.0, PhraseSeverity.MAJOR: 1.5, PhraseSeverity.MINOR: 0.5}


@dataclass(frozen=True)
class RedundancyCalibration:
    """Damping applied to the raw repetition score."""
    min_words: int = 100
    lenient_words: int = 2000
    lenient_max_phrases: int = 5
    lenient_points_per_phrase: int = 3
    lenient_cap: float = 15.0
    length_factor_words: int = 1500
    length_factor_max: float = 1.5
    density_caps: tuple[tuple[float, float], ...] = ((0.03, 10.0), (0.08, 25.0))
    phrase_count_caps: tuple[tuple[int, float], ...] = ((3, 15.0), (8, 30.0))
    runaway_score: float = 75.0
    runaway_max_phrases: int = 15
    runaway_cap: float = 40.0


@dataclass
class RepetitivePhrase:
    phrase: str
    count: int
    size: int
    severity: PhraseSeverity
    positions: list[int] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class RedundancyAnalysis:
    total_ngrams: int
    phrases: list[RepetitivePhrase]
    score: float

    @property
    def quality_score(self) -> float:
        return max(0.0, min(100.0, 100.0 - self.score))

    @property
    def critical(self) -> list[RepetitivePhrase]:
        return [p for p in self.phrases if p.severity == PhraseSeverity.CRITICAL]

    @property
    def minor(self) -> list[RepetitivePhrase]:
        """Non-critical phrases (major and minor)."""
        return [p for p in self.phrases if p.severity != PhraseSeverity.CRITICAL]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "quality_score": self.quality_score,
            "total_ngrams": self.total_ngrams,
            "phrases": [
                {"phrase": p.phrase, "count": p.count, "size": p.size, "severity": p.severity.value}
                for p in self.phrases
            ],
        }


@dataclass
class TextChange:
    kind: str
    original: str
    replacement: str
    reason: str
    position: int = 0


@dataclass
class ReductionResult:
    original_text: str
    text: str
    changes: list[TextChange]
    before: RedundancyAnalysis
    after: RedundancyAnalysis

    @property
    def redundancy_reduced(self) -> float:
        return self.before.score - self.after.score

    @property
    def quality_improvement(self) -> float:
        return self.after.quality_score - self.before.quality_score


@dataclass
class QuickCheck:
    needs_reduction: bool
    score: float
    critical_issues: int


def tokenize(text: str) -> list[str]:
    return re.sub(r"[^\w\s]", " ", text.lower()).split()


def is_natural_pattern(phrase: str) -> bool:
    return any(pattern in phrase for pattern in NATURAL_PATTERNS)


def should_skip(ngram: str, size: int) -> bool:
    if all(word in COMMON_WORDS for word in ngram.split()):
        return True
    if size > 2 and len(ngram) < 6:
        return True
    return is_natural_pattern(ngram)


def local_suggestions(phrase: str) -> list[str]:
    """Canned variations for a phrase, without a model call."""
    suggestions = list(PHRASE_VARIATIONS.get(phrase, []))
    if "heart" in phrase:
        suggestions += [phrase.replace("heart", "pulse"), phrase.replace("heart", "chest")]
    if "eyes" in phrase:
        suggestions += [phrase.replace("eyes", "gaze"), phrase.replace("eyes widened", "gaze sharpened")]
    return [s for s in dict.fromkeys(suggestions) if s != phrase][:3]


def replace_occurrences(text: str, phrase: RepetitivePhrase, alternatives: list[str]) -> tuple[str, int]:
    """Swap occurrences of a phrase for alternatives, leaving at least one intact."""
    limit = min(len(alternatives), phrase.count - 1)
    if limit <= 0:
        return text, 0
    words = [re.escape(w) for w in phrase.phrase.split()]
    pattern = re.compile(r"\b" + r"\W+".join(words) + r"\b", re.IGNORECASE)
    replaced = 0

    def swap(match: re.Match) -> str:
        nonlocal replaced
        if replaced >= limit:
            return match.group(0)
        alternative = alternatives[replaced % len(alternatives)]
        replaced += 1
        return alternative

    return pattern.sub(swap, text), replaced


class RedundancyReducer:
    """Detects and reduces repetitive phrasing.

    Usage:
        reducer = RedundancyReducer(gateway, settings)
        analysis = reducer.analyze(section_text, previous_text)
        if analysis.score >= settings.redundancy_action_threshold:
            result = await reducer.reduce(section_text, analysis, generation_settings)
    """

    def __init__(
        self,
        gateway: Optional[GenerationGateway],
        settings: Settings,
        calibration: Optional[RedundancyCalibration] = None,
        policy: Optional[RetryPolicy] = None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.calibration = calibration or RedundancyCalibration()
        self.policy = policy or RetryPolicy.for_gateway(settings)

    def window(self, text: str, previous: Optional[str] = None) -> str:
        """The new text plus enough trailing prior words to fill the window."""
        if not previous:
            return text
        take = max(0, self.settings.redundancy_window - len(text.split()))
        if take == 0:
            return text
        return " ".join(previous.split()[-take:]) + " " + text

    def severity(self, phrase: str, count: int) -> PhraseSeverity:
        if phrase in CLICHES or count >= self.settings.critical_repetition_threshold:
            return PhraseSeverity.CRITICAL
        if count >= 4:
            return PhraseSeverity.MAJOR
        return PhraseSeverity.MINOR

    def analyze(self, text: str, previous: Optional[str] = None) -> RedundancyAnalysis:
        words = tokenize(self.window(text, previous))
        positions: dict[str, list[int]] = defaultdict(list)
        for size in NGRAM_SIZES:
            for i in range(len(words) - size + 1):
                ngram = " ".join(words[i:i + size])
                if not should_skip(ngram, size):
                    positions[ngram].append(i)

        phrases = [
            RepetitivePhrase(
                phrase=ngram,
                count=len(found),
                size=len(ngram.split()),
                severity=self.severity(ngram, len(found)),
                positions=found,
                suggestions=local_suggestions(ngram),
            )
            for ngram, found in positions.items()
            if len(found) >= self.settings.repetition_threshold
        ]
        phrases.sort(key=lambda p: (-SEVERITY_ORDER[p.severity], -p.count))
        return RedundancyAnalysis(
            total_ngrams=len(positions),
            phrases=phrases,
            score=self.score(phrases, len(words)),
        )

    def score(self, phrases: list[RepetitivePhrase], total_words: int) -> float:
        cal = self.calibration
        if total_words < cal.min_words:
            return 0.0
        if total_words < cal.lenient_words and len(phrases) <= cal.lenient_max_phrases:
            return float(min(cal.lenient_cap, len(phrases) * cal.lenient_points_per_phrase))

        points = 0.0
        repetitions = 0
        for phrase in phrases:
            excess = max(0, phrase.count - self.settings.repetition_threshold)
            base = 2.0 if phrase.size > 1 else 1.0
            points += excess * base * SEVERITY_WEIGHT[phrase.severity]
            repetitions += phrase.count

        length_factor = min(cal.length_factor_max, total_words / cal.length_factor_words)
        reasonable = max((total_words / 100) * length_factor, 1.0)
        score = min(100.0, points / reasonable * 100)

        density = repetitions / total_words
        for limit, cap in cal.density_caps:
            if density < limit:
                score = min(score, cap)
                break
        for limit, cap in cal.phrase_count_caps:
            if len(phrases) <= limit:
                score = min(score, cap)
                break
        if score > cal.runaway_score and len(phrases) < cal.runaway_max_phrases:
            score = min(score, cal.runaway_cap)
        return float(round(max(0.0, score)))

    def quick_check(self, text: str, previous: Optional[str] = None) -> QuickCheck:
        analysis = self.analyze(text, previous)
        return QuickCheck(
            needs_reduction=analysis.score > self.settings.redundancy_check_threshold,
            score=analysis.score,
            critical_issues=len(analysis.critical),
        )

    async def reduce(
        self,
        text: str,
        analysis: RedundancyAnalysis,
        settings: Optional[GenerationSettings] = None,
    ) -> ReductionResult:
        """Rewrite repetitive phrasing; returns the text unchanged below the action threshold."""
        if analysis.score < self.settings.redundancy_action_threshold:
            return ReductionResult(text, text, [], analysis, analysis)

        improved = text
        changes = []
        for phrase in analysis.critical:
            alternatives = await self.alternatives(phrase.phrase, text, settings)
            if not alternatives:
                continue
            improved, replaced = replace_occurrences(improved, phrase, alternatives)
            if replaced:
                changes.append(TextChange(
                    kind="phrase_replacement",
                    original=phrase.phrase,
                    replacement=alternatives[(replaced - 1) % len(alternatives)],
                    reason=f"Reduced repetition ({phrase.count} occurrences)",
                    position=phrase.positions[0] if phrase.positions else 0,
                ))

        if analysis.score > self.settings.redundancy_rewrite_threshold or len(analysis.minor) > 3:
            rewritten = await self.rewrite(improved, analysis, settings)
            if rewritten and len(rewritten) >= len(improved) * MIN_REWRITE_RATIO:
                changes.append(TextChange("sentence_restructure", "", "", "Holistic redundancy rewrite"))
                improved = rewritten
            elif rewritten:
                logger.info("Rewrite discarded: %d chars vs %d original", len(rewritten), len(improved))

        after = self.analyze(improved)
        logger.info(
            "Redundancy %.0f -> %.0f with %d change(s)", analysis.score, after.score, len(changes),
        )
        return ReductionResult(text, improved, changes, analysis, after)

    async def alternatives(self, phrase: str, context: str, settings: Optional[GenerationSettings]) -> list[str]:
        if self.gateway is None:
            return local_suggestions(phrase)
        prompt = ALTERNATIVES_PROMPT.format(
            phrase=phrase,
            context=context[:500],
            genre=settings.genre if settings else "general",
            tone=settings.tone if settings else "neutral",
        )
        options = GenerationOptions(temperature=0.3, max_tokens=200, system_prompt=ALTERNATIVES_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Alternatives for %r failed: %s", phrase, e)
            return local_suggestions(phrase)
        payload = extract_json(response)
        if not isinstance(payload, list):
            return local_suggestions(phrase)
        return [str(a).strip() for a in payload if str(a).strip() and str(a).strip().lower() != phrase]

    async def rewrite(self, text: str, analysis: RedundancyAnalysis, settings: Optional[GenerationSettings]) -> Optional[str]:
        if self.gateway is None:
            return None
        prompt = REWRITE_PROMPT.format(
            phrases=", ".join(p.phrase for p in analysis.phrases[:MAX_REWRITE_PHRASES]),
            genre=settings.genre if settings else "general",
            tone=settings.tone if settings else "neutral",
            text=text,
        )
        options = GenerationOptions(temperature=0.3, max_tokens=3000, system_prompt=REWRITE_SYSTEM)
        try:
            return await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Redundancy rewrite failed: %s", e)
            return None

    @staticmethod
    def summarize(analysis: RedundancyAnalysis) -> str:
        lines = [
            "Redundancy analysis:",
            f"- Redundancy score: {analysis.score:.0f}%",
            f"- Text quality: {analysis.quality_score:.0f}%",
            f"- Critical issues: {len(analysis.critical)}",
            f"- Minor issues: {len(analysis.minor)}",
        ]
        if analysis.critical:
            lines.append("")
            lines.append("Critical repetitions:")
            lines.extend(f'  - "{p.phrase}" ({p.count} times)' for p in analysis.critical)
        return "\n".join(lines)
