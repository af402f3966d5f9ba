"""Structural planner.

Decides chapter count and per-chapter word targets from genre conventions,
tone and total length. Lengths vary on purpose: a longer opening, a longer
climax band and shorter transition chapters.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Optional

from ..models import GenerationSettings
from .genre import get_genre_structure

logger = logging.getLogger(__name__)

MIN_CHAPTERS = 3
MAX_CHAPTERS = 15
MIN_WORDS_PER_CHAPTER = 500

FAST_TONES = ("fast", "intense", "action", "urgent", "suspense", "thrilling", "gripping", "breakneck")
SLOW_TONES = ("contemplative", "reflective", "slow", "meditative", "lyrical", "quiet", "introspective")

OPENING_BOOST = 1.2
CLIMAX_BOOST = 1.3
TRANSITION_CUT = 0.8
CLIMAX_BAND = (0.70, 0.85)


def tone_factor(tone: str) -> float:
    """Chapter-count multiplier for a tone."""
    text = tone.lower()
    if any(word in text for word in FAST_TONES):
        return 1.2
    if any(word in text for word in SLOW_TONES):
        return 0.85
    return 1.0


def chapter_count(word_count: int, genre: str, tone: str = "") -> int:
    """Optimal chapter count, bounded to [3, 15]."""
    rules = get_genre_structure(genre)
    count = round(rules.preferred_chapter_count(word_count) * tone_factor(tone))
    # Short books cannot support the genre floor
    count = min(count, word_count // MIN_WORDS_PER_CHAPTER)
    return max(MIN_CHAPTERS, min(MAX_CHAPTERS, count))


def climax_chapter(total: int) -> int:
    """1-based climax chapter, 80% of the way through."""
    return max(1, min(total, math.floor(total * 0.8)))


def act_breaks(total: int) -> list[int]:
    """Last chapters of act one and act two."""
    first = max(1, math.floor(total * 0.25))
    second = max(first, math.floor(total * 0.75))
    return [first, second]


def climax_band(total: int) -> list[int]:
    band = [n for n in range(1, total + 1) if CLIMAX_BAND[0] <= n / total <= CLIMAX_BAND[1]]
    peak = climax_chapter(total)
    if peak not in band:
        band.append(peak)
    return sorted(band)


def transition_chapters(total: int) -> list[int]:
    """Chapters right after the quarter and half turning points."""
    band = set(climax_band(total))
    candidates = {math.floor(total * 0.25) + 1, math.floor(total * 0.5) + 1}
    return sorted(n for n in candidates if 1 < n <= total and n not in band)


def rescale(lengths: list[float], total: int) -> list[int]:
    """Scale lengths to sum exactly to total; the remainder lands on the middle chapter."""
    current = sum(lengths)
    scaled = [int(length * total / current) for length in lengths]
    scaled[len(scaled) // 2] += total - sum(scaled)
    return scaled


def adjust_lengths(lengths: list[int], total: int, lo: int, hi: int) -> list[int]:
    """Clamp lengths to the genre's bounds and redistribute back to the total.

    Chapters pushed outside the bounds are pinned to them and the rest of the
    total is spread over the remaining chapters in proportion to their length.
    When the total cannot be met within the bounds, only the
    minimum chapter length is enforced.
    """
    n = len(lengths)
    if not n * lo <= total <= n * hi:
        logger.debug("Chapter bounds %d-%d infeasible for %d words in %d chapters", lo, hi, total, n)
        lo, hi = min(MIN_WORDS_PER_CHAPTER, total // n), total

    pinned: dict[int, float] = {}
    scaled: dict[int, float] = {}
    for _ in range(n):
        free = [i for i in range(n) if i not in pinned]
        free_sum = sum(lengths[i] for i in free)
        if not free or free_sum <= 0:
            break
        remaining = total - sum(pinned.values())
        scaled = {i: lengths[i] * remaining / free_sum for i in free}
        violations = {i: (lo if v < lo else hi) for i, v in scaled.items() if v < lo or v > hi}
        if not violations:
            break
        pinned.update(violations)

    return rescale([pinned.get(i, scaled.get(i, lo)) for i in range(n)], total)


@dataclass
class ChapterLayout:
    """Chapter count and word targets for a book."""
    word_count: int
    lengths: list[int]
    climax_chapter: int
    act_breaks: list[int]
    transition_chapters: list[int] = field(default_factory=list)

    @property
    def chapter_count(self) -> int:
        return len(self.lengths)

    @property
    def is_uniform(self) -> bool:
        return len(set(self.lengths)) <= 1


class StructuralPlanner:
    """Plans chapter count and lengths.

    Usage:
        planner = StructuralPlanner(seed=7)
        layout = planner.plan(settings)
        layout.lengths  # [2400, 1930, ...]
    """

    def __init__(self, seed: Optional[int] = None, jitter: float = 0.05):
        self.rng = random.Random(seed) if seed is not None else None
        self.jitter = jitter

    def chapter_lengths(self, total_words: int, count: int) -> list[int]:
        """Varied lengths for count chapters summing exactly to total_words."""
        weights = [1.0] * count
        weights[0] *= OPENING_BOOST
        for number in climax_band(count):
            weights[number - 1] *= CLIMAX_BOOST
        for number in transition_chapters(count):
            weights[number - 1] *= TRANSITION_CUT
        if self.rng is not None and self.jitter:
            weights = [w * self.rng.uniform(1 - self.jitter, 1 + self.jitter) for w in weights]
        return rescale(weights, total_words)

    def plan(self, settings: GenerationSettings) -> ChapterLayout:
        rules = get_genre_structure(settings.genre)
        count = chapter_count(settings.word_count, settings.genre, settings.tone)
        lengths = adjust_lengths(
            self.chapter_lengths(settings.word_count, count),
            settings.word_count,
            rules.min_chapter_length,
            rules.max_chapter_length,
        )

        logger.info(
            "Planned %d chapters for %s words of %s (%d-%d words each)",
            count, f"{settings.word_count:,}", settings.genre, min(lengths), max(lengths),
        )
        return ChapterLayout(
            word_count=settings.word_count,
            lengths=lengths,
            climax_chapter=climax_chapter(count),
            act_breaks=act_breaks(count),
            transition_chapters=transition_chapters(count),
        )
