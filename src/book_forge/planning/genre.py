"""Genre structure conventions.

Chapter and section sizing rules per genre, plus section planning and
weighted transition selection.
"""

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models import GenerationSettings, TransitionType, normalize_genre


class PacingPattern(str, Enum):
    LINEAR = "linear"
    ACCELERATING = "accelerating"
    VARIABLE = "variable"
    WAVE = "wave"


class SectionType(str, Enum):
    OPENING = "opening"
    DEVELOPMENT = "development"
    CLIMAX = "climax"
    RESOLUTION = "resolution"
    BRIDGE = "bridge"


@dataclass(frozen=True)
class GenreStructure:
    """Sizing and pacing conventions for a genre."""
    optimal_chapter_length: int
    min_chapter_length: int
    max_chapter_length: int
    min_chapter_count: int
    optimal_section_length: int
    pacing: PacingPattern
    transitions: dict[TransitionType, float] = field(default_factory=dict)
    allow_single_section: bool = True

    def preferred_chapter_count(self, word_count: int) -> int:
        return max(self.min_chapter_count, math.ceil(word_count / self.optimal_chapter_length))


T = TransitionType

GENRE_STRUCTURES: dict[str, GenreStructure] = {
    "fantasy": GenreStructure(
        3500, 2000, 5000, 4, 1200, PacingPattern.VARIABLE,
        {T.SCENE_BREAK: 0.4, T.BRIDGE_PARAGRAPH: 0.3, T.TIME_JUMP: 0.2, T.PERSPECTIVE_SHIFT: 0.1},
        allow_single_section=False,
    ),
    "mystery": GenreStructure(
        2800, 1800, 4000, 5, 1000, PacingPattern.ACCELERATING,
        {T.BRIDGE_PARAGRAPH: 0.5, T.SCENE_BREAK: 0.3, T.EMOTIONAL_BRIDGE: 0.2},
    ),
    "romance": GenreStructure(
        2500, 1500, 3500, 6, 900, PacingPattern.WAVE,
        {T.EMOTIONAL_BRIDGE: 0.4, T.BRIDGE_PARAGRAPH: 0.3, T.SCENE_BREAK: 0.2, T.PERSPECTIVE_SHIFT: 0.1},
    ),
    "thriller": GenreStructure(
        2200, 1200, 3000, 7, 800, PacingPattern.ACCELERATING,
        {T.SCENE_BREAK: 0.5, T.BRIDGE_PARAGRAPH: 0.3, T.TIME_JUMP: 0.2},
    ),
    "literary": GenreStructure(
        4000, 2500, 6000, 3, 1500, PacingPattern.LINEAR,
        {T.BRIDGE_PARAGRAPH: 0.6, T.EMOTIONAL_BRIDGE: 0.3, T.SCENE_BREAK: 0.1},
        allow_single_section=False,
    ),
    "science fiction": GenreStructure(
        3200, 2000, 4500, 4, 1100, PacingPattern.VARIABLE,
        {T.SCENE_BREAK: 0.4, T.BRIDGE_PARAGRAPH: 0.3, T.TIME_JUMP: 0.2, T.PERSPECTIVE_SHIFT: 0.1},
        allow_single_section=False,
    ),
    "young adult": GenreStructure(
        2000, 1200, 2800, 8, 700, PacingPattern.ACCELERATING,
        {T.BRIDGE_PARAGRAPH: 0.4, T.SCENE_BREAK: 0.3, T.EMOTIONAL_BRIDGE: 0.3},
    ),
    "historical fiction": GenreStructure(
        3800, 2500, 5000, 3, 1300, PacingPattern.LINEAR,
        {T.BRIDGE_PARAGRAPH: 0.5, T.SCENE_BREAK: 0.3, T.TIME_JUMP: 0.2},
        allow_single_section=False,
    ),
}

DEFAULT_STRUCTURE = GenreStructure(
    2500, 1500, 3500, 4, 1000, PacingPattern.LINEAR,
    {T.BRIDGE_PARAGRAPH: 0.5, T.SCENE_BREAK: 0.3, T.EMOTIONAL_BRIDGE: 0.2},
)


def get_genre_structure(genre: str) -> GenreStructure:
    """Rules for a genre, falling back to the default conventions."""
    key = normalize_genre(genre)
    if key in GENRE_STRUCTURES:
        return GENRE_STRUCTURES[key]
    # "dark fantasy", "cozy mystery" and the like
    for name, rules in GENRE_STRUCTURES.items():
        if name in key:
            return rules
    return DEFAULT_STRUCTURE


def select_transition(genre: str, rng: Optional[random.Random] = None) -> TransitionType:
    """Weighted pick among the genre's preferred transitions."""
    rng = rng or random.Random()
    weights = get_genre_structure(genre).transitions
    types = list(weights)
    return rng.choices(types, weights=[weights[t] for t in types], k=1)[0]


@dataclass
class SectionPlan:
    """One section of a chapter."""
    number: int
    type: SectionType
    word_target: int
    purpose: str
    emotional_beat: str
    transition_in: TransitionType
    transition_out: TransitionType


SECTION_PURPOSES = {
    SectionType.OPENING: "Establish the chapter's situation and hook the reader",
    SectionType.DEVELOPMENT: "Develop the conflict and deepen character",
    SectionType.CLIMAX: "Drive the chapter's tension to its peak",
    SectionType.RESOLUTION: "Resolve the chapter's movement and settle consequences",
    SectionType.BRIDGE: "Carry momentum into the next chapter",
}


def section_type(section: int, total_sections: int, chapter: int, total_chapters: int) -> SectionType:
    """Role of a section from its position in the chapter and the book."""
    if section == 1:
        return SectionType.OPENING
    chapter_position = chapter / total_chapters
    if section == total_sections:
        if chapter_position > 0.8:
            return SectionType.RESOLUTION
        if chapter_position > 0.6:
            return SectionType.CLIMAX
        return SectionType.BRIDGE
    if total_sections > 2 and section / total_sections > 0.6:
        return SectionType.CLIMAX
    return SectionType.DEVELOPMENT


def emotional_beat(kind: SectionType, chapter: int, total_chapters: int) -> str:
    position = chapter / total_chapters
    if kind == SectionType.CLIMAX:
        return "peak tension" if position > 0.6 else "rising tension"
    if kind == SectionType.RESOLUTION:
        return "release" if position > 0.8 else "uneasy calm"
    if kind == SectionType.OPENING:
        return "curiosity"
    if position < 0.25:
        return "discovery"
    if position < 0.75:
        return "complication"
    return "urgency"


def plan_chapter_sections(
    chapter_number: int,
    chapter_words: int,
    total_chapters: int,
    settings: GenerationSettings,
    rng: Optional[random.Random] = None,
) -> list[SectionPlan]:
    """Split a chapter into 1-5 sections with roles and transitions."""
    rules = get_genre_structure(settings.genre)
    rng = rng or random.Random(chapter_number)

    count = max(1, min(5, round(chapter_words / rules.optimal_section_length)))
    if count == 1 and not rules.allow_single_section:
        count = 2

    base = chapter_words // count
    sections = []
    for number in range(1, count + 1):
        kind = section_type(number, count, chapter_number, total_chapters)
        sections.append(SectionPlan(
            number=number,
            type=kind,
            word_target=base + (chapter_words % count if number == count else 0),
            purpose=SECTION_PURPOSES[kind],
            emotional_beat=emotional_beat(kind, chapter_number, total_chapters),
            transition_in=select_transition(settings.genre, rng),
            transition_out=select_transition(settings.genre, rng),
        ))
    return sections
