"""Deterministic fallback plan.

Used when a planning step runs out of attempts. Builds a canonical three-act
plan without any generation calls: generic but schema-valid characters, and
chapters sized by simple division of the word count. The result goes through
the same validation as a generated plan.
"""

import math
import re
from collections import Counter
from typing import Optional

from ..bible.assembler import (
    baseline_profile,
    build_acts,
    build_overview,
    build_plot_threads,
    build_timeline,
    build_world,
    placeholder_scenes,
)
from ..bible.relationships import attach_relationships
from ..models import (
    ChapterPlan,
    ComprehensiveResearch,
    CreativeStrategy,
    GenerationSettings,
    Outline,
    OutlineChapter,
    OutlineCharacter,
    RelationshipMatrix,
    StoryBible,
)
from .book_plan import BookPlan
from .chapters import assemble_structure_plan, baseline_chapter
from .structure import ChapterLayout, act_breaks, climax_chapter
from .validation import validate_book_plan

WORDS_PER_CHAPTER = 2500
MAX_CHAPTERS = 15
MAX_DERIVED_NAMES = 4

# Capitalized words that are not names
NOT_NAMES = {
    "The", "A", "An", "And", "But", "Or", "When", "While", "After", "Before", "In", "On", "At",
    "Of", "To", "For", "With", "From", "As", "By", "If", "Then", "This", "That", "These", "Those",
    "His", "Her", "Their", "Its", "Our", "My", "Your", "He", "She", "They", "We", "It", "I", "You",
    "One", "Two", "Three", "Every", "Each", "No", "Not", "All", "Some", "Until", "Once", "Now",
    "Write", "Tell", "Story", "Book", "Novel", "Chapter", "Set", "During", "Where", "What", "Who",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "January", "February", "March", "April", "May", "June", "July", "August", "September",
    "October", "November", "December", "God", "Lord", "King", "Queen", "Sir", "Lady",
}

NAME_PATTERN = re.compile(r"\b[A-Z][a-z]{2,}\b")

ACT_TEMPLATES = [
    ("Setup", "establishes the world of the story and the ordinary life of {hero}, then introduces the disturbance that sets events in motion"),
    ("Confrontation", "pushes {hero} deeper into the central conflict as obstacles mount and the cost of failure becomes clear"),
    ("Resolution", "brings {hero} to the final confrontation with the central conflict and shows what has changed as a result"),
]


def derive_character_names(prompt: str, limit: int = MAX_DERIVED_NAMES) -> list[str]:
    """Likely character names in a prompt, most frequent first."""
    counts = Counter(word for word in NAME_PATTERN.findall(prompt) if word not in NOT_NAMES)
    order = {name: index for index, name in enumerate(dict.fromkeys(NAME_PATTERN.findall(prompt)))}
    ranked = sorted(counts, key=lambda name: (-counts[name], order[name]))
    return ranked[:limit]


def fallback_chapter_lengths(word_count: int) -> list[int]:
    """Chapter targets by simple division; the remainder goes to the last chapter."""
    count = min(MAX_CHAPTERS, max(3, math.ceil(word_count / WORDS_PER_CHAPTER)))
    base = word_count // count
    lengths = [base] * count
    lengths[-1] += word_count - base * count
    return lengths


def _act_for(chapter: int, total: int) -> int:
    first_end, second_end = act_breaks(total)
    if chapter <= first_end:
        return 0
    if chapter <= second_end:
        return 1
    return 2


def fallback_outline(prompt: str, settings: GenerationSettings, names: list[str], lengths: list[int]) -> Outline:
    hero = names[0]
    premise = " ".join(prompt.split()) or f"A {settings.genre} story"
    total = len(lengths)

    characters = []
    for index, name in enumerate(names):
        if index == 0:
            characters.append(OutlineCharacter(
                name=name, role="protagonist",
                description=f"{name} is the central character whose choices drive the story.",
            ))
        else:
            characters.append(OutlineCharacter(
                name=name, role="supporting",
                description=f"{name} is bound up in {hero}'s struggle and shapes its outcome.",
            ))

    chapters = []
    for number, words in enumerate(lengths, start=1):
        act_name, template = ACT_TEMPLATES[_act_for(number, total)]
        chapters.append(OutlineChapter(
            number=number,
            title=f"Chapter {number}: {act_name}",
            summary=f"This chapter {template.format(hero=hero)}.",
            word_count_target=words,
        ))

    return Outline(
        title=f"Untitled {settings.genre.title()} Novel",
        summary=(
            f"A {settings.tone} {settings.genre} story for {settings.target_audience} readers. "
            f"{premise} {hero} must face the central conflict and reach a {settings.ending_type} ending."
        ),
        themes=["change", "courage"],
        characters=characters,
        chapters=chapters,
    )


def fallback_strategy(settings: GenerationSettings) -> CreativeStrategy:
    return CreativeStrategy(
        approach=f"A linear three-act {settings.genre} narrative told in a {settings.tone} register.",
        narrative_voice="third-person limited, past tense",
        themes=["change", "courage"],
        pacing="steady build through the first two acts, accelerating into the climax",
    )


def fallback_back_cover(prompt: str, settings: GenerationSettings, hero: str) -> str:
    premise = " ".join(prompt.split()) or f"A {settings.genre} story."
    return (
        f"{premise}\n\n"
        f"In this {settings.tone} {settings.genre} novel, {hero} is drawn into a conflict that will test "
        f"everything they believe. Every choice carries a cost, and there is no way back to the life "
        f"they knew."
    )


def synthesize_fallback_plan(
    prompt: str,
    settings: GenerationSettings,
    research: Optional[ComprehensiveResearch] = None,
    reason: str = "",
    metadata=None,
) -> BookPlan:
    """Build and validate a complete plan without any generation calls.

    Raises:
        SchemaValidationError: the synthesized plan failed validation
    """
    research = research or ComprehensiveResearch()
    names = list(settings.character_names) or derive_character_names(prompt) or ["Protagonist"]
    lengths = fallback_chapter_lengths(settings.word_count)
    total = len(lengths)

    outline = fallback_outline(prompt, settings, names, lengths)
    layout = ChapterLayout(
        word_count=settings.word_count,
        lengths=lengths,
        climax_chapter=climax_chapter(total),
        act_breaks=act_breaks(total),
    )
    chapters = [baseline_chapter(c, lengths[c.number - 1], research, total) for c in outline.chapters]
    for chapter in chapters:
        chapter.character_focus = [names[0]]
    structure_plan = assemble_structure_plan(chapters, outline, layout)

    profiles = [baseline_profile(c, index) for index, c in enumerate(outline.characters)]
    matrix = RelationshipMatrix.trivial(names)
    story_bible = StoryBible(
        overview=build_overview(outline, structure_plan, settings),
        characters=attach_relationships(profiles, matrix),
        relationships=matrix,
        world=build_world(research, settings),
        acts=build_acts(total),
        chapter_plans=[
            ChapterPlan(chapter_number=c.number, title=c.title, scenes=placeholder_scenes(c))
            for c in structure_plan.chapters
        ],
        plot_threads=build_plot_threads(structure_plan),
        timeline=build_timeline(structure_plan),
    )

    plan = BookPlan(
        back_cover=fallback_back_cover(prompt, settings, names[0]),
        creative_strategy=fallback_strategy(settings),
        outline=outline,
        structure_plan=structure_plan,
        story_bible=story_bible,
        research=research,
    )
    if metadata is not None:
        plan.metadata = metadata
    plan.metadata.mark_fallback(reason or "fallback plan requested")

    validate_book_plan(plan, settings)
    return plan
