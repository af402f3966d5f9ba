"""Schema checks shared by the primary and fallback planning paths.

Each validator raises SchemaValidationError listing every problem found.
"""

from ..errors import SchemaValidationError
from ..models import BookStructurePlan, CharacterRole, CreativeStrategy, GenerationSettings, Outline, StoryBible
from .book_plan import BookPlan

WORD_COUNT_TOLERANCE = 0.2

MIN_BACK_COVER_CHARS = 100
MIN_OUTLINE_SUMMARY_CHARS = 100
MIN_CHAPTER_SUMMARY_CHARS = 50
MIN_CHAPTER_WORDS = 500
MIN_CHARACTER_DESCRIPTION_CHARS = 20


def _raise_if(problems: list[str], what: str) -> None:
    if problems:
        raise SchemaValidationError(f"Invalid {what}: {'; '.join(problems[:5])}", problems)


def validate_back_cover(text: str) -> None:
    problems = []
    if len(text.strip()) < MIN_BACK_COVER_CHARS:
        problems.append(f"back cover shorter than {MIN_BACK_COVER_CHARS} characters")
    _raise_if(problems, "back cover")


def validate_creative_strategy(strategy: CreativeStrategy) -> None:
    problems = []
    if not any(theme.strip() for theme in strategy.themes):
        problems.append("no themes")
    _raise_if(problems, "creative strategy")


def validate_outline(outline: Outline) -> None:
    problems = []
    if not outline.title.strip():
        problems.append("missing title")
    if len(outline.summary) < MIN_OUTLINE_SUMMARY_CHARS:
        problems.append(f"summary shorter than {MIN_OUTLINE_SUMMARY_CHARS} characters")
    if not outline.themes:
        problems.append("no themes")
    if not outline.characters:
        problems.append("no characters")
    if not outline.chapters:
        problems.append("no chapters")

    for index, chapter in enumerate(outline.chapters):
        if chapter.number != index + 1:
            problems.append(f"chapter at position {index + 1} numbered {chapter.number}")
        if len(chapter.summary) < MIN_CHAPTER_SUMMARY_CHARS:
            problems.append(f"chapter {chapter.number} summary too short")
        if chapter.word_count_target < MIN_CHAPTER_WORDS:
            problems.append(f"chapter {chapter.number} targets fewer than {MIN_CHAPTER_WORDS} words")

    seen = set()
    for character in outline.characters:
        if character.name in seen:
            problems.append(f"character {character.name} listed more than once")
        seen.add(character.name)
        if len(character.description) < MIN_CHARACTER_DESCRIPTION_CHARS:
            problems.append(f"character {character.name} description too short")

    _raise_if(problems, "outline")


def validate_structure_plan(plan: BookStructurePlan, settings: GenerationSettings) -> None:
    """Numbering and total-length checks.

    Contiguous numbering is also enforced by the model itself; it is repeated
    here so plans built with model_construct are still caught.
    """
    problems = []
    for index, chapter in enumerate(plan.chapters):
        if chapter.number != index + 1:
            problems.append(f"chapter at position {index + 1} numbered {chapter.number}")
        if chapter.word_count_target <= 0:
            problems.append(f"chapter {chapter.number} has no word target")

    target = settings.word_count
    total = plan.total_words
    if abs(total - target) > target * WORD_COUNT_TOLERANCE:
        problems.append(f"chapters total {total} words, more than 20% away from {target}")

    if not 1 <= plan.climax_chapter <= len(plan.chapters):
        problems.append(f"climax chapter {plan.climax_chapter} out of range")

    _raise_if(problems, "structure plan")


def validate_story_bible(bible: StoryBible, plan: BookStructurePlan) -> None:
    problems = []
    if len(bible.chapter_plans) != len(plan.chapters):
        problems.append(f"{len(bible.chapter_plans)} chapter plans for {len(plan.chapters)} chapters")
    if not any(c.role == CharacterRole.PROTAGONIST for c in bible.characters):
        problems.append("no protagonist")

    names = bible.character_names
    missing = bible.relationships.missing_pairs(names)
    if missing:
        problems.append(f"relationship matrix missing {len(missing)} pairs")
    for character in bible.characters:
        if set(character.relationships) != set(names) - {character.name}:
            problems.append(f"{character.name} relationship map incomplete")

    chapter_numbers = set(range(1, len(plan.chapters) + 1))
    for act in bible.acts:
        stray = set(act.chapters) - chapter_numbers
        if stray:
            problems.append(f"act {act.act} references unknown chapters {sorted(stray)}")

    _raise_if(problems, "story bible")


def validate_book_plan(plan: BookPlan, settings: GenerationSettings) -> None:
    """Full validation applied to every plan before it is accepted."""
    validate_back_cover(plan.back_cover)
    validate_creative_strategy(plan.creative_strategy)
    validate_outline(plan.outline)
    validate_structure_plan(plan.structure_plan, settings)
    validate_story_bible(plan.story_bible, plan.structure_plan)
    if len(plan.outline.chapters) != len(plan.structure_plan.chapters):
        raise SchemaValidationError(
            "Invalid book plan: outline and structure plan disagree on chapter count",
            [f"{len(plan.outline.chapters)} outline chapters vs {len(plan.structure_plan.chapters)}"],
        )
