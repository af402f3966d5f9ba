"""Planning module.

Structural planning, the planning orchestrator and its deterministic fallback.
"""

from .book_plan import BookPlan
from .fallback import derive_character_names, fallback_chapter_lengths, synthesize_fallback_plan
from .genre import GenreStructure, SectionPlan, get_genre_structure, plan_chapter_sections, select_transition
from .orchestrator import PlanningOrchestrator
from .structure import ChapterLayout, StructuralPlanner, chapter_count
from .validation import validate_book_plan, validate_outline, validate_story_bible, validate_structure_plan

__all__ = [
    "BookPlan",
    "derive_character_names",
    "fallback_chapter_lengths",
    "synthesize_fallback_plan",
    "GenreStructure",
    "SectionPlan",
    "get_genre_structure",
    "plan_chapter_sections",
    "select_transition",
    "PlanningOrchestrator",
    "ChapterLayout",
    "StructuralPlanner",
    "chapter_count",
    "validate_book_plan",
    "validate_outline",
    "validate_story_bible",
    "validate_structure_plan",
]
