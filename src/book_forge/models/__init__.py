"""Data models for Book Forge."""

from .settings import GenerationSettings, normalize_genre
from .research import (
    ComprehensiveResearch,
    ResearchCategory,
    ResearchResult,
    ResearchTopic,
    TopicPriority,
    TopicScope,
)
from .plan import (
    BookStructurePlan,
    ChapterStructure,
    CreativeStrategy,
    Outline,
    OutlineChapter,
    OutlineCharacter,
    PacingBuckets,
    TurningPoint,
)
from .bible import (
    ActGroup,
    ChapterPlan,
    CharacterProfile,
    CharacterRole,
    PlotThread,
    Relationship,
    RelationshipMatrix,
    ScenePlan,
    StoryBible,
    StoryOverview,
    TimelineEntry,
    WorldBuilding,
)
from .profile import SemanticProfile
from .transition import ContinuitySummary, NarrativeVoice, TransitionLength, TransitionType
from .manuscript import Manuscript, SectionStatus, WrittenChapter, WrittenSection

__all__ = [
    "GenerationSettings",
    "normalize_genre",
    "ComprehensiveResearch",
    "ResearchCategory",
    "ResearchResult",
    "ResearchTopic",
    "TopicPriority",
    "TopicScope",
    "BookStructurePlan",
    "ChapterStructure",
    "CreativeStrategy",
    "Outline",
    "OutlineChapter",
    "OutlineCharacter",
    "PacingBuckets",
    "TurningPoint",
    "ActGroup",
    "ChapterPlan",
    "CharacterProfile",
    "CharacterRole",
    "PlotThread",
    "Relationship",
    "RelationshipMatrix",
    "ScenePlan",
    "StoryBible",
    "StoryOverview",
    "TimelineEntry",
    "WorldBuilding",
    "SemanticProfile",
    "ContinuitySummary",
    "NarrativeVoice",
    "TransitionLength",
    "TransitionType",
    "Manuscript",
    "SectionStatus",
    "WrittenChapter",
    "WrittenSection",
]
