"""The planning result handed to the writing stage."""

from dataclasses import dataclass, field
from typing import Optional

from ..models import (
    BookStructurePlan,
    ComprehensiveResearch,
    CreativeStrategy,
    Outline,
    StoryBible,
)
from ..retry import RetryMetadata


@dataclass
class BookPlan:
    """Every planning artifact for one book, primary or fallback."""
    back_cover: str
    creative_strategy: CreativeStrategy
    outline: Outline
    structure_plan: BookStructurePlan
    story_bible: StoryBible
    research: ComprehensiveResearch = field(default_factory=ComprehensiveResearch)
    metadata: RetryMetadata = field(default_factory=RetryMetadata)

    @property
    def title(self) -> str:
        return self.outline.title

    @property
    def is_fallback(self) -> bool:
        return self.metadata.fallback_used

    @property
    def fallback_reason(self) -> Optional[str]:
        return self.metadata.fallback_reason

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "back_cover": self.back_cover,
            "creative_strategy": self.creative_strategy.model_dump(mode="json"),
            "outline": self.outline.model_dump(mode="json"),
            "structure_plan": self.structure_plan.model_dump(mode="json"),
            "story_bible": self.story_bible.model_dump(mode="json"),
            "research": self.research.model_dump(mode="json"),
            "metadata": self.metadata.to_dict(),
        }
