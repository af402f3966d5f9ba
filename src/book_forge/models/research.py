"""Research models."""

from enum import Enum

from pydantic import BaseModel, Field


class ResearchCategory(str, Enum):
    """The five research categories."""

    DOMAIN = "domain"
    CHARACTER = "character"
    SETTING = "setting"
    TECHNICAL = "technical"
    CULTURAL = "cultural"


class TopicPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TopicScope(str, Enum):
    BROAD = "broad"
    SPECIFIC = "specific"


class ResearchTopic(BaseModel):
    """A topic worth researching before planning."""

    topic: str
    category: ResearchCategory
    priority: TopicPriority = TopicPriority.MEDIUM
    scope: TopicScope = TopicScope.BROAD
    context: str = ""


class ResearchResult(BaseModel):
    """Structured notes for one topic."""

    topic: str
    facts: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    key_details: dict[str, str] = Field(default_factory=dict)
    contradictions: list[str] = Field(default_factory=list)
    uncertainties: list[str] = Field(default_factory=list)
    failed: bool = False


class ComprehensiveResearch(BaseModel):
    """All research gathered for a book, by category."""

    domain: list[ResearchResult] = Field(default_factory=list)
    character: list[ResearchResult] = Field(default_factory=list)
    setting: list[ResearchResult] = Field(default_factory=list)
    technical: list[ResearchResult] = Field(default_factory=list)
    cultural: list[ResearchResult] = Field(default_factory=list)

    def category(self, category: ResearchCategory) -> list[ResearchResult]:
        return getattr(self, category.value)

    def all_results(self) -> list[ResearchResult]:
        results = []
        for category in ResearchCategory:
            results.extend(self.category(category))
        return results

    @property
    def is_empty(self) -> bool:
        return not self.all_results()

    def summary(self, max_facts: int = 3) -> str:
        """Compact text rendering for prompts."""
        lines = []
        for category in ResearchCategory:
            for result in self.category(category):
                if result.failed or not result.facts:
                    continue
                facts = "; ".join(result.facts[:max_facts])
                lines.append(f"[{category.value}] {result.topic}: {facts}")
        return "\n".join(lines) if lines else "No research available."
