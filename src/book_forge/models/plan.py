"""Planning artifacts: creative strategy, outline and structure plan."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CreativeStrategy(BaseModel):
    """How the book will be told."""

    approach: str = Field(min_length=10)
    narrative_voice: str = Field(min_length=3)
    themes: list[str] = Field(min_length=1)
    pacing: str = Field(min_length=3)
    unique_elements: list[str] = Field(default_factory=list)
    reader_hooks: list[str] = Field(default_factory=list)


class OutlineCharacter(BaseModel):
    """A character as introduced by the outline."""

    name: str = Field(min_length=1)
    role: str = "supporting"
    description: str = ""


class OutlineChapter(BaseModel):
    """One chapter of the outline."""

    number: int = Field(ge=1)
    title: str = Field(min_length=1)
    summary: str = ""
    word_count_target: int = Field(default=0, ge=0)


class Outline(BaseModel):
    """Book outline: premise, cast and chapter summaries."""

    title: str = Field(min_length=1)
    summary: str = ""
    themes: list[str] = Field(default_factory=list)
    characters: list[OutlineCharacter] = Field(default_factory=list)
    chapters: list[OutlineChapter] = Field(default_factory=list)

    @property
    def character_names(self) -> list[str]:
        return [c.name for c in self.characters]


class ChapterStructure(BaseModel):
    """Detailed plan for one chapter."""

    number: int = Field(ge=1)
    title: str = Field(min_length=1)
    purpose: str = ""
    word_count_target: int = Field(gt=0)
    research_focus: list[str] = Field(default_factory=list)
    pacing_notes: str = ""
    key_scenes: list[str] = Field(default_factory=list)
    character_focus: list[str] = Field(default_factory=list)
    transition_to: Optional[str] = None


class TurningPoint(BaseModel):
    chapter: int = Field(ge=1)
    description: str


class PacingBuckets(BaseModel):
    """Chapter numbers grouped by pacing role."""

    slow: list[int] = Field(default_factory=list)
    fast: list[int] = Field(default_factory=list)
    buildup: list[int] = Field(default_factory=list)
    resolution: list[int] = Field(default_factory=list)


class BookStructurePlan(BaseModel):
    """Chapter-by-chapter structure for a whole book."""

    act_breaks: list[int] = Field(default_factory=list)
    climax_chapter: int = Field(ge=1)
    turning_points: list[TurningPoint] = Field(default_factory=list)
    themes_weaving: dict[str, list[int]] = Field(default_factory=dict)
    chapters: list[ChapterStructure] = Field(min_length=1)
    pacing: PacingBuckets = Field(default_factory=PacingBuckets)
    quality_checkpoints: list[int] = Field(default_factory=list)
    research_integration: dict[int, list[str]] = Field(default_factory=dict)

    @field_validator("chapters")
    @classmethod
    def contiguous_numbers(cls, chapters: list[ChapterStructure]) -> list[ChapterStructure]:
        for index, chapter in enumerate(chapters):
            if chapter.number != index + 1:
                raise ValueError(f"chapter at position {index + 1} is numbered {chapter.number}")
        return chapters

    @model_validator(mode="after")
    def references_in_range(self) -> "BookStructurePlan":
        total = len(self.chapters)
        if self.climax_chapter > total:
            raise ValueError(f"climax chapter {self.climax_chapter} beyond {total} chapters")
        for number in self.act_breaks + self.quality_checkpoints:
            if not 1 <= number <= total:
                raise ValueError(f"chapter reference {number} outside 1..{total}")
        return self

    @property
    def total_chapters(self) -> int:
        return len(self.chapters)

    @property
    def total_words(self) -> int:
        return sum(c.word_count_target for c in self.chapters)

    def chapter(self, number: int) -> ChapterStructure:
        return self.chapters[number - 1]
