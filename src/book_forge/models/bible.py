"""Story bible models."""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class CharacterRole(str, Enum):
    """Narrative role of a character."""

    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    MINOR = "minor"

    @classmethod
    def parse(cls, value: str | None) -> "CharacterRole":
        """Map free-form role text onto a role."""
        text = (value or "").strip().lower()
        for role in cls:
            if role.value in text:
                return role
        if any(word in text for word in ("hero", "main", "lead", "narrator")):
            return cls.PROTAGONIST
        if any(word in text for word in ("villain", "enemy", "rival", "nemesis")):
            return cls.ANTAGONIST
        if any(word in text for word in ("background", "cameo", "walk-on")):
            return cls.MINOR
        return cls.SUPPORTING


class StoryOverview(BaseModel):
    premise: str = Field(min_length=1)
    theme: str = Field(min_length=1)
    conflict: str = Field(min_length=1)
    resolution: str = Field(min_length=1)


class Relationship(BaseModel):
    """Directed relationship from one character to another."""

    source: str
    target: str
    description: str = Field(min_length=1)
    trivial: bool = False


def trivial_relationship(source: str, target: str) -> Relationship:
    return Relationship(
        source=source,
        target=target,
        description=f"knows {target} through story events",
        trivial=True,
    )


class RelationshipMatrix(BaseModel):
    """Adjacency structure over (source, target) character pairs."""

    edges: list[Relationship] = Field(default_factory=list)

    def get(self, source: str, target: str) -> Relationship | None:
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None

    def missing_pairs(self, names: list[str]) -> list[tuple[str, str]]:
        present = {(e.source, e.target) for e in self.edges}
        return [
            (a, b)
            for a in names
            for b in names
            if a != b and (a, b) not in present
        ]

    def is_complete(self, names: list[str]) -> bool:
        return not self.missing_pairs(names)

    def for_character(self, name: str) -> dict[str, str]:
        return {e.target: e.description for e in self.edges if e.source == name}

    def filled(self, names: list[str]) -> "RelationshipMatrix":
        """Copy restricted to the given cast, with every missing pair made trivial."""
        cast = set(names)
        kept = [e for e in self.edges if e.source in cast and e.target in cast and e.source != e.target]
        matrix = RelationshipMatrix(edges=kept)
        matrix.edges.extend(trivial_relationship(a, b) for a, b in matrix.missing_pairs(names))
        return matrix

    @classmethod
    def trivial(cls, names: list[str]) -> "RelationshipMatrix":
        return cls().filled(names)


class CharacterProfile(BaseModel):
    name: str = Field(min_length=1)
    role: CharacterRole = CharacterRole.SUPPORTING
    background: str = ""
    motivation: str = ""
    arc: str = ""
    flaws: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    relationships: dict[str, str] = Field(default_factory=dict)


class ScenePlan(BaseModel):
    number: int = Field(ge=1)
    purpose: str = Field(min_length=1)
    setting: str = ""
    characters: list[str] = Field(default_factory=list)
    conflict: str = ""
    outcome: str = ""
    word_target: int = Field(gt=0)
    mood: str = ""
    placeholder: bool = False


class ChapterPlan(BaseModel):
    chapter_number: int = Field(ge=1)
    title: str = ""
    scenes: list[ScenePlan] = Field(min_length=2, max_length=4)


class ActGroup(BaseModel):
    act: int = Field(ge=1, le=3)
    name: str
    chapters: list[int] = Field(default_factory=list)
    description: str = ""


class PlotThread(BaseModel):
    name: str
    start_chapter: int = Field(ge=1)
    end_chapter: int = Field(ge=1)
    key_moments: list[str] = Field(default_factory=list)


class TimelineEntry(BaseModel):
    chapter: int = Field(ge=1)
    event: str
    when: str = ""


class WorldBuilding(BaseModel):
    setting: str = ""
    rules: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    culture: list[str] = Field(default_factory=list)
    facts: list[str] = Field(default_factory=list)


class StoryBible(BaseModel):
    """Complete structured reference for keeping a long book consistent."""

    overview: StoryOverview
    characters: list[CharacterProfile] = Field(min_length=1)
    relationships: RelationshipMatrix = Field(default_factory=RelationshipMatrix)
    world: WorldBuilding = Field(default_factory=WorldBuilding)
    acts: list[ActGroup] = Field(min_length=3, max_length=3)
    chapter_plans: list[ChapterPlan] = Field(min_length=1)
    plot_threads: list[PlotThread] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def consistent(self) -> "StoryBible":
        names = [c.name for c in self.characters]
        if len(set(names)) != len(names):
            raise ValueError("character names must be unique")
        missing = self.relationships.missing_pairs(names)
        if missing:
            raise ValueError(f"relationship matrix missing {len(missing)} pairs, e.g. {missing[0]}")
        for character in self.characters:
            expected = set(names) - {character.name}
            if set(character.relationships) != expected:
                raise ValueError(f"{character.name} relationship map does not cover the cast")
        for index, plan in enumerate(self.chapter_plans):
            if plan.chapter_number != index + 1:
                raise ValueError(f"chapter plan at position {index + 1} is numbered {plan.chapter_number}")
        return self

    @property
    def character_names(self) -> list[str]:
        return [c.name for c in self.characters]

    def character(self, name: str) -> CharacterProfile | None:
        for character in self.characters:
            if character.name == name:
                return character
        return None

    def chapter_plan(self, number: int) -> ChapterPlan | None:
        if 1 <= number <= len(self.chapter_plans):
            return self.chapter_plans[number - 1]
        return None
