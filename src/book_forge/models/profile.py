"""Semantic profile tracked by the drift guard."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class SemanticProfile(BaseModel):
    """Baseline of what the book sounds and feels like."""

    genre: str
    environment: list[str] = Field(default_factory=list)
    tonal_elements: list[str] = Field(default_factory=list)
    style_phrases: list[str] = Field(default_factory=list)
    character_voices: dict[str, str] = Field(default_factory=dict)
    world_building: list[str] = Field(default_factory=list)
    narrative_style: str = "third-person"
    vocabulary_level: str = "moderate"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> str:
        """Text rendering used in comparison prompts."""
        voices = "; ".join(f"{name}: {voice}" for name, voice in self.character_voices.items()) or "none established"
        return "\n".join([
            f"Genre: {self.genre}",
            f"Environment: {', '.join(self.environment) or 'unspecified'}",
            f"Tone: {', '.join(self.tonal_elements) or 'unspecified'}",
            f"Style: {', '.join(self.style_phrases) or 'unspecified'}",
            f"Character voices: {voices}",
            f"World-building: {', '.join(self.world_building) or 'unspecified'}",
            f"Narrative style: {self.narrative_style}",
            f"Vocabulary level: {self.vocabulary_level}",
        ])
