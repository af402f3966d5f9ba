"""Transition and narrative voice models."""

from enum import Enum

from pydantic import BaseModel, Field


class TransitionType(str, Enum):
    """Ways of moving from one section to the next."""

    SCENE_BREAK = "scene-break"
    BRIDGE_PARAGRAPH = "bridge-paragraph"
    TIME_JUMP = "time-jump"
    PERSPECTIVE_SHIFT = "perspective-shift"
    EMOTIONAL_BRIDGE = "emotional-bridge"


class TransitionLength(str, Enum):
    BRIEF = "brief"
    MEDIUM = "medium"
    EXTENDED = "extended"

    @property
    def target_words(self) -> int:
        return {"brief": 30, "medium": 60, "extended": 100}[self.value]


class NarrativeVoice(BaseModel):
    """Perspective, tense and texture of the established prose."""

    perspective: str = "third-person-limited"
    tense: str = "past"
    tone: str = "neutral"
    voice_characteristics: list[str] = Field(default_factory=list)
    style_tags: list[str] = Field(default_factory=list)
    sentence_fingerprint: str = "varied"
    consistency_score: float = Field(default=85.0, ge=0, le=100)


class ContinuitySummary(BaseModel):
    """What a transition carries across the section boundary."""

    emotional_flow: str = ""
    character_states: dict[str, str] = Field(default_factory=dict)
    setting_continuity: str = ""
    temporal_flow: str = ""
