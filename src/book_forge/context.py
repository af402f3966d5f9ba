"""Mutable per-run state.

Everything else in a run is created once and treated as read-only. The two
things that change are kept here and only touched after a chapter has been
accepted:
- the drift guard's semantic profile (with a bounded history)
- the continuity tracker (who appeared where, what each chapter covered)
"""

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .models import GenerationSettings, SemanticProfile, StoryBible

SUMMARY_SENTENCES = 3


@dataclass
class ProfileState:
    """Current semantic profile plus the profiles it replaced."""
    current: Optional[SemanticProfile] = None
    history: deque = field(default_factory=lambda: deque(maxlen=5))

    @classmethod
    def with_history(cls, size: int) -> "ProfileState":
        return cls(history=deque(maxlen=size))

    def replace(self, profile: SemanticProfile) -> None:
        if self.current is not None:
            self.history.append(self.current)
        self.current = profile


class ContinuityTracker:
    """Character appearances and chapter summaries of accepted chapters."""

    def __init__(self, character_names: Optional[list[str]] = None):
        self.character_names = list(character_names or [])
        self.appearances: dict[str, list[int]] = {}
        self.summaries: dict[int, str] = {}

    def record_chapter(self, chapter: int, text: str, summary: Optional[str] = None) -> None:
        for name in self.character_names:
            if re.search(rf"\b{re.escape(name)}\b", text):
                chapters = self.appearances.setdefault(name, [])
                if chapter not in chapters:
                    chapters.append(chapter)
        self.summaries[chapter] = summary or summarize(text)

    def last_seen(self, name: str) -> Optional[int]:
        chapters = self.appearances.get(name)
        return chapters[-1] if chapters else None

    def context_for(self, chapter: int, limit: int = 3) -> str:
        """Prompt block describing what happened before `chapter`."""
        earlier = [n for n in sorted(self.summaries) if n < chapter][-limit:]
        lines = [f"Chapter {n}: {self.summaries[n]}" for n in earlier]
        seen = [
            f"{name} (last seen in chapter {chapters[-1]})"
            for name, chapters in self.appearances.items()
            if chapters and chapters[-1] < chapter
        ]
        if seen:
            lines.append("Characters so far: " + ", ".join(seen))
        return "\n".join(lines) or "This is the opening of the book."


def summarize(text: str, sentences: int = SUMMARY_SENTENCES) -> str:
    parts = re.split(r"(?<=[.!?])\s+", " ".join(text.split()))
    return " ".join(parts[:sentences])


@dataclass
class RunContext:
    """Shared state for one pipeline run."""
    settings: GenerationSettings
    story_bible: Optional[StoryBible] = None
    profile: ProfileState = field(default_factory=ProfileState)
    continuity: ContinuityTracker = field(default_factory=ContinuityTracker)

    @classmethod
    def create(cls, settings: GenerationSettings, story_bible: Optional[StoryBible] = None, history_size: int = 5) -> "RunContext":
        names = story_bible.character_names if story_bible is not None else list(settings.character_names)
        return cls(
            settings=settings,
            story_bible=story_bible,
            profile=ProfileState.with_history(history_size),
            continuity=ContinuityTracker(names),
        )
