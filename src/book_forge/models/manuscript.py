"""Written output: sections, chapters and the finished manuscript."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SectionStatus(Enum):
    """Gate outcome a section was persisted with."""
    ACCEPTED = "accepted"
    FLAGGED = "flagged"  # Needs human review


@dataclass
class WrittenSection:
    """A generated section of a chapter."""
    number: int
    text: str
    status: SectionStatus = SectionStatus.ACCEPTED
    section_type: str = ""
    transition: str = ""
    transition_type: str = ""
    attempts: int = 1
    drift: Optional[float] = None
    redundancy: Optional[float] = None
    sanity_confidence: Optional[float] = None
    review_notes: list[str] = field(default_factory=list)
    word_count: int = 0

    def __post_init__(self):
        if not self.word_count:
            self.word_count = len(self.text.split())

    @property
    def full_text(self) -> str:
        """Section text with its leading transition."""
        if not self.transition.strip():
            return self.text
        # Template openers like "Later, " run straight into the section
        if self.transition.endswith(" "):
            return self.transition + self.text[:1].lower() + self.text[1:]
        return self.transition.strip() + "\n\n" + self.text

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "text": self.text,
            "status": self.status.value,
            "section_type": self.section_type,
            "transition": self.transition,
            "transition_type": self.transition_type,
            "attempts": self.attempts,
            "drift": self.drift,
            "redundancy": self.redundancy,
            "sanity_confidence": self.sanity_confidence,
            "review_notes": self.review_notes,
            "word_count": self.word_count,
        }


@dataclass
class WrittenChapter:
    """A chapter assembled from its sections."""
    number: int
    title: str
    sections: list[WrittenSection] = field(default_factory=list)
    target_words: int = 0

    @property
    def text(self) -> str:
        return "\n\n".join(s.full_text for s in self.sections)

    @property
    def word_count(self) -> int:
        return sum(s.word_count for s in self.sections)

    @property
    def flagged(self) -> bool:
        return any(s.status == SectionStatus.FLAGGED for s in self.sections)

    def to_markdown(self) -> str:
        return f"# Chapter {self.number}: {self.title}\n\n{self.text}\n"

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "target_words": self.target_words,
            "word_count": self.word_count,
            "flagged": self.flagged,
            "sections": [s.to_dict() for s in self.sections],
        }


@dataclass
class Manuscript:
    """A finished run."""
    title: str
    chapters: list[WrittenChapter] = field(default_factory=list)
    fallback_plan: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def word_count(self) -> int:
        return sum(c.word_count for c in self.chapters)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "word_count": self.word_count,
            "fallback_plan": self.fallback_plan,
            "created_at": self.created_at.isoformat(),
            "chapters": [c.to_dict() for c in self.chapters],
        }
