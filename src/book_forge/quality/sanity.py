"""Scene sanity checker.

Deterministic rule engine run on every generated section before anything
model-based looks at it. Catches:
- Vocabulary that breaks the genre (smartphones in fantasy, magic in science fiction)
- Content unsuitable for young audiences
- Narrative tense shifts with no time marker to justify them
- Point-of-view flip-flopping within one section
- Leftover placeholders and truncated output
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..models import GenerationSettings


class IssueSeverity(Enum):
    """How badly an issue hurts a section."""
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class IssueType(Enum):
    GENRE_VIOLATION = "genre_violation"
    NARRATIVE_INCONSISTENCY = "narrative_inconsistency"
    STRUCTURE_VIOLATION = "structure_violation"
    CONTENT_VIOLATION = "content_violation"


CONFIDENCE_PENALTY = {
    IssueSeverity.CRITICAL: 25,
    IssueSeverity.MAJOR: 15,
    IssueSeverity.MINOR: 5,
}
WARNING_PENALTY = 2
SHORT_TEXT_PENALTY = 10
SHORT_TEXT_CHARS = 200
MIN_SECTION_CHARS = 50
LONG_PARAGRAPH_WORDS = 150
REPEATED_START_LIMIT = 3


@dataclass
class SanityIssue:
    """One rule violation found in a section."""
    type: IssueType
    severity: IssueSeverity
    message: str
    suggestion: str = ""
    location: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "location": self.location,
        }


@dataclass
class ValidationResult:
    """Outcome of checking one section."""
    is_valid: bool
    issues: list[SanityIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    confidence: float = 100.0

    def by_severity(self, severity: IssueSeverity) -> list[SanityIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def critical(self) -> list[SanityIssue]:
        return self.by_severity(IssueSeverity.CRITICAL)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": self.warnings,
            "confidence": self.confidence,
        }

    def summary(self) -> str:
        """Human-readable report."""
        lines = [f"Validation {'PASSED' if self.is_valid else 'FAILED'} ({self.confidence:.0f}% confidence)"]
        if self.issues:
            lines.append(f"Errors ({len(self.issues)}):")
            lines.extend(f"  - {i.severity.value.upper()}: {i.message}" for i in self.issues)
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  - {w}" for w in self.warnings)
        return "\n".join(lines)


# Forbidden vocabulary per genre. Patterns compile case-insensitive except
# the acronym ones, so "ai" inside ordinary prose doesn't match.
GENRE_RULES: dict[str, list[str]] = {
    "fantasy": [
        r"\b(smartphones?|internet|wifi|bluetooth|computers?|laptops?|tablets?|GPS|satellites?|nuclear|lasers?|robots?|artificial intelligence)\b",
        r"\b(iPhone|Android|Google|Facebook|Twitter|Instagram|YouTube)\b",
        r"\b(cars?|trucks?|airplanes?|helicopters?|submarines?|tanks?|machine guns?|rifles?|pistols?|grenades?)\b",
    ],
    "science fiction": [
        r"\b(magic|spells?|enchant\w*|wizards?|witch(es)?|sorcerers?|dragons?|fair(y|ies)|elf|elves|dwarf|dwarves|orcs?|trolls?)\b",
        r"\b(medieval|knights?|prophecy)\b",
    ],
    "historical fiction": [
        r"\b(smartphones?|internet|wifi|bluetooth|computers?|laptops?|tablets?|GPS|satellites?|nuclear|lasers?|robots?)\b",
        r"\b(21st century|2000s|2010s|2020s)\b",
    ],
    "romance": [
        r"\b(zombies?|vampires?|werewol(f|ves)|aliens?|robots?|cyborgs?|time travel|parallel universe)\b",
    ],
    "mystery": [
        r"\b(magic|spells?|supernatural|ghosts?|demons?|vampires?|werewol(f|ves)|time travel)\b",
    ],
    "thriller": [
        r"\b(magic|spells?|supernatural|ghosts?|demons?|vampires?|werewol(f|ves)|time travel|parallel universe)\b",
    ],
    "horror": [
        r"\b(hilarious|love story|happy ending)\b",
    ],
    "children": [
        r"\b(gore|murder|sexual|damn|shit|fuck)\b",
        r"\b(guns?|machine guns?)\b",
    ],
}

CASE_SENSITIVE_RULES: dict[str, list[str]] = {
    "fantasy": [r"\b(AI|NASA|FBI|CIA)\b"],
    "historical fiction": [r"\b(AI)\b"],
}

AUDIENCE_PATTERNS = [
    re.compile(r"\b(damn|hell|shit|fuck|bloody hell)\b", re.IGNORECASE),
    re.compile(r"\b(sex|sexual|intimate|passionate|desire)\b", re.IGNORECASE),
    re.compile(r"\b(violence|blood|gore|murder|kill)\b", re.IGNORECASE),
]

PLACEHOLDER_PATTERNS = [
    re.compile(r"\[.*?\]"),
    re.compile(r"TODO:", re.IGNORECASE),
    re.compile(r"PLACEHOLDER", re.IGNORECASE),
    re.compile(r"\{.*?\}"),
]

PAST_WORDS = re.compile(r"\b(was|were|had|did|said|went|came|saw|felt|thought)\b", re.IGNORECASE)
PRESENT_WORDS = re.compile(r"\b(is|are|has|does|says|goes|comes|sees|feels|thinks)\b", re.IGNORECASE)
FUTURE_WORDS = re.compile(r"\b(will|shall|going to|would|could|might)\b", re.IGNORECASE)
TENSE_DOMINANCE = 0.6

TIME_MARKERS = [
    re.compile(
        r"\b(later|meanwhile|earlier|then|next|after|before|during|while|when|suddenly|immediately|eventually)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(minutes|hours|days|weeks|months|years) (later|earlier|ago|before|after)\b", re.IGNORECASE),
    re.compile(r"\b(the next|the following|that same|later that)\b", re.IGNORECASE),
]

FIRST_PERSON = re.compile(r"\b(I|me|my|mine|we|us|our|ours)\b", re.IGNORECASE)
SECOND_PERSON = re.compile(r"\b(you|your|yours)\b", re.IGNORECASE)
THIRD_PERSON = re.compile(r"\b(he|she|it|they|him|her|them|his|hers|its|their|theirs)\b", re.IGNORECASE)

QUOTED = re.compile(r"\"[^\"]*\"|“[^”]*”")
SENTENCE_SPLIT = re.compile(r"[.!?]+")


def split_sentences(text: str) -> list[str]:
    return [s for s in SENTENCE_SPLIT.split(text) if s.strip()]


def detect_tense(text: str) -> str:
    """Dominant narrative tense: past, present, future or mixed.

    Each sentence counts once per tense it shows evidence of; a tense wins
    when it holds more than 60% of the evidence.
    """
    counts = Counter()
    for sentence in split_sentences(text):
        if PAST_WORDS.search(sentence):
            counts["past"] += 1
        if PRESENT_WORDS.search(sentence):
            counts["present"] += 1
        if FUTURE_WORDS.search(sentence):
            counts["future"] += 1

    total = sum(counts.values())
    if total == 0:
        return "mixed"
    for tense in ("past", "present", "future"):
        if counts[tense] / total > TENSE_DOMINANCE:
            return tense
    return "mixed"


def has_time_marker(text: str) -> bool:
    return any(p.search(text) for p in TIME_MARKERS)


def sentence_pov(sentence: str) -> str:
    found = [
        pov for pov, pattern in (("first", FIRST_PERSON), ("second", SECOND_PERSON), ("third", THIRD_PERSON))
        if pattern.search(sentence)
    ]
    return found[0] if len(found) == 1 else "mixed"


def detect_pov_shifts(text: str) -> list[str]:
    """POV changes between narration sentences, ignoring quoted dialogue."""
    narration = QUOTED.sub(" ", text)
    shifts = []
    current = "mixed"
    for index, sentence in enumerate(split_sentences(narration), start=1):
        pov = sentence_pov(sentence)
        if current == "mixed":
            current = pov
        elif pov != current and pov != "mixed":
            shifts.append(f"Sentence {index}: {current} -> {pov}")
            current = pov
    return shifts


class SanityChecker:
    """Rule-based section validator.

    Usage:
        checker = SanityChecker(strict=True)
        result = checker.check(section_text, generation_settings, previous_text)
        if not result.is_valid:
            print(result.summary())
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self.rules: dict[str, list[re.Pattern]] = {}
        for genre, patterns in GENRE_RULES.items():
            self.rules[genre] = [re.compile(p, re.IGNORECASE) for p in patterns]
        for genre, patterns in CASE_SENSITIVE_RULES.items():
            self.rules.setdefault(genre, []).extend(re.compile(p) for p in patterns)

    def add_genre_rule(self, genre: str, pattern: str, case_sensitive: bool = False) -> None:
        flags = 0 if case_sensitive else re.IGNORECASE
        self.rules.setdefault(genre.lower(), []).append(re.compile(pattern, flags))

    def check(
        self,
        text: str,
        settings: GenerationSettings,
        previous_text: Optional[str] = None,
    ) -> ValidationResult:
        issues = []
        issues.extend(self.check_genre(text, settings))
        issues.extend(self.check_narrative(text, previous_text))
        issues.extend(self.check_structure(text))
        issues.extend(self.check_audience(text, settings))
        warnings = self.style_warnings(text)

        confidence = self.confidence(issues, warnings, len(text))
        has_critical = any(i.severity == IssueSeverity.CRITICAL for i in issues)
        has_major = any(i.severity == IssueSeverity.MAJOR for i in issues)
        return ValidationResult(
            is_valid=not has_critical and (not has_major or not self.strict),
            issues=issues,
            warnings=warnings,
            confidence=confidence,
        )

    def check_genre(self, text: str, settings: GenerationSettings) -> list[SanityIssue]:
        issues = []
        for pattern in self.rules.get(settings.normalized_genre, []):
            matches = [m.group(0) for m in pattern.finditer(text)]
            if matches:
                issues.append(SanityIssue(
                    type=IssueType.GENRE_VIOLATION,
                    severity=IssueSeverity.CRITICAL,
                    message=f"Genre '{settings.genre}' violation: found {', '.join(dict.fromkeys(matches[:3]))}",
                    suggestion=f"Remove or replace content that doesn't fit {settings.genre}",
                    location=f"{len(matches)} instance(s)",
                ))
        return issues

    def check_narrative(self, text: str, previous_text: Optional[str]) -> list[SanityIssue]:
        issues = []
        if previous_text:
            before = detect_tense(previous_text)
            after = detect_tense(text)
            if before != after and not has_time_marker(text):
                issues.append(SanityIssue(
                    type=IssueType.NARRATIVE_INCONSISTENCY,
                    severity=IssueSeverity.CRITICAL,
                    message=f"Narrative tense shifted from {before} to {after} without time marker",
                    suggestion="Add an explicit time marker or keep the tense consistent",
                ))

        shifts = detect_pov_shifts(text)
        if len(shifts) > 1:
            issues.append(SanityIssue(
                type=IssueType.NARRATIVE_INCONSISTENCY,
                severity=IssueSeverity.MAJOR,
                message="Multiple POV shifts detected within single section",
                suggestion="Split into separate sections or hold one point of view",
                location=f"{len(shifts)} shifts found",
            ))
        return issues

    def check_structure(self, text: str) -> list[SanityIssue]:
        issues = []
        if len(text.strip()) < MIN_SECTION_CHARS:
            issues.append(SanityIssue(
                type=IssueType.STRUCTURE_VIOLATION,
                severity=IssueSeverity.MAJOR,
                message="Section content too short",
                suggestion="Sections should contain meaningful content",
            ))
        if any(p.search(text) for p in PLACEHOLDER_PATTERNS):
            issues.append(SanityIssue(
                type=IssueType.STRUCTURE_VIOLATION,
                severity=IssueSeverity.CRITICAL,
                message="Section contains placeholder content",
                suggestion="Replace placeholder content with actual narrative",
            ))
        return issues

    def check_audience(self, text: str, settings: GenerationSettings) -> list[SanityIssue]:
        audience = settings.target_audience.lower()
        if "children" not in audience and "young" not in audience:
            return []
        return [
            SanityIssue(
                type=IssueType.CONTENT_VIOLATION,
                severity=IssueSeverity.MAJOR,
                message=f"Content may not be appropriate for {settings.target_audience}: {pattern.search(text).group(0)}",
                suggestion=f"Use age-appropriate alternatives for {settings.target_audience}",
            )
            for pattern in AUDIENCE_PATTERNS
            if pattern.search(text)
        ]

    def style_warnings(self, text: str) -> list[str]:
        warnings = []
        long_paragraphs = [p for p in text.split("\n\n") if len(p.split()) > LONG_PARAGRAPH_WORDS]
        if long_paragraphs:
            warnings.append(f"{len(long_paragraphs)} paragraph(s) are quite long")

        starts = Counter()
        for sentence in split_sentences(text):
            words = sentence.split()
            if words:
                starts[words[0].lower()] += 1
        repeated = [w for w, n in starts.items() if n > REPEATED_START_LIMIT and len(w) > 2]
        if repeated:
            warnings.append(f"Repetitive sentence starts detected: {', '.join(repeated)}")
        return warnings

    @staticmethod
    def confidence(issues: list[SanityIssue], warnings: list[str], length: int) -> float:
        score = 100
        score -= sum(CONFIDENCE_PENALTY[i.severity] for i in issues)
        score -= WARNING_PENALTY * len(warnings)
        if length < SHORT_TEXT_CHARS:
            score -= SHORT_TEXT_PENALTY
        return float(max(0, min(100, score)))
