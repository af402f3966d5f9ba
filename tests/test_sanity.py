"""Tests for the rule-based sanity checker."""

import pytest

from book_forge.models import GenerationSettings
from book_forge.quality import IssueSeverity, SanityChecker
from book_forge.quality.sanity import IssueType, detect_pov_shifts, detect_tense, has_time_marker

from conftest import PROSE

PRESENT = (
    "Mara walks along the wall. She is cold and the water is grey. "
    "The harbour master says nothing. She sees the boat and feels the rope."
)


class TestSanityChecker:
    """Test section validation."""

    @pytest.fixture
    def checker(self):
        return SanityChecker(strict=True)

    @pytest.fixture
    def mystery(self):
        return GenerationSettings(genre="mystery")

    def test_clean_prose_passes(self, checker, mystery):
        result = checker.check(PROSE, mystery)
        assert result.is_valid
        assert result.issues == []
        assert result.confidence == 100

    def test_anachronism_in_fantasy(self, checker):
        text = PROSE + " Her smartphone had no signal."
        result = checker.check(text, GenerationSettings(genre="fantasy"))
        assert not result.is_valid
        assert result.critical[0].type == IssueType.GENRE_VIOLATION
        assert "smartphone" in result.critical[0].message
        assert result.confidence == 75

    def test_same_word_fine_in_science_fiction(self, checker):
        text = PROSE + " Her smartphone had no signal."
        assert checker.check(text, GenerationSettings(genre="sci-fi")).is_valid

    def test_acronyms_are_case_sensitive(self, checker):
        fantasy = GenerationSettings(genre="fantasy")
        assert not checker.check(PROSE + " The AI in the tower was silent.", fantasy).is_valid
        assert checker.check(PROSE + " The rain was fair and plain.", fantasy).is_valid

    def test_tense_shift_without_marker(self, checker, mystery):
        result = checker.check(PRESENT, mystery, previous_text=PROSE)
        assert not result.is_valid
        assert any(
            i.type == IssueType.NARRATIVE_INCONSISTENCY and i.severity == IssueSeverity.CRITICAL
            for i in result.issues
        )

    def test_tense_shift_with_time_marker(self, checker, mystery):
        result = checker.check("Years later, " + PRESENT, mystery, previous_text=PROSE)
        assert result.is_valid

    def test_pov_shifts_major(self, mystery):
        text = "I walked to the door. She was waiting outside. I said nothing. She smiled at the ground. I left."
        assert not SanityChecker(strict=True).check(text, mystery).is_valid
        lenient = SanityChecker(strict=False).check(text, mystery)
        assert lenient.is_valid
        assert lenient.by_severity(IssueSeverity.MAJOR)

    def test_dialogue_does_not_count_as_pov_shift(self):
        text = 'She said, "I will come back." She left the room. She closed the door. She was gone.'
        assert detect_pov_shifts(text) == []

    @pytest.mark.parametrize("marker", ["[insert scene here]", "{character_name}", "TODO: finish", "PLACEHOLDER"])
    def test_placeholders(self, checker, mystery, marker):
        result = checker.check(PROSE + " " + marker, mystery)
        assert not result.is_valid
        assert any(i.type == IssueType.STRUCTURE_VIOLATION for i in result.critical)

    def test_too_short(self, checker, mystery):
        result = checker.check("She ran.", mystery)
        assert not result.is_valid
        assert result.issues[0].message == "Section content too short"

    def test_children_audience(self, checker):
        settings = GenerationSettings(genre="fantasy", target_audience="children")
        result = checker.check(PROSE + " There was blood on the stones.", settings)
        assert not result.is_valid
        assert result.issues[0].type == IssueType.CONTENT_VIOLATION

    def test_custom_genre_rule(self, checker, mystery):
        checker.add_genre_rule("mystery", r"\bteleport\w*")
        assert not checker.check(PROSE + " Then she teleported home.", mystery).is_valid

    def test_summary(self, checker):
        result = checker.check(PROSE + " The wizard cast a spell.", GenerationSettings(genre="science fiction"))
        assert "FAILED" in result.summary()
        assert result.to_dict()["is_valid"] is False


class TestTense:
    def test_detect_tense(self):
        assert detect_tense(PROSE) == "past"
        assert detect_tense(PRESENT) == "present"
        assert detect_tense("") == "mixed"

    def test_time_markers(self):
        assert has_time_marker("Three days later the boat returned.")
        assert not has_time_marker("The boat returned.")
