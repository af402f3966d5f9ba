"""Tests for the drift guard."""

import asyncio
import json

import pytest

from book_forge.context import ProfileState
from book_forge.errors import GenerationError
from book_forge.models import GenerationSettings
from book_forge.quality import DriftGuard
from book_forge.quality.drift import DriftCategory, drift_issues, fallback_analysis, parse_analysis, vocabulary_level
from book_forge.quality.sanity import IssueSeverity
from book_forge.retry import RetryPolicy

from conftest import PROSE, ScriptedGateway, drift_response, no_sleep


@pytest.fixture
def guard_for(settings):
    def make(gateway):
        return DriftGuard(gateway, settings, RetryPolicy(attempts=2, backoff_base=0, timeout=5, sleep=no_sleep))
    return make


@pytest.fixture
def profile():
    return DriftGuard.baseline_profile(GenerationSettings(genre="mystery", tone="serious"))


class TestDriftAnalysis:
    """Test scoring against the semantic profile."""

    @pytest.mark.parametrize("overall,valid,regenerate", [
        (10, True, False),
        (35, True, False),
        (40, False, False),
        (50, False, False),
        (51, False, True),
    ])
    def test_thresholds(self, guard_for, profile, overall, valid, regenerate):
        guard = guard_for(ScriptedGateway([("Compare the NEW CONTENT", drift_response(overall))]))
        result = asyncio.run(guard.analyze(profile, PROSE))
        assert result.drift == overall
        assert result.is_valid is valid
        assert result.should_regenerate is regenerate

    def test_gateway_failure_uses_neutral_result(self, guard_for, profile):
        guard = guard_for(ScriptedGateway([("Compare the NEW CONTENT", GenerationError("down"))]))
        result = asyncio.run(guard.analyze(profile, PROSE))
        assert result.analysis.fallback
        assert result.drift == 25
        assert result.analysis.confidence == 50
        assert result.is_valid

    def test_unparseable_response_uses_neutral_result(self, guard_for, profile):
        guard = guard_for(ScriptedGateway([("Compare the NEW CONTENT", "It reads well to me.")]))
        result = asyncio.run(guard.analyze(profile, PROSE))
        assert result.analysis.fallback

    def test_accumulated_content_in_prompt(self, guard_for, profile):
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(5))])
        asyncio.run(guard_for(gateway).analyze(profile, PROSE, accumulated="Earlier the tide turned."))
        assert "Earlier the tide turned." in gateway.prompts[0]

    def test_regenerate_recommendation(self, guard_for, profile):
        guard = guard_for(ScriptedGateway([("Compare the NEW CONTENT", drift_response(80))]))
        result = asyncio.run(guard.analyze(profile, PROSE))
        assert "Regenerate the section to restore consistency" in result.recommendations
        assert any(issue.severity == IssueSeverity.CRITICAL for issue in result.issues)


class TestParsing:
    def test_parse_analysis(self):
        payload = json.loads(drift_response(42))
        payload["flagged"] = ["a laser pistol"]
        analysis = parse_analysis(payload)
        assert analysis.overall == 42
        assert analysis.categories[DriftCategory.TONE] == 42
        assert analysis.flagged == ["a laser pistol"]

    def test_missing_overall(self):
        with pytest.raises(ValueError):
            parse_analysis({"genre": 10})

    def test_scores_clamped(self):
        assert parse_analysis({"overall": 140}).overall == 100

    def test_issue_levels(self):
        analysis = fallback_analysis()
        analysis.categories[DriftCategory.GENRE] = 65
        analysis.categories[DriftCategory.STYLE] = 40
        analysis.categories[DriftCategory.TONE] = 10
        severities = {issue.category: issue.severity for issue in drift_issues(analysis)}
        assert severities[DriftCategory.GENRE] == IssueSeverity.CRITICAL
        assert severities[DriftCategory.STYLE] == IssueSeverity.MAJOR
        assert DriftCategory.TONE not in severities


class TestProfile:
    """Test profile creation and updates."""

    def test_baseline_profile(self, profile):
        assert profile.genre == "mystery"
        assert "investigative" in profile.environment
        assert profile.style_phrases == ["thoughtful", "contemplative", "earnest"]
        assert profile.vocabulary_level == "advanced"

    def test_vocabulary_levels(self):
        assert vocabulary_level("children") == "simple"
        assert vocabulary_level("young adult") == "moderate"

    def test_short_content_not_enhanced(self, guard_for):
        gateway = ScriptedGateway()
        asyncio.run(guard_for(gateway).initialize_profile(GenerationSettings(), existing_content="Too short."))
        assert gateway.prompts == []

    def test_enhance_merges(self, guard_for, profile):
        gateway = ScriptedGateway([("Extract the semantic elements", json.dumps({
            "environment": ["fog-bound harbour"],
            "character_voices": {"Mara": "clipped and wary"},
        }))])
        enhanced = asyncio.run(guard_for(gateway).enhance(profile, PROSE))
        assert "fog-bound harbour" in enhanced.environment
        assert "investigative" in enhanced.environment
        assert enhanced.character_voices["Mara"] == "clipped and wary"

    def test_update_keeps_history(self, guard_for, profile):
        gateway = ScriptedGateway([("Extract the semantic elements", json.dumps({"world_building": ["tide tables"]}))])
        guard = guard_for(gateway)
        state = ProfileState.with_history(2)
        state.replace(profile)
        for chapter in (1, 2, 3):
            asyncio.run(guard.update_profile(state, PROSE, chapter))
        assert "tide tables" in state.current.world_building
        assert len(state.history) == 2

    def test_update_failure_keeps_profile(self, guard_for, profile):
        gateway = ScriptedGateway([("Extract the semantic elements", GenerationError("down"))])
        state = ProfileState()
        state.replace(profile)
        asyncio.run(guard_for(gateway).update_profile(state, PROSE, 1))
        assert state.current.environment == profile.environment
