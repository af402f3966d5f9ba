"""Tests for the redundancy reducer."""

import asyncio
import json

import pytest

from book_forge.config import Settings
from book_forge.models import GenerationSettings
from book_forge.quality import RedundancyCalibration, RedundancyReducer
from book_forge.quality.redundancy import PhraseSeverity, local_suggestions, should_skip, tokenize
from book_forge.retry import RetryPolicy

from conftest import ScriptedGateway, no_sleep

MINOR_PHRASES = ["silver key", "iron gate", "cold wind", "old bell", "red door", "grey tower"]


def text_with(phrases: list[str], repeats: int, filler: int) -> str:
    """Unique filler words with each phrase inserted `repeats` times."""
    words = []
    n = 0
    for _ in range(repeats):
        for phrase in phrases:
            for _ in range(filler):
                words.append(f"w{n}")
                n += 1
            words.append(phrase)
    return " ".join(words)


@pytest.fixture
def redundancy_settings():
    return Settings(backoff_base=0, request_timeout=5)


@pytest.fixture
def reducer(redundancy_settings):
    return RedundancyReducer(None, redundancy_settings)


def reducer_with(gateway, settings):
    return RedundancyReducer(gateway, settings, policy=RetryPolicy(attempts=1, backoff_base=0, timeout=5, sleep=no_sleep))


class TestAnalysis:
    """Test repeated-phrase detection and scoring."""

    def test_unique_text_scores_zero(self, reducer):
        analysis = reducer.analyze(text_with(["plain ending"], 1, 300))
        assert analysis.phrases == []
        assert analysis.score == 0
        assert analysis.quality_score == 100

    def test_short_text_scores_zero(self, reducer):
        assert reducer.analyze("the lamp " * 20).score == 0

    def test_lenient_band(self, reducer):
        analysis = reducer.analyze(text_with(["crimson lantern"], 3, 100))
        assert [p.phrase for p in analysis.phrases] == ["crimson lantern"]
        assert analysis.score == 3

    def test_more_repetition_scores_higher(self, reducer):
        sparse = reducer.analyze(text_with(["the crimson lantern flickered"], 10, 200))
        dense = reducer.analyze(text_with(["the crimson lantern flickered"], 20, 10))
        assert sparse.score == 10
        assert dense.score == 30
        assert dense.score > sparse.score

    def test_ten_occurrences_score_above_one(self, reducer):
        filler = [f"w{i}" for i in range(2000)]

        def with_phrase(count):
            words = []
            for block in range(10):
                words.extend(filler[block * 200:(block + 1) * 200])
                if block < count:
                    words.append("crimson lantern")
            return " ".join(words)

        once, repeated = with_phrase(1), with_phrase(10)
        assert len(once.split()) >= 2000
        assert reducer.analyze(once).score == 0
        assert reducer.analyze(repeated).score > reducer.analyze(once).score

    def test_severity(self, reducer):
        analysis = reducer.analyze(text_with(["the crimson lantern flickered"], 20, 10))
        assert all(p.severity == PhraseSeverity.CRITICAL for p in analysis.phrases)
        assert len(analysis.critical) == 6
        assert reducer.severity("heart pounded", 3) == PhraseSeverity.CRITICAL
        assert reducer.severity("iron gate", 4) == PhraseSeverity.MAJOR
        assert reducer.severity("iron gate", 3) == PhraseSeverity.MINOR

    def test_quick_check(self, reducer):
        check = reducer.quick_check(text_with(["the crimson lantern flickered"], 20, 10))
        assert check.needs_reduction
        assert check.critical_issues == 6
        assert not reducer.quick_check(text_with(["plain ending"], 1, 300)).needs_reduction

    def test_window_takes_trailing_words(self):
        reducer = RedundancyReducer(None, Settings(redundancy_window=10))
        previous = " ".join(f"p{i}" for i in range(20))
        assert reducer.window("one two three four", previous).split() == [
            "p14", "p15", "p16", "p17", "p18", "p19", "one", "two", "three", "four",
        ]
        assert reducer.window("text only") == "text only"

    def test_calibration_is_configurable(self, redundancy_settings):
        strict = RedundancyReducer(None, redundancy_settings, RedundancyCalibration(phrase_count_caps=(), runaway_score=100.0))
        assert strict.analyze(text_with(["the crimson lantern flickered"], 20, 10)).score == 100


class TestHelpers:
    def test_tokenize(self):
        assert tokenize("The lamp, lit; flickered!") == ["the", "lamp", "lit", "flickered"]

    def test_should_skip(self):
        assert should_skip("and the", 2)
        assert should_skip("he said softly", 3)
        assert not should_skip("crimson lantern", 2)

    def test_local_suggestions(self):
        assert local_suggestions("heart pounded") == ["pulse raced", "heartbeat quickened", "chest tightened"]
        assert local_suggestions("crimson lantern") == []


class TestReduce:
    """Test rewriting of repetitive text."""

    def test_below_threshold_unchanged(self, reducer):
        text = text_with(["plain ending"], 1, 300)
        result = asyncio.run(reducer.reduce(text, reducer.analyze(text)))
        assert result.text == text
        assert result.changes == []

    def test_critical_phrases_replaced(self, redundancy_settings):
        gateway = ScriptedGateway([("Replace the overused phrase", json.dumps(["a scarlet lamp", "the red light"]))])
        reducer = reducer_with(gateway, redundancy_settings)
        text = text_with(["the crimson lantern flickered"], 20, 10)

        result = asyncio.run(reducer.reduce(text, reducer.analyze(text), GenerationSettings(genre="mystery")))

        assert "a scarlet lamp" in result.text
        assert "the crimson lantern flickered" in result.text
        assert result.changes and result.changes[0].kind == "phrase_replacement"
        assert gateway.calls("Improve this text") == 0

    def test_many_minor_phrases_rewritten(self, redundancy_settings):
        text = text_with(MINOR_PHRASES, 4, 8)
        rewritten = " ".join(f"fresh{i}" for i in range(len(text.split())))
        gateway = ScriptedGateway([("Improve this text", rewritten)])
        reducer = reducer_with(gateway, redundancy_settings)

        analysis = reducer.analyze(text)
        assert analysis.critical == []
        assert len(analysis.minor) == 6

        result = asyncio.run(reducer.reduce(text, analysis))
        assert result.text == rewritten
        assert result.changes[-1].kind == "sentence_restructure"
        assert result.after.score == 0
        assert result.redundancy_reduced == analysis.score

    def test_short_rewrite_discarded(self, redundancy_settings):
        text = text_with(MINOR_PHRASES, 4, 8)
        reducer = reducer_with(ScriptedGateway([("Improve this text", "Too short.")]), redundancy_settings)
        result = asyncio.run(reducer.reduce(text, reducer.analyze(text)))
        assert result.text == text

    def test_summarize(self, reducer):
        analysis = reducer.analyze(text_with(["the crimson lantern flickered"], 20, 10))
        summary = RedundancyReducer.summarize(analysis)
        assert "Redundancy score: 30%" in summary
        assert '"the crimson lantern flickered" (20 times)' in summary
