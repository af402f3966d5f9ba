"""Tests for the deterministic fallback plan."""

import pytest

from book_forge.models import CharacterRole, ComprehensiveResearch, GenerationSettings, ResearchResult
from book_forge.planning import (
    derive_character_names,
    fallback_chapter_lengths,
    synthesize_fallback_plan,
    validate_book_plan,
)


class TestFallbackLengths:
    """Test chapter sizing by simple division."""

    def test_remainder_on_last_chapter(self):
        lengths = fallback_chapter_lengths(20001)
        assert len(lengths) == 9
        assert sum(lengths) == 20001
        assert lengths[-1] == lengths[0] + 20001 % 9

    def test_minimum_three_chapters(self):
        assert len(fallback_chapter_lengths(1500)) == 3

    def test_maximum_fifteen_chapters(self):
        assert len(fallback_chapter_lengths(500000)) == 15


class TestDeriveNames:
    """Test name extraction from prompts."""

    def test_most_frequent_first(self):
        prompt = "When Elena returns to Veyra, Elena finds the Archive burned. Marcus knows why."
        names = derive_character_names(prompt)
        assert names[0] == "Elena"
        assert "Marcus" in names
        assert "When" not in names

    def test_no_names(self):
        assert derive_character_names("a story about the sea") == []


class TestSynthesizeFallbackPlan:
    """Test that fallback plans always validate."""

    @pytest.mark.parametrize("genre,words,tone", [
        ("fantasy", 1500, "serious"),
        ("mystery", 20000, "fast"),
        ("science fiction", 95000, "contemplative"),
        ("unknown genre", 500000, "light"),
    ])
    def test_plan_validates(self, genre, words, tone):
        settings = GenerationSettings(genre=genre, tone=tone, word_count=words)
        plan = synthesize_fallback_plan("A keeper of a lighthouse hears a voice.", settings, reason="test")
        validate_book_plan(plan, settings)
        assert plan.is_fallback
        assert plan.fallback_reason == "test"
        assert plan.structure_plan.total_words == words

    def test_uses_given_names(self):
        settings = GenerationSettings(character_names=["Ada", "Bram", "Cole"])
        plan = synthesize_fallback_plan("Anything.", settings)
        bible = plan.story_bible
        assert bible.character_names == ["Ada", "Bram", "Cole"]
        assert bible.character("Ada").role == CharacterRole.PROTAGONIST
        assert bible.relationships.is_complete(bible.character_names)
        assert set(bible.character("Bram").relationships) == {"Ada", "Cole"}

    def test_placeholder_protagonist(self):
        plan = synthesize_fallback_plan("", GenerationSettings())
        assert plan.story_bible.character_names == ["Protagonist"]

    def test_every_chapter_has_scenes(self):
        settings = GenerationSettings(word_count=30000)
        plan = synthesize_fallback_plan("A heist in a floating city.", settings)
        for chapter in plan.structure_plan.chapters:
            chapter_plan = plan.story_bible.chapter_plan(chapter.number)
            assert chapter_plan is not None
            assert sum(s.word_target for s in chapter_plan.scenes) == chapter.word_count_target

    def test_research_is_kept(self):
        research = ComprehensiveResearch(setting=[ResearchResult(topic="Tides", facts=["Spring tides follow the full moon."])])
        plan = synthesize_fallback_plan("A harbour mystery.", GenerationSettings(genre="mystery"), research)
        assert plan.research.setting[0].topic == "Tides"
