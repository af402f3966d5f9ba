"""Tests for the planning orchestrator."""

import asyncio
import json

import pytest

from book_forge.errors import GenerationError, SchemaValidationError
from book_forge.models import Outline
from book_forge.planning import PlanningOrchestrator, validate_book_plan
from book_forge.planning.validation import validate_outline
from book_forge.progress import ProgressReporter

from conftest import no_sleep, outline_response

PREMISE = "A ferry clerk in a harbour town finds a letter addressed to a man who drowned ten years ago."


class TestPrimaryPath:
    """Test planning when every step succeeds."""

    @pytest.fixture
    def plan(self, gateway, settings, gen_settings):
        orchestrator = PlanningOrchestrator(gateway, settings, sleep=no_sleep)
        return asyncio.run(orchestrator.plan(PREMISE, gen_settings))

    def test_plan_is_primary(self, plan):
        assert not plan.is_fallback
        assert plan.title == "The Harbour Letter"

    def test_plan_validates(self, plan, gen_settings):
        validate_book_plan(plan, gen_settings)

    def test_chapter_count_follows_planner(self, plan):
        # mystery, 20000 words, fast tone
        assert plan.structure_plan.total_chapters == 10
        assert plan.structure_plan.total_words == 20000

    def test_bible_covers_every_chapter(self, plan):
        bible = plan.story_bible
        assert len(bible.chapter_plans) == 10
        assert bible.relationships.is_complete(bible.character_names)

    def test_research_collected(self, plan):
        # Topics fall back to genre defaults when the response is not JSON
        assert not plan.research.is_empty

    def test_metadata_records_each_step(self, plan):
        for step in PlanningOrchestrator.STEPS:
            attempts = plan.metadata.attempts_for(step)
            assert attempts and attempts[-1].success


class TestOutlineValidation:
    def test_repeated_character_rejected(self):
        outline = Outline.model_validate(json.loads(outline_response("Use exactly 3 chapters")))
        for chapter in outline.chapters:
            chapter.word_count_target = 2000
        validate_outline(outline)

        outline.characters.append(outline.characters[0].model_copy())
        with pytest.raises(SchemaValidationError, match="Mara listed more than once"):
            validate_outline(outline)

    def test_repeated_character_regenerates_outline(self, gateway, settings, gen_settings):
        def outline_with_repeat(prompt):
            payload = json.loads(outline_response(prompt))
            if gateway.calls("Create a chapter outline") == 1:
                payload["characters"].append(dict(payload["characters"][0]))
            return json.dumps(payload)

        gateway.on("Create a chapter outline", outline_with_repeat)
        plan = asyncio.run(PlanningOrchestrator(gateway, settings, sleep=no_sleep).plan(PREMISE, gen_settings))

        assert not plan.is_fallback
        failed = plan.metadata.failed_attempts("outline")
        assert len(failed) == 1
        assert "listed more than once" in failed[0].error
        assert plan.metadata.failed_attempts("story_bible") == []
        assert plan.story_bible.character_names == ["Mara", "Tobias"]


class TestFallbackPath:
    """Test the switch to a deterministic plan."""

    def test_outline_failures_trigger_fallback(self, gateway, settings, gen_settings):
        gateway.on("Create a chapter outline", GenerationError("backend down"))
        orchestrator = PlanningOrchestrator(gateway, settings, sleep=no_sleep)

        plan = asyncio.run(orchestrator.plan(PREMISE, gen_settings))

        assert plan.is_fallback
        assert "outline" in plan.fallback_reason
        assert len(plan.metadata.failed_attempts("outline")) == settings.max_retries
        assert plan.metadata.attempts_for("back_cover")[-1].success
        validate_book_plan(plan, gen_settings)

    def test_fallback_keeps_research(self, gateway, settings, gen_settings):
        gateway.on("Create a chapter outline", GenerationError("backend down"))
        plan = asyncio.run(PlanningOrchestrator(gateway, settings, sleep=no_sleep).plan(PREMISE, gen_settings))
        assert not plan.research.is_empty

    def test_unparseable_strategy_triggers_fallback(self, gateway, settings, gen_settings):
        gateway.on("Decide the creative strategy", "I would rather not say.")
        plan = asyncio.run(PlanningOrchestrator(gateway, settings, sleep=no_sleep).plan(PREMISE, gen_settings))
        assert plan.is_fallback
        assert "creative_strategy" in plan.fallback_reason
        assert gateway.calls("Create a chapter outline") == 0

    def test_fallback_uses_settings_names(self, gateway, settings, gen_settings):
        gateway.on("Create a chapter outline", GenerationError("backend down"))
        plan = asyncio.run(PlanningOrchestrator(gateway, settings, sleep=no_sleep).plan(PREMISE, gen_settings))
        assert plan.story_bible.character_names == ["Mara", "Tobias"]


class TestProgress:
    def test_progress_reaches_100(self, gateway, settings, gen_settings):
        updates = []
        reporter = ProgressReporter(lambda pct, msg: updates.append(pct))
        asyncio.run(PlanningOrchestrator(gateway, settings, reporter, sleep=no_sleep).plan(PREMISE, gen_settings))
        assert updates[0] == 0
        assert updates[-1] == 100
        assert updates == sorted(updates)
