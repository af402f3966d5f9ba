"""Tests for chapter detailing and structure-plan assembly."""

import asyncio
import json

import pytest

from book_forge.models import ComprehensiveResearch, GenerationSettings, Outline, OutlineChapter
from book_forge.planning.chapters import (
    ChapterDetailer,
    assemble_structure_plan,
    baseline_chapter,
    quality_checkpoints,
    turning_points,
    weave_themes,
)
from book_forge.planning.orchestrator import pad_summary
from book_forge.planning.structure import ChapterLayout
from book_forge.retry import RetryPolicy

from conftest import ScriptedGateway, no_sleep


@pytest.fixture
def outline():
    return Outline(
        title="The Harbour Letter",
        summary="A ferry clerk follows a letter meant for a drowned man.",
        themes=["trust", "memory"],
        chapters=[
            OutlineChapter(number=1, title="Fog", summary="Mara decides whom to trust with the letter"),
            OutlineChapter(number=2, title="Ledger", summary="Tobias hides the manifests"),
            OutlineChapter(number=3, title="Tide", summary="The drowned man's debts come due"),
        ],
    )


@pytest.fixture
def layout():
    return ChapterLayout(word_count=6000, lengths=[2000, 2000, 2000], climax_chapter=2, act_breaks=[1, 2])


class TestChapterDetailer:
    def test_malformed_and_missing_items_use_baseline(self, settings, outline, layout):
        gateway = ScriptedGateway([("Plan these chapters", json.dumps({"chapters": [
            {"number": 1, "purpose": "Mara opens the letter", "key_scenes": "the quay"},
            {"number": 2, "pacing_notes": ["not", "text"]},
        ]}))])
        detailer = ChapterDetailer(gateway, settings, RetryPolicy(attempts=1, backoff_base=0, timeout=5, sleep=no_sleep))
        chapters = asyncio.run(detailer.detail_chapters(outline, layout, ComprehensiveResearch(), GenerationSettings(genre="mystery")))

        assert [c.number for c in chapters] == [1, 2, 3]
        assert chapters[0].title == "Fog"
        assert chapters[0].key_scenes == ["the quay"]
        assert chapters[1].pacing_notes == "rising tension"
        assert chapters[2].pacing_notes == "fast resolution"
        assert all(c.word_count_target == 2000 for c in chapters)
        assert gateway.calls("Plan these chapters") == 1


class TestAssembly:
    """Test the deterministic book-level structure."""

    def test_turning_points(self):
        assert [p.chapter for p in turning_points(10)] == [2, 5, 7]
        assert [p.chapter for p in turning_points(3)] == [1, 2]

    @pytest.mark.parametrize("total,expected", [(10, [3, 6, 10]), (3, [1, 3])])
    def test_quality_checkpoints(self, total, expected):
        assert quality_checkpoints(total) == expected

    def test_weave_themes(self, outline):
        chapters = [baseline_chapter(c, 2000, total_chapters=3) for c in outline.chapters]
        assert weave_themes(["trust", "memory"], chapters) == {"trust": [1], "memory": [2]}

    def test_assemble(self, outline, layout):
        chapters = [baseline_chapter(c, 2000, total_chapters=3) for c in outline.chapters]
        plan = assemble_structure_plan(chapters, outline, layout)

        assert plan.climax_chapter == 2
        assert plan.act_breaks == [1, 2]
        assert plan.chapters[0].transition_to == "Leads into: Ledger"
        assert plan.chapters[2].transition_to is None
        assert plan.pacing.fast == [3]
        assert plan.pacing.buildup == [1, 2]
        assert plan.pacing.resolution == [3]
        assert plan.quality_checkpoints == [1, 3]

    def test_pad_summary(self):
        padded = pad_summary("Fog rolls in.", "Fog", 1)
        assert padded.startswith("Fog rolls in. Chapter 1 moves the story forward")
        assert len(padded) > 100
