"""Tests for the end-to-end writing pipeline."""

import asyncio
import json

import pytest

from book_forge.errors import FatalError, GenerationError, RunCancelled
from book_forge.models import GenerationSettings, SectionStatus
from book_forge.pipeline import BookPipeline, DirectoryStore, MemoryStore
from book_forge.planning import plan_chapter_sections, synthesize_fallback_plan
from book_forge.progress import ProgressReporter

from conftest import PROSE, ScriptedGateway, drift_response, no_sleep

WRITE_MARKER = "Write section "


@pytest.fixture
def book_settings():
    return GenerationSettings(genre="mystery", word_count=6000, character_names=["Mara"])


@pytest.fixture
def plan(book_settings):
    return synthesize_fallback_plan("A ferry clerk finds a letter meant for a drowned man.", book_settings)


def expected_sections(plan, book_settings):
    chapters = plan.structure_plan.chapters
    return [
        len(plan_chapter_sections(c.number, c.word_count_target, len(chapters), book_settings))
        for c in chapters
    ]


def pipeline_for(gateway, settings, **kwargs):
    kwargs.setdefault("store", MemoryStore())
    return BookPipeline(gateway, settings, sleep=no_sleep, seed=7, **kwargs)


class TestBookPipeline:
    """Test section writing, gating and chapter assembly."""

    def test_writes_every_chapter(self, settings, plan, book_settings):
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(10))])
        store = MemoryStore()
        manuscript = asyncio.run(pipeline_for(gateway, settings, store=store).write(plan, book_settings))

        counts = expected_sections(plan, book_settings)
        assert len(manuscript.chapters) == len(plan.structure_plan.chapters) == 3
        assert [len(c.sections) for c in manuscript.chapters] == counts
        assert sorted(store.chapters) == [1, 2, 3]
        assert manuscript.fallback_plan == plan.is_fallback
        assert gateway.calls(WRITE_MARKER) == sum(counts)

        for chapter in manuscript.chapters:
            assert not chapter.flagged
            assert all(s.status == SectionStatus.ACCEPTED for s in chapter.sections)
            assert chapter.sections[0].transition == ""
            assert all(s.transition for s in chapter.sections[1:])
            assert chapter.text.startswith(PROSE)

    def test_rejected_sections_are_flagged(self, settings, plan, book_settings):
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(80))])
        settings = settings.model_copy(update={"max_section_attempts": 2})
        manuscript = asyncio.run(pipeline_for(gateway, settings).write(plan, book_settings))

        sections = [s for c in manuscript.chapters for s in c.sections]
        assert all(s.status == SectionStatus.FLAGGED for s in sections)
        assert all(s.attempts == 2 for s in sections)
        assert all("drift 80%" in s.review_notes for s in sections)
        assert gateway.calls(WRITE_MARKER) == 2 * len(sections)
        assert gateway.calls("rejected for these reasons") == len(sections)

    def test_moderate_drift_is_flagged_not_regenerated(self, settings, plan, book_settings):
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(42))])
        manuscript = asyncio.run(pipeline_for(gateway, settings).write(plan, book_settings))

        sections = [s for c in manuscript.chapters for s in c.sections]
        assert all(s.status == SectionStatus.FLAGGED for s in sections)
        assert all(s.attempts == 1 for s in sections)
        assert all(s.drift == 42 for s in sections)
        assert manuscript.chapters[0].flagged

    def test_writer_failure_is_fatal(self, settings, plan, book_settings):
        gateway = ScriptedGateway([(WRITE_MARKER, GenerationError("backend down"))])
        with pytest.raises(FatalError, match="backend down"):
            asyncio.run(pipeline_for(gateway, settings).write(plan, book_settings))

    def test_cancel(self, settings, plan, book_settings):
        gateway = ScriptedGateway()
        pipeline = pipeline_for(gateway, settings)
        pipeline.cancel()
        with pytest.raises(RunCancelled):
            asyncio.run(pipeline.write(plan, book_settings))
        assert gateway.calls(WRITE_MARKER) == 0

    def test_progress_reaches_completion(self, settings, plan, book_settings):
        updates = []
        progress = ProgressReporter(lambda pct, msg: updates.append(pct))
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(10))])
        asyncio.run(pipeline_for(gateway, settings, progress=progress).write(plan, book_settings))

        assert updates[0] == 30.0
        assert updates[-1] == 100.0
        assert updates == sorted(updates)

    def test_directory_store(self, settings, plan, book_settings, tmp_path):
        gateway = ScriptedGateway([("Compare the NEW CONTENT", drift_response(10))])
        store = DirectoryStore(tmp_path / "book")
        asyncio.run(pipeline_for(gateway, settings, store=store).write(plan, book_settings))

        assert (tmp_path / "book" / "chapter_01.md").read_text(encoding="utf-8").startswith("# Chapter 1:")
        record = json.loads((tmp_path / "book" / "chapter_03.json").read_text(encoding="utf-8"))
        assert record["number"] == 3
        assert record["sections"][0]["status"] == "accepted"
