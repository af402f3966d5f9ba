"""End-to-end book pipeline.

    plan -> for each chapter: sections -> quality gates (regenerate on failure) -> transitions

Planning always yields a schema-valid plan (primary or fallback). Writing is
sequential: each section sees the text before it, and the run context only
changes after a chapter has been accepted.
"""

import asyncio
import json
import logging
import random
from pathlib import Path
from typing import Optional, Protocol

from .config import Settings
from .context import RunContext
from .errors import FatalError, RetryableError, RunCancelled
from .llm import GenerationGateway
from .models import (
    ChapterStructure,
    GenerationSettings,
    Manuscript,
    NarrativeVoice,
    ScenePlan,
    SectionStatus,
    TransitionLength,
    WrittenChapter,
    WrittenSection,
)
from .planning import BookPlan, PlanningOrchestrator, SectionPlan, plan_chapter_sections
from .progress import ProgressReporter
from .quality import DriftGuard, GateReport, GateVerdict, QualityGates
from .retry import RetryPolicy, SleepFunc
from .transitions import TransitionContext, TransitionGenerator, extract_narrative_voice
from .writer import SectionWriter

logger = logging.getLogger(__name__)

PLANNING_SHARE = 30.0


class ChapterStore(Protocol):
    """Where accepted chapters are persisted."""

    def save_chapter(self, chapter: WrittenChapter) -> None:
        ...


class MemoryStore:
    """Keeps chapters in memory."""

    def __init__(self):
        self.chapters: dict[int, WrittenChapter] = {}

    def save_chapter(self, chapter: WrittenChapter) -> None:
        self.chapters[chapter.number] = chapter


class DirectoryStore:
    """Writes each chapter as markdown plus a JSON record of its sections."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)

    def save_chapter(self, chapter: WrittenChapter) -> None:
        stem = f"chapter_{chapter.number:02d}"
        (self.path / f"{stem}.md").write_text(chapter.to_markdown(), encoding="utf-8")
        with open(self.path / f"{stem}.json", "w", encoding="utf-8") as f:
            json.dump(chapter.to_dict(), f, indent=2)


def scene_for(section: SectionPlan, total_sections: int, scenes: list[ScenePlan]) -> Optional[ScenePlan]:
    """Scene plan that a section covers, spreading sections evenly over scenes."""
    if not scenes:
        return None
    index = (section.number - 1) * len(scenes) // total_sections
    return scenes[min(index, len(scenes) - 1)]


class BookPipeline:
    """Plans and writes a whole book.

    Usage:
        pipeline = BookPipeline(gateway, settings, progress=ProgressReporter(print))
        manuscript = await pipeline.run("A lighthouse keeper...", GenerationSettings(genre="mystery"))
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        settings: Settings,
        progress: Optional[ProgressReporter] = None,
        store: Optional[ChapterStore] = None,
        orchestrator: Optional[PlanningOrchestrator] = None,
        seed: Optional[int] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.gateway = gateway
        self.settings = settings
        self.progress = progress or ProgressReporter(min_interval=settings.progress_min_interval)
        self.store = store or MemoryStore()
        self.orchestrator = orchestrator or PlanningOrchestrator(
            gateway, settings, self.progress.scoped(0, PLANNING_SHARE), sleep=sleep,
        )
        policy = RetryPolicy.for_gateway(settings, sleep)
        self.writer = SectionWriter(gateway, settings, policy)
        self.drift = DriftGuard(gateway, settings, policy)
        self.gates = QualityGates(gateway, settings, drift=self.drift)
        self.transitions = TransitionGenerator(gateway, settings, policy)
        self.rng = random.Random(seed)
        self._cancelled = False

    def cancel(self) -> None:
        """Request cancellation; the run stops at the next section boundary."""
        self._cancelled = True

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelled("Run cancelled")

    async def run(self, premise: str, generation_settings: GenerationSettings) -> Manuscript:
        """Plan and write the book.

        Raises:
            FatalError: planning fallback failed or a section could not be generated
            RunCancelled: cancel() was called
        """
        self._check_cancelled()
        plan = await self.orchestrator.plan(premise, generation_settings)
        return await self.write(plan, generation_settings)

    async def write(self, plan: BookPlan, generation_settings: GenerationSettings) -> Manuscript:
        ctx = RunContext.create(generation_settings, plan.story_bible, self.settings.drift_history_size)
        ctx.profile.replace(await self.drift.initialize_profile(generation_settings, plan.story_bible))
        voice = extract_narrative_voice(generation_settings)

        manuscript = Manuscript(title=plan.title, fallback_plan=plan.is_fallback)
        chapters = plan.structure_plan.chapters
        previous_text = ""
        for chapter in chapters:
            self._check_cancelled()
            share = (100.0 - PLANNING_SHARE) / len(chapters)
            start = PLANNING_SHARE + share * (chapter.number - 1)
            self.progress.report(start, f"Writing chapter {chapter.number}/{len(chapters)}: {chapter.title}")

            written = await self.write_chapter(ctx, plan, chapter, previous_text, voice)
            if chapter.number == 1 and written.sections:
                voice = await self.transitions.voice_from_sample(written.sections[0].text, generation_settings)

            self.store.save_chapter(written)
            manuscript.chapters.append(written)
            ctx.continuity.record_chapter(chapter.number, written.text)
            await self.drift.update_profile(ctx.profile, written.text, chapter.number)
            previous_text = written.text
            logger.info(
                "Chapter %d written: %d words (target %d)%s",
                chapter.number, written.word_count, chapter.word_count_target,
                ", flagged for review" if written.flagged else "",
            )

        self.progress.report(100, f"Book complete: {manuscript.word_count:,} words")
        return manuscript

    async def write_chapter(
        self,
        ctx: RunContext,
        plan: BookPlan,
        chapter: ChapterStructure,
        previous_text: str,
        voice: NarrativeVoice,
    ) -> WrittenChapter:
        sections = plan_chapter_sections(
            chapter.number, chapter.word_count_target, plan.structure_plan.total_chapters, ctx.settings, self.rng,
        )
        chapter_plan = plan.story_bible.chapter_plan(chapter.number)
        scenes = chapter_plan.scenes if chapter_plan else []

        written = WrittenChapter(number=chapter.number, title=chapter.title, target_words=chapter.word_count_target)
        accumulated = ""
        for section in sections:
            self._check_cancelled()
            scene = scene_for(section, len(sections), scenes)
            before = accumulated or previous_text
            result = await self.write_section(ctx, plan, chapter, section, scene, before, voice)

            if section.number > 1:
                transition = await self.transitions.generate(TransitionContext(
                    previous_text=before,
                    purpose=section.purpose,
                    transition_type=section.transition_in,
                    settings=ctx.settings,
                    chapter_number=chapter.number,
                    length=TransitionLength.BRIEF,
                    voice=voice,
                    characters=list(chapter.character_focus),
                    next_characters=list(scene.characters) if scene else [],
                    next_setting=scene.setting if scene and scene.setting else "the next scene",
                    from_beat=sections[section.number - 2].emotional_beat,
                    to_beat=section.emotional_beat,
                ))
                result.transition = transition.text
                result.transition_type = transition.transition_type.value

            written.sections.append(result)
            accumulated = f"{accumulated}\n\n{result.text}" if accumulated else result.text
        return written

    async def write_section(
        self,
        ctx: RunContext,
        plan: BookPlan,
        chapter: ChapterStructure,
        section: SectionPlan,
        scene: Optional[ScenePlan],
        previous_text: str,
        voice: NarrativeVoice,
    ) -> WrittenSection:
        """Write a section, regenerating while the gates reject it.

        When every attempt is rejected the last draft is kept and flagged for review.
        """
        rejection: Optional[list[str]] = None
        report: Optional[GateReport] = None
        attempts = self.settings.max_section_attempts
        for attempt in range(1, attempts + 1):
            try:
                text = await self.writer.write(
                    ctx, chapter, section, scene, previous_text, voice, plan.title, rejection,
                )
            except RetryableError as e:
                raise FatalError(
                    f"Chapter {chapter.number} section {section.number} could not be generated", original=e,
                ) from e

            report = await self.gates.evaluate(text, ctx, previous_text or None, previous_text or None)
            if report.verdict is not GateVerdict.REGENERATE:
                return self._section_from(section, report, attempt)
            rejection = report.reasons or ["the draft drifted from the established story"]
            logger.info(
                "Chapter %d section %d rejected (attempt %d/%d): %s",
                chapter.number, section.number, attempt, attempts, "; ".join(rejection),
            )

        logger.warning(
            "Chapter %d section %d kept after %d rejected attempts", chapter.number, section.number, attempts,
        )
        result = self._section_from(section, report, attempts)
        result.status = SectionStatus.FLAGGED
        result.review_notes = report.reasons
        return result

    @staticmethod
    def _section_from(section: SectionPlan, report: GateReport, attempts: int) -> WrittenSection:
        flagged = report.verdict is GateVerdict.FLAGGED
        return WrittenSection(
            number=section.number,
            text=report.text,
            status=SectionStatus.FLAGGED if flagged else SectionStatus.ACCEPTED,
            section_type=section.type.value,
            attempts=attempts,
            drift=report.drift.drift if report.drift else None,
            redundancy=report.redundancy.score if report.redundancy else None,
            sanity_confidence=report.sanity.confidence,
            review_notes=report.drift.recommendations if flagged and report.drift else [],
        )
