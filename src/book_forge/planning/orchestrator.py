"""Planning orchestrator.

Runs the planning steps in a fixed order, each through the validated-retry
primitive:

    back cover -> (research) -> creative strategy -> outline -> structure plan -> story bible

If any step exhausts its attempts, everything the primary path produced is
discarded and a deterministic fallback plan is synthesized and validated
instead. Only a failure of that synthesis is fatal.
"""

import asyncio
import json
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..bible import StoryBibleAssembler
from ..config import Settings
from ..errors import BookForgeError, FallbackTriggered, FatalError, RetryableError, SchemaValidationError
from ..llm import GenerationGateway, GenerationOptions, parse_json_object
from ..models import (
    BookStructurePlan,
    ComprehensiveResearch,
    CreativeStrategy,
    GenerationSettings,
    Outline,
    StoryBible,
)
from ..progress import ProgressReporter, ScopedProgress
from ..research import ResearchCollector
from ..retry import RetryMetadata, RetryPolicy, SleepFunc, call_with_retry, run_validated_step
from .book_plan import BookPlan
from .chapters import ChapterDetailer, assemble_structure_plan
from .fallback import synthesize_fallback_plan
from .prompts import (
    BACK_COVER_PROMPT,
    CREATIVE_STRATEGY_PROMPT,
    EXPAND_SUMMARY_PROMPT,
    JSON_SYSTEM,
    OUTLINE_PROMPT,
    PLANNER_SYSTEM,
    REFINE_BACK_COVER_PROMPT,
)
from .structure import ChapterLayout, StructuralPlanner
from .validation import (
    validate_back_cover,
    validate_book_plan,
    validate_creative_strategy,
    validate_outline,
    validate_story_bible,
    validate_structure_plan,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MIN_BACK_COVER_WORDS = 80
MIN_SUMMARY_CHARS = 100


def model_from_response(response: str, model: Type[M]) -> M:
    """Parse a JSON response into a model, as a retryable failure if it does not fit."""
    data = parse_json_object(response)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"{model.__name__} response did not match schema ({e.error_count()} errors)",
            [err["msg"] for err in e.errors()],
        ) from e


def pad_summary(summary: str, title: str, number: int) -> str:
    """Deterministic lengthening of a too-short chapter summary."""
    base = summary.strip().rstrip(".") or title
    return f"{base}. Chapter {number} moves the story forward and leaves a question that pulls the reader into what follows."


class PlanningOrchestrator:
    """Produces a validated BookPlan for a premise.

    Usage:
        orchestrator = PlanningOrchestrator(gateway, settings)
        plan = await orchestrator.plan("A lighthouse keeper finds a message...", generation_settings)
        if plan.is_fallback:
            print(plan.fallback_reason)
    """

    STEPS = ("back_cover", "creative_strategy", "outline", "structure_plan", "story_bible")

    def __init__(
        self,
        gateway: GenerationGateway,
        settings: Settings,
        progress: Optional[ProgressReporter | ScopedProgress] = None,
        planner: Optional[StructuralPlanner] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.gateway = gateway
        self.settings = settings
        self.progress = progress or ProgressReporter()
        self.planner = planner or StructuralPlanner()
        self.step_policy = RetryPolicy.for_steps(settings, sleep)
        self.call_policy = RetryPolicy.for_gateway(settings, sleep)
        self.researcher = ResearchCollector(gateway, settings, self.call_policy)
        self.detailer = ChapterDetailer(gateway, settings, self.call_policy)
        self.assembler = StoryBibleAssembler(gateway, settings, self.call_policy)

    async def plan(self, premise: str, generation_settings: GenerationSettings) -> BookPlan:
        """Run every planning step, falling back to a deterministic plan on exhaustion.

        Raises:
            FatalError: the fallback plan itself could not be built
        """
        metadata = RetryMetadata()
        artifacts: dict = {}
        self.progress.report(0, "Planning started")

        try:
            plan = await self._plan_primary(premise, generation_settings, metadata, artifacts)
            validate_book_plan(plan, generation_settings)
        except (FallbackTriggered, SchemaValidationError) as e:
            # research has its own degradation path and survives the fallback
            research = artifacts.get("research") or ComprehensiveResearch()
            return self._plan_fallback(premise, generation_settings, metadata, research, e)

        self.progress.report(100, f"Plan ready: {plan.title}")
        logger.info(
            "Plan complete: %d chapters, %d retries, %.1fs in steps",
            plan.structure_plan.total_chapters, metadata.total_retries, metadata.total_duration,
        )
        return plan

    def _plan_fallback(
        self,
        premise: str,
        generation_settings: GenerationSettings,
        metadata: RetryMetadata,
        research: ComprehensiveResearch,
        error: BookForgeError,
    ) -> BookPlan:
        logger.warning("Switching to fallback plan: %s", error)
        self.progress.report(90, "Building fallback plan")
        try:
            plan = synthesize_fallback_plan(premise, generation_settings, research, str(error), metadata)
        except Exception as fallback_error:
            raise FatalError("Fallback plan synthesis failed", original=error, fallback=fallback_error) from fallback_error
        self.progress.report(100, f"Fallback plan ready: {plan.title}")
        return plan

    async def _plan_primary(
        self,
        premise: str,
        generation_settings: GenerationSettings,
        metadata: RetryMetadata,
        artifacts: dict,
    ) -> BookPlan:
        back_cover = await self._step(
            "back_cover", metadata,
            lambda: self.generate_back_cover(premise, generation_settings),
            validate_back_cover,
        )
        self.progress.report(10, "Back cover written")

        research = await self.collect_research(premise, back_cover, generation_settings)
        artifacts["research"] = research
        self.progress.report(25, "Research collected")

        strategy = await self._step(
            "creative_strategy", metadata,
            lambda: self.generate_creative_strategy(back_cover, research, generation_settings),
            validate_creative_strategy,
        )
        self.progress.report(35, "Creative strategy chosen")

        layout = self.planner.plan(generation_settings)
        outline = await self._step(
            "outline", metadata,
            lambda: self.generate_outline(back_cover, strategy, layout, generation_settings),
            lambda o: self._validate_outline_for(o, layout),
        )
        self.progress.report(50, "Outline ready")

        structure_plan = await self._step(
            "structure_plan", metadata,
            lambda: self.generate_structure_plan(outline, layout, research, generation_settings),
            lambda p: validate_structure_plan(p, generation_settings),
        )
        self.progress.report(70, "Structure plan ready")

        story_bible = await self._step(
            "story_bible", metadata,
            lambda: self.generate_story_bible(outline, structure_plan, research, generation_settings),
            lambda b: validate_story_bible(b, structure_plan),
        )
        self.progress.report(90, "Story bible assembled")

        return BookPlan(
            back_cover=back_cover,
            creative_strategy=strategy,
            outline=outline,
            structure_plan=structure_plan,
            story_bible=story_bible,
            research=research,
            metadata=metadata,
        )

    async def _step(self, name, metadata, operation, validate):
        return await run_validated_step(name, operation, validate, metadata, self.step_policy)

    async def _complete(self, prompt: str, options: GenerationOptions) -> str:
        return await call_with_retry(self.gateway, prompt, options, self.call_policy)

    # -- steps ---------------------------------------------------------------

    async def generate_back_cover(self, premise: str, generation_settings: GenerationSettings) -> str:
        names = ", ".join(generation_settings.character_names)
        prompt = BACK_COVER_PROMPT.format(
            genre=generation_settings.genre,
            premise=premise,
            tone=generation_settings.tone,
            audience=generation_settings.target_audience,
            ending=generation_settings.ending_type,
            characters_line=f"CHARACTERS: {names}" if names else "",
        )
        text = await self._complete(prompt, GenerationOptions(temperature=0.8, max_tokens=800, system_prompt=PLANNER_SYSTEM))

        if len(text.split()) < MIN_BACK_COVER_WORDS:
            try:
                refined = await self._complete(
                    REFINE_BACK_COVER_PROMPT.format(back_cover=text),
                    GenerationOptions(temperature=0.7, max_tokens=800, system_prompt=PLANNER_SYSTEM),
                )
                if len(refined) > len(text):
                    text = refined
            except RetryableError as e:
                logger.warning("Back cover refinement failed, keeping draft: %s", e)
        return text.strip()

    async def collect_research(
        self,
        premise: str,
        back_cover: str,
        generation_settings: GenerationSettings,
    ) -> ComprehensiveResearch:
        try:
            return await self.researcher.collect(premise, back_cover, generation_settings)
        except BookForgeError as e:
            logger.warning("Research collection failed, continuing without research: %s", e)
            return ComprehensiveResearch()

    async def generate_creative_strategy(
        self,
        back_cover: str,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> CreativeStrategy:
        books = ", ".join(generation_settings.inspiration_books)
        prompt = CREATIVE_STRATEGY_PROMPT.format(
            genre=generation_settings.genre,
            back_cover=back_cover,
            research=research.summary(max_facts=2),
            tone=generation_settings.tone,
            audience=generation_settings.target_audience,
            inspiration_line=f"INSPIRED BY: {books}" if books else "",
        )
        response = await self._complete(prompt, GenerationOptions(temperature=0.7, max_tokens=1200, system_prompt=JSON_SYSTEM))
        return model_from_response(response, CreativeStrategy)

    async def generate_outline(
        self,
        back_cover: str,
        strategy: CreativeStrategy,
        layout: ChapterLayout,
        generation_settings: GenerationSettings,
    ) -> Outline:
        prompt = OUTLINE_PROMPT.format(
            genre=generation_settings.genre,
            word_count=generation_settings.word_count,
            back_cover=back_cover,
            strategy=json.dumps(strategy.model_dump(), indent=2),
            characters=", ".join(generation_settings.character_names) or "invent a fitting cast",
            ending=generation_settings.ending_type,
            chapter_count=layout.chapter_count,
            average_words=layout.word_count // layout.chapter_count,
        )
        response = await self._complete(prompt, GenerationOptions(temperature=0.7, max_tokens=4000, system_prompt=JSON_SYSTEM))
        outline = model_from_response(response, Outline)

        # Word targets belong to the structural planner
        if len(outline.chapters) == layout.chapter_count:
            for chapter, length in zip(outline.chapters, layout.lengths):
                chapter.word_count_target = length

        await self.expand_short_summaries(outline)
        return outline

    async def expand_short_summaries(self, outline: Outline) -> None:
        """Lengthen chapter summaries that are too thin to plan from."""
        for chapter in outline.chapters:
            if len(chapter.summary) >= MIN_SUMMARY_CHARS:
                continue
            prompt = EXPAND_SUMMARY_PROMPT.format(
                title=outline.title,
                number=chapter.number,
                chapter_title=chapter.title,
                summary=chapter.summary or "(none)",
            )
            try:
                expanded = await self._complete(prompt, GenerationOptions(temperature=0.6, max_tokens=400, system_prompt=PLANNER_SYSTEM))
            except RetryableError as e:
                logger.debug("Summary expansion failed for chapter %d: %s", chapter.number, e)
                expanded = ""
            chapter.summary = expanded if len(expanded) > len(chapter.summary) else pad_summary(chapter.summary, chapter.title, chapter.number)

    def _validate_outline_for(self, outline: Outline, layout: ChapterLayout) -> None:
        validate_outline(outline)
        if len(outline.chapters) != layout.chapter_count:
            raise SchemaValidationError(
                f"Outline has {len(outline.chapters)} chapters, expected {layout.chapter_count}",
            )

    async def generate_structure_plan(
        self,
        outline: Outline,
        layout: ChapterLayout,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> BookStructurePlan:
        chapters = await self.detailer.detail_chapters(outline, layout, research, generation_settings)
        return assemble_structure_plan(chapters, outline, layout)

    async def generate_story_bible(
        self,
        outline: Outline,
        structure_plan: BookStructurePlan,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> StoryBible:
        return await self.assembler.assemble(outline, structure_plan, research, generation_settings)
