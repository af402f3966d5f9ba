"""Story bible assembler.

Expands an outline and structure plan into the full story bible: character
profiles with a complete relationship matrix, world-building facts, the three
acts, scene-by-scene chapter plans, plot threads and a timeline.
"""

import asyncio
import logging
import math
from typing import Optional

from pydantic import ValidationError

from ..config import Settings
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import (
    ActGroup,
    BookStructurePlan,
    ChapterPlan,
    ChapterStructure,
    CharacterProfile,
    CharacterRole,
    ComprehensiveResearch,
    GenerationSettings,
    Outline,
    OutlineCharacter,
    PlotThread,
    ScenePlan,
    StoryBible,
    StoryOverview,
    TimelineEntry,
    WorldBuilding,
)
from ..retry import RetryPolicy, call_with_retry
from .prompts import BIBLE_SYSTEM, CHARACTER_PROFILE_PROMPT, SCENE_PLAN_PROMPT
from .relationships import RelationshipBuilder, attach_relationships

logger = logging.getLogger(__name__)

MIN_SCENES = 2
MAX_SCENES = 4
WORDS_PER_SCENE = 600


def scene_count(word_target: int) -> int:
    return max(MIN_SCENES, min(MAX_SCENES, word_target // WORDS_PER_SCENE))


def placeholder_scene(number: int, chapter: ChapterStructure, word_target: int) -> ScenePlan:
    return ScenePlan(
        number=number,
        purpose=f"Scene {number} of chapter {chapter.number}: {chapter.purpose or chapter.title}",
        setting="Continuing from the previous scene",
        characters=list(chapter.character_focus),
        conflict="The chapter's central tension presses on the characters",
        outcome="The situation moves one step closer to the chapter's turn",
        word_target=max(1, word_target),
        mood="consistent with the chapter",
        placeholder=True,
    )


def placeholder_scenes(chapter: ChapterStructure) -> list[ScenePlan]:
    """Evenly sized generic scenes for a chapter."""
    count = scene_count(chapter.word_count_target)
    share = chapter.word_count_target // count
    scenes = []
    for number in range(1, count + 1):
        words = share + (chapter.word_count_target % count if number == count else 0)
        scenes.append(placeholder_scene(number, chapter, words))
    return scenes


def parse_scenes(payload, chapter: ChapterStructure) -> Optional[list[ScenePlan]]:
    """Scenes from a payload, with malformed items individually replaced.

    Returns None when nothing scene-like could be found at all.
    """
    items = payload.get("scenes") if isinstance(payload, dict) else payload
    if not isinstance(items, list) or not items:
        return None

    items = items[:MAX_SCENES]
    count = max(MIN_SCENES, len(items))
    share = chapter.word_count_target // count

    scenes = []
    for index in range(count):
        number = index + 1
        item = items[index] if index < len(items) else None
        if isinstance(item, dict):
            data = dict(item)
            data["number"] = number
            if not isinstance(data.get("word_target"), int) or data["word_target"] <= 0:
                data["word_target"] = share
            if isinstance(data.get("characters"), str):
                data["characters"] = [data["characters"]]
            try:
                scenes.append(ScenePlan.model_validate(data))
                continue
            except ValidationError as e:
                logger.debug("Scene %d of chapter %d malformed: %s", number, chapter.number, e.error_count())
        scenes.append(placeholder_scene(number, chapter, share))
    return scenes


def baseline_profile(character: OutlineCharacter, index: int) -> CharacterProfile:
    """Profile derived from the outline when generation fails."""
    role = CharacterRole.parse(character.role)
    if index == 0 and role == CharacterRole.SUPPORTING:
        role = CharacterRole.PROTAGONIST
    description = character.description or f"{character.name} plays a {role.value} part in the story."
    return CharacterProfile(
        name=character.name,
        role=role,
        background=description,
        motivation=f"What {character.name} wants drives their choices in the story.",
        arc=f"{character.name} is changed by the events of the story.",
        flaws=["impatience"],
        strengths=["determination"],
    )


def build_acts(total: int) -> list[ActGroup]:
    """Three acts split at 25% and 75%."""
    first_end = max(1, math.floor(total * 0.25))
    second_end = max(first_end, math.floor(total * 0.75))
    return [
        ActGroup(act=1, name="Setup", chapters=list(range(1, first_end + 1)),
                 description="Introduce the world, the cast and the central conflict"),
        ActGroup(act=2, name="Confrontation", chapters=list(range(first_end + 1, second_end + 1)),
                 description="Escalate the conflict through reversals and complications"),
        ActGroup(act=3, name="Resolution", chapters=list(range(second_end + 1, total + 1)),
                 description="Climax and resolution of the central conflict"),
    ]


def build_world(research: ComprehensiveResearch, settings: GenerationSettings) -> WorldBuilding:
    """World-building facts drawn from research."""
    def facts(results, limit):
        collected = []
        for result in results:
            if not result.failed:
                collected.extend(result.facts[:limit])
        return collected

    setting_results = [r for r in research.setting if not r.failed]
    return WorldBuilding(
        setting=setting_results[0].topic if setting_results else f"A {settings.genre} world",
        rules=facts(research.technical, 3) + facts(research.domain, 2),
        locations=[r.topic for r in setting_results],
        culture=facts(research.cultural, 3),
        facts=facts(research.setting, 3) + facts(research.domain, 3),
    )


def build_plot_threads(plan: BookStructurePlan) -> list[PlotThread]:
    total = plan.total_chapters
    threads = [PlotThread(
        name="Main Plot",
        start_chapter=1,
        end_chapter=total,
        key_moments=[f"Chapter {tp.chapter}: {tp.description}" for tp in plan.turning_points]
        + [f"Chapter {plan.climax_chapter}: Climax"],
    )]
    for theme, chapters in plan.themes_weaving.items():
        if chapters:
            threads.append(PlotThread(
                name=f"Theme: {theme}",
                start_chapter=min(chapters),
                end_chapter=max(chapters),
                key_moments=[f"Chapter {n}" for n in chapters],
            ))
    return threads


def build_timeline(plan: BookStructurePlan) -> list[TimelineEntry]:
    return [
        TimelineEntry(chapter=c.number, event=c.purpose or c.title, when=f"Chapter {c.number}")
        for c in plan.chapters
    ]


def build_overview(outline: Outline, plan: BookStructurePlan, settings: GenerationSettings) -> StoryOverview:
    climax = plan.chapter(plan.climax_chapter)
    final = plan.chapters[-1]
    return StoryOverview(
        premise=outline.summary or outline.title,
        theme=", ".join(outline.themes) or settings.genre,
        conflict=climax.purpose or climax.title,
        resolution=final.purpose or f"A {settings.ending_type} ending",
    )


class StoryBibleAssembler:
    """Builds the story bible from outline, structure plan and research.

    Usage:
        assembler = StoryBibleAssembler(gateway, settings)
        bible = await assembler.assemble(outline, structure_plan, research, generation_settings)
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)
        self.relationships = RelationshipBuilder(gateway, settings, self.policy)

    async def assemble(
        self,
        outline: Outline,
        plan: BookStructurePlan,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> StoryBible:
        profiles = await self._in_batches([
            self.profile(character, index, outline, generation_settings)
            for index, character in enumerate(outline.characters)
        ])
        if not any(p.role == CharacterRole.PROTAGONIST for p in profiles):
            profiles[0] = profiles[0].model_copy(update={"role": CharacterRole.PROTAGONIST})

        matrix = await self.relationships.build(outline.title, profiles)
        profiles = attach_relationships(profiles, matrix)

        chapter_plans = await self._in_batches([
            self.plan_scenes(chapter, outline.title) for chapter in plan.chapters
        ])

        bible = StoryBible(
            overview=build_overview(outline, plan, generation_settings),
            characters=profiles,
            relationships=matrix,
            world=build_world(research, generation_settings),
            acts=build_acts(plan.total_chapters),
            chapter_plans=chapter_plans,
            plot_threads=build_plot_threads(plan),
            timeline=build_timeline(plan),
        )
        placeholders = sum(1 for cp in chapter_plans for s in cp.scenes if s.placeholder)
        logger.info(
            "Story bible assembled: %d characters, %d relationships, %d chapter plans (%d placeholder scenes)",
            len(profiles), len(matrix.edges), len(chapter_plans), placeholders,
        )
        return bible

    async def _in_batches(self, coroutines: list) -> list:
        """Await coroutines batch_size at a time, preserving order."""
        results = []
        size = self.settings.batch_size
        for start in range(0, len(coroutines), size):
            results.extend(await asyncio.gather(*coroutines[start:start + size]))
        return results

    async def profile(
        self,
        character: OutlineCharacter,
        index: int,
        outline: Outline,
        generation_settings: GenerationSettings,
    ) -> CharacterProfile:
        prompt = CHARACTER_PROFILE_PROMPT.format(
            name=character.name,
            title=outline.title,
            genre=generation_settings.genre,
            description=character.description or "(none)",
            role=character.role,
            summary=outline.summary,
        )
        options = GenerationOptions(temperature=0.7, max_tokens=1200, system_prompt=BIBLE_SYSTEM)
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Profile generation failed for %s: %s", character.name, e)
            return baseline_profile(character, index)

        payload = extract_json(response)
        if not isinstance(payload, dict):
            return baseline_profile(character, index)

        data = {key: payload[key] for key in ("background", "motivation", "arc", "flaws", "strengths") if key in payload}
        for key in ("flaws", "strengths"):
            if isinstance(data.get(key), str):
                data[key] = [data[key]]
        try:
            return CharacterProfile(
                name=character.name,
                role=CharacterRole.parse(payload.get("role") or character.role),
                **data,
            )
        except ValidationError as e:
            logger.warning("Profile for %s malformed, using baseline: %s", character.name, e.error_count())
            return baseline_profile(character, index)

    async def plan_scenes(self, chapter: ChapterStructure, title: str) -> ChapterPlan:
        count = scene_count(chapter.word_count_target)
        prompt = SCENE_PLAN_PROMPT.format(
            number=chapter.number,
            title=title,
            scene_count=count,
            chapter_title=chapter.title,
            purpose=chapter.purpose,
            key_scenes="; ".join(chapter.key_scenes) or "none",
            characters=", ".join(chapter.character_focus) or "any",
            pacing=chapter.pacing_notes or "balanced",
            word_count=chapter.word_count_target,
            scene_words=chapter.word_count_target // count,
        )
        options = GenerationOptions(temperature=0.7, max_tokens=2000, system_prompt=BIBLE_SYSTEM)

        scenes = None
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
            scenes = parse_scenes(extract_json(response), chapter)
        except RetryableError as e:
            logger.warning("Scene planning failed for chapter %d: %s", chapter.number, e)

        if scenes is None:
            scenes = placeholder_scenes(chapter)
        return ChapterPlan(chapter_number=chapter.number, title=chapter.title, scenes=scenes)
