"""Chapter detail generation and structure-plan assembly."""

import logging
import math
from typing import Optional

from pydantic import ValidationError

from ..config import Settings
from ..errors import RetryableError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import (
    BookStructurePlan,
    ChapterStructure,
    ComprehensiveResearch,
    GenerationSettings,
    Outline,
    OutlineChapter,
    PacingBuckets,
    TurningPoint,
)
from ..retry import RetryPolicy, call_with_retry
from .prompts import CHAPTER_DETAILS_PROMPT, JSON_SYSTEM
from .structure import ChapterLayout

logger = logging.getLogger(__name__)

SLOW_CUES = ("slow", "quiet", "reflect", "breath", "calm", "introspect")
FAST_CUES = ("fast", "action", "intense", "quick", "urgent", "chase", "rapid")


def baseline_chapter(
    outline_chapter: OutlineChapter,
    word_count_target: int,
    research: Optional[ComprehensiveResearch] = None,
    total_chapters: int = 1,
) -> ChapterStructure:
    """Deterministic chapter structure built from the outline alone."""
    focus = []
    if research is not None:
        results = [r for r in research.all_results() if not r.failed]
        if results:
            focus = [results[(outline_chapter.number - 1) % len(results)].topic]
    position = outline_chapter.number / max(1, total_chapters)
    pacing = "measured build" if position < 0.5 else "rising tension" if position < 0.85 else "fast resolution"
    return ChapterStructure(
        number=outline_chapter.number,
        title=outline_chapter.title,
        purpose=outline_chapter.summary or f"Advance the story in chapter {outline_chapter.number}",
        word_count_target=word_count_target,
        research_focus=focus,
        pacing_notes=pacing,
        key_scenes=[outline_chapter.summary] if outline_chapter.summary else [],
        character_focus=[],
    )


def _chapter_from_item(item: dict, expected: OutlineChapter, word_count_target: int) -> ChapterStructure:
    """Build a ChapterStructure from a parsed item, forcing planner-owned fields."""
    data = dict(item)
    data["number"] = expected.number
    data["word_count_target"] = word_count_target
    data.setdefault("title", expected.title)
    if not data.get("title"):
        data["title"] = expected.title
    for key in ("research_focus", "key_scenes", "character_focus"):
        if isinstance(data.get(key), str):
            data[key] = [data[key]]
    return ChapterStructure.model_validate(data)


class ChapterDetailer:
    """Expands outline chapters into detailed chapter structures, a batch at a time.

    Usage:
        detailer = ChapterDetailer(gateway, settings)
        chapters = await detailer.detail_chapters(outline, layout, research, generation_settings)
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    async def detail_chapters(
        self,
        outline: Outline,
        layout: ChapterLayout,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> list[ChapterStructure]:
        chapters: list[ChapterStructure] = []
        size = self.settings.batch_size
        for start in range(0, len(outline.chapters), size):
            batch = outline.chapters[start:start + size]
            chapters.extend(await self._detail_batch(batch, outline, layout, research, generation_settings))
        return chapters

    async def _detail_batch(
        self,
        batch: list[OutlineChapter],
        outline: Outline,
        layout: ChapterLayout,
        research: ComprehensiveResearch,
        generation_settings: GenerationSettings,
    ) -> list[ChapterStructure]:
        total = len(outline.chapters)
        targets = {c.number: layout.lengths[c.number - 1] for c in batch}
        listing = "\n".join(
            f"{c.number}. {c.title} ({targets[c.number]} words): {c.summary}" for c in batch
        )
        prompt = CHAPTER_DETAILS_PROMPT.format(
            title=outline.title,
            genre=generation_settings.genre,
            summary=outline.summary,
            characters=", ".join(outline.character_names) or "unspecified",
            research=research.summary(max_facts=2),
            chapters=listing,
        )
        options = GenerationOptions(temperature=0.6, max_tokens=3000, system_prompt=JSON_SYSTEM)

        items: dict[int, dict] = {}
        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
            payload = extract_json(response)
            raw_items = payload.get("chapters", []) if isinstance(payload, dict) else payload or []
            for item in raw_items:
                if isinstance(item, dict) and isinstance(item.get("number"), int):
                    items[item["number"]] = item
        except RetryableError as e:
            logger.warning("Chapter detail batch %s failed: %s", [c.number for c in batch], e)

        chapters = []
        for outline_chapter in batch:
            target = targets[outline_chapter.number]
            item = items.get(outline_chapter.number)
            if item is not None:
                try:
                    chapters.append(_chapter_from_item(item, outline_chapter, target))
                    continue
                except ValidationError as e:
                    logger.warning("Chapter %d details malformed, using baseline: %s", outline_chapter.number, e.error_count())
            chapters.append(baseline_chapter(outline_chapter, target, research, total))
        return chapters


def turning_points(total: int) -> list[TurningPoint]:
    labels = {
        0.25: "Inciting commitment: the protagonist crosses into the main conflict",
        0.5: "Midpoint reversal: the stakes are redefined",
        0.75: "Crisis: everything the protagonist relied on fails",
    }
    points: dict[int, str] = {}
    for fraction, description in labels.items():
        chapter = max(1, min(total, math.floor(total * fraction)))
        points.setdefault(chapter, description)
    return [TurningPoint(chapter=chapter, description=text) for chapter, text in sorted(points.items())]


def weave_themes(themes: list[str], chapters: list[ChapterStructure]) -> dict[str, list[int]]:
    """Chapters each theme appears in, spreading unmentioned themes evenly."""
    weaving: dict[str, list[int]] = {}
    for index, theme in enumerate(themes):
        needle = theme.lower()
        hits = [
            c.number for c in chapters
            if needle in f"{c.purpose} {' '.join(c.key_scenes)}".lower()
        ]
        if not hits:
            hits = [c.number for c in chapters if (c.number - 1) % len(themes) == index]
        weaving[theme] = hits or [chapters[-1].number]
    return weaving


def pacing_buckets(chapters: list[ChapterStructure]) -> PacingBuckets:
    total = len(chapters)
    buildup_end = max(1, math.floor(total * 0.7))
    return PacingBuckets(
        slow=[c.number for c in chapters if any(cue in c.pacing_notes.lower() for cue in SLOW_CUES)],
        fast=[c.number for c in chapters if any(cue in c.pacing_notes.lower() for cue in FAST_CUES)],
        buildup=list(range(1, buildup_end + 1)),
        resolution=list(range(buildup_end + 1, total + 1)),
    )


def quality_checkpoints(total: int) -> list[int]:
    return sorted({max(1, math.floor(total * 0.33)), max(1, math.floor(total * 0.66)), total})


def assemble_structure_plan(
    chapters: list[ChapterStructure],
    outline: Outline,
    layout: ChapterLayout,
) -> BookStructurePlan:
    """Deterministic book-level structure around detailed chapters."""
    total = len(chapters)
    for index, chapter in enumerate(chapters):
        if index + 1 < total and not chapter.transition_to:
            chapter.transition_to = f"Leads into: {chapters[index + 1].title}"

    return BookStructurePlan(
        act_breaks=[b for b in layout.act_breaks if b <= total],
        climax_chapter=min(layout.climax_chapter, total),
        turning_points=turning_points(total),
        themes_weaving=weave_themes(outline.themes, chapters) if outline.themes else {},
        chapters=chapters,
        pacing=pacing_buckets(chapters),
        quality_checkpoints=quality_checkpoints(total),
        research_integration={c.number: list(c.research_focus) for c in chapters if c.research_focus},
    )
