"""Section writer: turns a scene plan into prose."""

import logging
from typing import Optional

from .config import Settings
from .context import RunContext
from .llm import GenerationGateway, GenerationOptions, strip_markdown
from .models import ChapterStructure, NarrativeVoice, ScenePlan
from .planning.genre import SectionPlan
from .retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

PREVIOUS_TAIL_CHARS = 800
TOKENS_PER_WORD = 2

WRITER_SYSTEM = (
    "You are a professional novelist. Write polished {genre} prose for {audience} readers in "
    "{perspective} perspective, {tense} tense. Output only the prose, with no headings or commentary."
)

GENERATION_PROMPT = '''Write section {section} of chapter {chapter} ("{chapter_title}") of "{book_title}".

CHAPTER PURPOSE: {chapter_purpose}
PACING: {pacing}

THIS SECTION:
- Role: {section_type}
- Purpose: {section_purpose}
- Emotional beat: {beat}

SCENE PLAN:
- Purpose: {scene_purpose}
- Setting: {scene_setting}
- Characters: {scene_characters}
- Conflict: {scene_conflict}
- Outcome: {scene_outcome}
- Mood: {scene_mood}

CHARACTERS:
{profiles}

WORLD:
{world}

STORY SO FAR:
{continuity}

PREVIOUS TEXT (continue seamlessly from here):
{previous}

Write about {words} words in a {tone} tone. Begin directly with the prose.'''

REGENERATION_PROMPT = '''{original_prompt}

A previous draft of this section was rejected for these reasons:
{issues}

Write a new draft that avoids every one of these problems.'''


class SectionWriter:
    """Generates section prose from story-bible scene plans.

    Usage:
        writer = SectionWriter(gateway, settings)
        text = await writer.write(ctx, chapter, section_plan, scene, previous_text)
    """

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    def build_prompt(
        self,
        ctx: RunContext,
        chapter: ChapterStructure,
        section: SectionPlan,
        scene: Optional[ScenePlan],
        previous_text: str = "",
        title: str = "",
    ) -> str:
        bible = ctx.story_bible
        names = list(scene.characters) if scene and scene.characters else list(chapter.character_focus)
        profiles = []
        world = "Not established."
        if bible is not None:
            for name in names:
                profile = bible.character(name)
                if profile is not None:
                    profiles.append(f"- {profile.name} ({profile.role.value}): {profile.motivation or profile.background}")
            facts = bible.world.facts[:5] + bible.world.rules[:3]
            world = "\n".join(f"- {fact}" for fact in [bible.world.setting] + facts if fact) or world

        return GENERATION_PROMPT.format(
            section=section.number,
            chapter=chapter.number,
            chapter_title=chapter.title,
            book_title=title or "Untitled",
            chapter_purpose=chapter.purpose or chapter.title,
            pacing=chapter.pacing_notes or "balanced",
            section_type=section.type.value,
            section_purpose=section.purpose,
            beat=section.emotional_beat,
            scene_purpose=scene.purpose if scene else section.purpose,
            scene_setting=(scene.setting if scene else "") or "as established",
            scene_characters=", ".join(names) or "as established",
            scene_conflict=(scene.conflict if scene else "") or "the chapter's central tension",
            scene_outcome=(scene.outcome if scene else "") or "the story moves forward",
            scene_mood=(scene.mood if scene else "") or section.emotional_beat,
            profiles="\n".join(profiles) or "- (see previous text)",
            world=world,
            continuity=ctx.continuity.context_for(chapter.number),
            previous=previous_text[-PREVIOUS_TAIL_CHARS:] or "(this is the first section of the book)",
            words=section.word_target,
            tone=ctx.settings.tone,
        )

    async def write(
        self,
        ctx: RunContext,
        chapter: ChapterStructure,
        section: SectionPlan,
        scene: Optional[ScenePlan] = None,
        previous_text: str = "",
        voice: Optional[NarrativeVoice] = None,
        title: str = "",
        rejection: Optional[list[str]] = None,
    ) -> str:
        """Generate one section.

        Raises:
            GenerationError: the gateway failed on every attempt
        """
        voice = voice or NarrativeVoice()
        prompt = self.build_prompt(ctx, chapter, section, scene, previous_text, title)
        if rejection:
            prompt = REGENERATION_PROMPT.format(
                original_prompt=prompt,
                issues="\n".join(f"- {issue}" for issue in rejection),
            )
        options = GenerationOptions(
            temperature=0.8,
            max_tokens=max(1000, section.word_target * TOKENS_PER_WORD),
            system_prompt=WRITER_SYSTEM.format(
                genre=ctx.settings.genre,
                audience=ctx.settings.target_audience,
                perspective=voice.perspective,
                tense=voice.tense,
            ),
        )
        text = strip_markdown(await call_with_retry(self.gateway, prompt, options, self.policy))
        logger.debug("Chapter %d section %d: %d words", chapter.number, section.number, len(text.split()))
        return text
