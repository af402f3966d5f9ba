"""Tests for section transitions."""

import asyncio
import json

import pytest

from book_forge.errors import GenerationError
from book_forge.models import GenerationSettings, NarrativeVoice, TransitionLength, TransitionType
from book_forge.retry import RetryPolicy
from book_forge.transitions import (
    TransitionContext,
    TransitionGenerator,
    assess_quality,
    extract_narrative_voice,
    fallback_transition,
)

from conftest import PROSE, ScriptedGateway, no_sleep

BRIDGE = "The fog thickened as Mara climbed back to the quay, the cut rope still in her hand."


@pytest.fixture
def context():
    return TransitionContext(
        previous_text=PROSE,
        purpose="Develop the conflict and deepen character",
        transition_type=TransitionType.BRIDGE_PARAGRAPH,
        settings=GenerationSettings(genre="mystery"),
        length=TransitionLength.BRIEF,
        characters=["Mara"],
    )


def generator_for(gateway, settings):
    return TransitionGenerator(gateway, settings, RetryPolicy(attempts=1, backoff_base=0, timeout=5, sleep=no_sleep))


class TestTransitionGenerator:
    """Test transition generation and its fallback."""

    def test_generates_with_analyzed_voice(self, settings, context):
        gateway = ScriptedGateway([
            ("Analyze the narrative voice", json.dumps({"perspective": "first person", "tense": "present"})),
            ("bridge paragraph", BRIDGE),
        ])
        result = asyncio.run(generator_for(gateway, settings).generate(context))
        assert result.text == BRIDGE
        assert not result.fallback
        assert result.voice.perspective == "first-person"
        assert result.voice.tense == "present"
        assert result.continuity.temporal_flow == "continuous"
        assert "Mara" in result.continuity.character_states

    def test_failure_falls_back_to_template(self, settings, context):
        gateway = ScriptedGateway(default=GenerationError("down"))
        result = asyncio.run(generator_for(gateway, settings).generate(context))
        assert result.fallback
        assert result.text == "Meanwhile, "
        assert result.quality == 70

    @pytest.mark.parametrize("kind,text", [
        (TransitionType.SCENE_BREAK, "\n\n* * *\n\n"),
        (TransitionType.TIME_JUMP, "Later, "),
        (TransitionType.EMOTIONAL_BRIDGE, "The feeling shifted as "),
    ])
    def test_fallback_templates(self, context, kind, text):
        context.transition_type = kind
        result = fallback_transition(context)
        assert result.text == text
        assert result.quality == 70

    def test_voice_analysis_failure_keeps_expected_voice(self, settings, context):
        gateway = ScriptedGateway([("Analyze the narrative voice", GenerationError("down"))])
        voice = asyncio.run(generator_for(gateway, settings).analyze_voice(context))
        assert voice == context.voice

    def test_voice_from_sample(self, settings):
        gateway = ScriptedGateway([
            ("Determine the narrative voice", json.dumps({"perspective": "third-person-omniscient", "tense": "past", "tone": "wry"})),
        ])
        voice = asyncio.run(generator_for(gateway, settings).voice_from_sample(PROSE, GenerationSettings()))
        assert voice.perspective == "third-person-omniscient"
        assert voice.tone == "wry"

    def test_voice_from_sample_failure_uses_defaults(self, settings):
        gateway = ScriptedGateway(default=GenerationError("down"))
        voice = asyncio.run(generator_for(gateway, settings).voice_from_sample(PROSE, GenerationSettings(tone="dark")))
        assert voice.perspective == "third-person-limited"
        assert voice.tone == "dark"
        assert voice.voice_characteristics == ["consistent", "engaging"]


class TestQuality:
    def test_base_score(self, context):
        text = " ".join(["word"] * 30)
        assert assess_quality(text, context) == 85

    def test_length_penalty(self, context):
        assert assess_quality("Short.", context) == 75

    def test_purpose_bonus(self, context):
        text = "They had to develop the conflict and deepen character " + " ".join(["now"] * 22)
        assert assess_quality(text, context) == 90

    def test_vagueness_penalty_clamped(self, context):
        assert assess_quality("Unclear...", context) == 60


class TestNarrativeVoice:
    def test_defaults(self):
        assert extract_narrative_voice() == NarrativeVoice()

    def test_from_settings(self):
        voice = extract_narrative_voice(GenerationSettings(tone="grim", structure="first-person memoir"))
        assert voice.perspective == "first-person"
        assert voice.tense == "past"
        assert voice.tone == "grim"

    def test_last_sentence(self, context):
        assert context.last_sentence.startswith("She knelt")
