"""Shared fixtures: a scripted generation gateway and test settings."""

import json
import re

import pytest

from book_forge.config import Settings
from book_forge.llm import GenerationResponse
from book_forge.models import GenerationSettings


PROSE = (
    "Mara walked along the harbour wall while the fog rolled in from the grey water. "
    "She had waited for the ferry since dawn, and the letter in her coat grew heavier with every hour. "
    "The harbour master was watching from his hut. "
    "She went down the stone steps and saw the boat drifting loose on the tide. "
    "Somebody had cut the rope. "
    "She knelt, took the frayed end in her fingers and thought about who had known of the crossing."
)

STRATEGY = {
    "approach": "A tightly plotted investigation told through clues and reversals.",
    "narrative_voice": "third-person limited, past tense",
    "themes": ["trust", "memory"],
    "pacing": "brisk, with a breath before each reveal",
}


def outline_response(prompt: str) -> str:
    """An outline JSON with exactly the chapter count the prompt asks for."""
    count = int(re.search(r"Use exactly (\d+) chapters", prompt).group(1))
    return json.dumps({
        "title": "The Harbour Letter",
        "summary": (
            "A ferry clerk finds a letter meant for a drowned man and follows it into a web of "
            "old debts, forged manifests and a harbour town that would rather forget."
        ),
        "themes": ["trust", "memory"],
        "characters": [
            {"name": "Mara", "role": "protagonist", "description": "A ferry clerk with a long memory."},
            {"name": "Tobias", "role": "antagonist", "description": "The harbour master who keeps the ledgers."},
        ],
        "chapters": [
            {
                "number": n,
                "title": f"Tide {n}",
                "summary": f"Mara follows the letter one step further and chapter {n} leaves a new question open.",
            }
            for n in range(1, count + 1)
        ],
    })


def drift_response(overall: float) -> str:
    return json.dumps({
        "overall": overall,
        "genre": overall,
        "environment": overall,
        "tone": overall,
        "style": overall,
        "character": overall,
        "worldbuilding": overall,
        "flagged": [],
        "confidence": 90,
    })


class ScriptedGateway:
    """Generation gateway that answers by prompt content.

    Rules are checked in order; the first marker found in the prompt wins.
    A rule's answer may be a string, a callable taking the prompt, or an
    exception instance to raise. Unmatched prompts get PROSE.
    """

    def __init__(self, rules=None, default: str = PROSE):
        self.rules = list(rules or [])
        self.default = default
        self.prompts: list[str] = []

    def on(self, marker: str, answer) -> "ScriptedGateway":
        self.rules.insert(0, (marker, answer))
        return self

    def calls(self, marker: str) -> int:
        return sum(1 for p in self.prompts if marker in p)

    async def generate(self, prompt, options=None) -> GenerationResponse:
        self.prompts.append(prompt)
        answer = self.default
        for marker, candidate in self.rules:
            if marker in prompt:
                answer = candidate
                break
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            answer = answer(prompt)
        return GenerationResponse(text=answer, model="scripted")


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def settings():
    return Settings(
        backoff_base=0,
        request_timeout=5,
        progress_min_interval=0,
        # Fixture prose is too short to be repetitive; keep the reducer out of the way
        redundancy_action_threshold=101,
    )


@pytest.fixture
def gen_settings():
    return GenerationSettings(genre="mystery", tone="fast", word_count=20000, character_names=["Mara", "Tobias"])


@pytest.fixture
def gateway():
    return ScriptedGateway([
        ("Decide the creative strategy", json.dumps(STRATEGY)),
        ("Create a chapter outline", outline_response),
        ("Compare the NEW CONTENT", drift_response(10)),
    ])
