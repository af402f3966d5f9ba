"""Pairwise relationship generation.

Runs as a second pass once every character profile exists. The result always
covers every ordered pair of the cast: pairs the model skipped, and the whole
matrix if the call fails, get a trivial "knows X through story events" entry.
"""

import logging
from typing import Optional

from rapidfuzz import fuzz, process

from ..config import Settings
from ..errors import RetryableError, SchemaValidationError
from ..llm import GenerationGateway, GenerationOptions, extract_json
from ..models import CharacterProfile, Relationship, RelationshipMatrix
from ..retry import RetryPolicy, call_with_retry
from .prompts import BIBLE_SYSTEM, RELATIONSHIPS_PROMPT

logger = logging.getLogger(__name__)

NAME_MATCH_CUTOFF = 85


def match_name(name: str, cast: list[str]) -> Optional[str]:
    """Canonical cast name for a possibly abbreviated or misspelled name."""
    if name in cast:
        return name
    match = process.extractOne(name, cast, scorer=fuzz.WRatio, score_cutoff=NAME_MATCH_CUTOFF)
    return match[0] if match else None


def parse_relationships(payload, cast: list[str]) -> RelationshipMatrix:
    """Relationships found in a payload, restricted to known cast pairs."""
    items = payload.get("relationships", []) if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return RelationshipMatrix()

    edges: dict[tuple[str, str], Relationship] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        source = match_name(str(item.get("from") or item.get("source") or ""), cast)
        target = match_name(str(item.get("to") or item.get("target") or ""), cast)
        description = str(item.get("description") or "").strip()
        if not source or not target or source == target or not description:
            continue
        edges.setdefault((source, target), Relationship(source=source, target=target, description=description))
    return RelationshipMatrix(edges=list(edges.values()))


class RelationshipBuilder:
    """Generates the N x (N-1) directed relationship matrix for a cast."""

    def __init__(self, gateway: GenerationGateway, settings: Settings, policy: Optional[RetryPolicy] = None):
        self.gateway = gateway
        self.settings = settings
        self.policy = policy or RetryPolicy.for_gateway(settings)

    async def build(self, title: str, profiles: list[CharacterProfile]) -> RelationshipMatrix:
        cast = [p.name for p in profiles]
        if len(cast) < 2:
            return RelationshipMatrix()

        listing = "\n".join(
            f"- {p.name} ({p.role.value}): {p.background or p.motivation or 'no background yet'}"
            for p in profiles
        )
        prompt = RELATIONSHIPS_PROMPT.format(
            title=title,
            profiles=listing,
            pair_count=len(cast) * (len(cast) - 1),
        )
        options = GenerationOptions(temperature=0.6, max_tokens=3000, system_prompt=BIBLE_SYSTEM)

        try:
            response = await call_with_retry(self.gateway, prompt, options, self.policy)
        except RetryableError as e:
            logger.warning("Relationship pass failed, using trivial relationships: %s", e)
            return RelationshipMatrix.trivial(cast)

        parsed = parse_relationships(extract_json(response), cast)
        missing = parsed.missing_pairs(cast)
        if missing:
            logger.info("Relationship pass left %d of %d pairs uncovered", len(missing), len(cast) * (len(cast) - 1))

        matrix = parsed.filled(cast)
        if not matrix.is_complete(cast):
            raise SchemaValidationError("Relationship matrix does not cover every pair", [str(p) for p in matrix.missing_pairs(cast)])
        return matrix


def attach_relationships(profiles: list[CharacterProfile], matrix: RelationshipMatrix) -> list[CharacterProfile]:
    """Copies of the profiles with relationship maps taken from the matrix."""
    return [p.model_copy(update={"relationships": matrix.for_character(p.name)}) for p in profiles]
