"""Section transitions."""

from .generator import (
    TransitionContext,
    TransitionGenerator,
    TransitionResult,
    assess_quality,
    extract_narrative_voice,
    fallback_transition,
)

__all__ = [
    "TransitionContext",
    "TransitionGenerator",
    "TransitionResult",
    "assess_quality",
    "extract_narrative_voice",
    "fallback_transition",
]
