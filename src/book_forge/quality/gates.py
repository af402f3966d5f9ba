"""Gate runner: sanity, then drift, then redundancy, for one section."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import Settings
from ..context import RunContext
from ..llm import GenerationGateway
from .drift import DriftGuard, DriftResult
from .redundancy import RedundancyAnalysis, RedundancyReducer, ReductionResult
from .sanity import SanityChecker, ValidationResult

logger = logging.getLogger(__name__)


class GateVerdict(Enum):
    ACCEPTED = "accepted"
    FLAGGED = "flagged"  # persisted, but marked for review
    REGENERATE = "regenerate"


@dataclass
class GateReport:
    """Combined outcome of the three gates for one section."""
    verdict: GateVerdict
    text: str
    sanity: ValidationResult
    drift: Optional[DriftResult] = None
    redundancy: Optional[RedundancyAnalysis] = None
    reduction: Optional[ReductionResult] = None

    @property
    def reasons(self) -> list[str]:
        reasons = [i.message for i in self.sanity.issues]
        if self.drift is not None and not self.drift.is_valid:
            reasons.append(f"drift {self.drift.drift:.0f}%")
        return reasons

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "sanity": self.sanity.to_dict(),
            "drift": self.drift.analysis.to_dict() if self.drift else None,
            "redundancy": self.redundancy.to_dict() if self.redundancy else None,
        }


class QualityGates:
    """Runs the three quality gates over a section.

    Usage:
        gates = QualityGates(gateway, settings)
        report = await gates.evaluate(section_text, ctx, previous_text=last_section)
        if report.verdict is GateVerdict.REGENERATE:
            ...
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        settings: Settings,
        sanity: Optional[SanityChecker] = None,
        drift: Optional[DriftGuard] = None,
        redundancy: Optional[RedundancyReducer] = None,
    ):
        self.settings = settings
        self.sanity = sanity or SanityChecker(strict=settings.strict_sanity)
        self.drift = drift or DriftGuard(gateway, settings)
        self.redundancy = redundancy or RedundancyReducer(gateway, settings)

    async def evaluate(
        self,
        text: str,
        ctx: RunContext,
        previous_text: Optional[str] = None,
        accumulated: Optional[str] = None,
    ) -> GateReport:
        sanity = self.sanity.check(text, ctx.settings, previous_text)
        if not sanity.is_valid:
            logger.info("Sanity gate failed (%d issues, confidence %.0f)", len(sanity.issues), sanity.confidence)
            return GateReport(GateVerdict.REGENERATE, text, sanity)

        if ctx.profile.current is None:
            ctx.profile.replace(await self.drift.initialize_profile(ctx.settings, ctx.story_bible))
        drift = await self.drift.analyze(ctx.profile.current, text, accumulated)
        if drift.should_regenerate:
            logger.info("Drift gate requests regeneration (%.0f%%)", drift.drift)
            return GateReport(GateVerdict.REGENERATE, text, sanity, drift)

        verdict = GateVerdict.ACCEPTED if drift.is_valid else GateVerdict.FLAGGED
        analysis = self.redundancy.analyze(text, accumulated)
        reduction = await self.redundancy.reduce(text, analysis, ctx.settings)
        if verdict is GateVerdict.FLAGGED:
            logger.warning("Section flagged for review: drift %.0f%%", drift.drift)
        return GateReport(verdict, reduction.text, sanity, drift, analysis, reduction)
