"""Quality gates: sanity checker, drift guard and redundancy reducer."""

from .sanity import IssueSeverity, IssueType, SanityChecker, SanityIssue, ValidationResult
from .drift import DriftAnalysis, DriftCategory, DriftGuard, DriftIssue, DriftResult, fallback_analysis
from .redundancy import (
    PhraseSeverity,
    QuickCheck,
    RedundancyAnalysis,
    RedundancyCalibration,
    RedundancyReducer,
    ReductionResult,
    RepetitivePhrase,
)
from .gates import GateReport, GateVerdict, QualityGates

__all__ = [
    "IssueSeverity",
    "IssueType",
    "SanityChecker",
    "SanityIssue",
    "ValidationResult",
    "DriftAnalysis",
    "DriftCategory",
    "DriftGuard",
    "DriftIssue",
    "DriftResult",
    "fallback_analysis",
    "PhraseSeverity",
    "QuickCheck",
    "RedundancyAnalysis",
    "RedundancyCalibration",
    "RedundancyReducer",
    "ReductionResult",
    "RepetitivePhrase",
    "GateReport",
    "GateVerdict",
    "QualityGates",
]
