"""Scoring and reputation modules for NyxGuard."""

from .engine import classify, evaluate
from .features import build_features
from .models import DetectionResult, Features, Reason, ReputationSummary
from .reputation import ReputationLookup, ReputationService

__all__ = [
    "classify",
    "evaluate",
    "build_features",
    "DetectionResult",
    "Features",
    "Reason",
    "ReputationSummary",
    "ReputationLookup",
    "ReputationService",
]
