"""NyxGuard: real-time trust/risk scoring for web pages."""

from .analyzer.engine import evaluate
from .constants import ENGINE_VERSION

__all__ = ["evaluate", "ENGINE_VERSION"]
