"""Scan pipeline for NyxGuard."""

from .alerts import DangerAlerter, reliability_score
from .service import ScanService
from .session import Debouncer, TabState

__all__ = ["DangerAlerter", "reliability_score", "ScanService", "Debouncer", "TabState"]
