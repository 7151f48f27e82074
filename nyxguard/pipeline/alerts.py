"""Danger alerts for risky pages."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from ..analyzer.models import DetectionResult
from ..constants import RiskLevel
from ..storage.settings import Settings
from ..utils.domains import truncate_middle

logger = logging.getLogger(__name__)

ALERT_COOLDOWN_SECONDS = 2 * 60
# Alerts start this many points below the high band.
NEAR_HIGH_MARGIN = 5
ALERT_URL_MAX_LENGTH = 80

Notifier = Callable[[str, str], Awaitable[bool]]


def reliability_score(risk_score: int) -> int:
    """Trust score shown to users: the complement of the risk score."""
    return max(0, 100 - risk_score)


def alert_threshold(settings: Settings) -> int:
    return max(0, settings.medium_max + 1 - NEAR_HIGH_MARGIN)


async def log_notifier(title: str, message: str) -> bool:
    logger.warning("%s: %s", title, message)
    return True


@dataclass
class AlertState:
    domain: str
    last_alert_ts: float


class DangerAlerter:
    """Decides when a result warrants an alert and delivers it."""

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        cooldown_seconds: float = ALERT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.notifier = notifier or log_notifier
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._state: Dict[int, AlertState] = {}

    async def maybe_notify(self, tab_id: int, result: DetectionResult, settings: Settings) -> bool:
        """Send an alert unless disabled, below threshold or cooling down."""
        if not settings.enable_danger_alerts:
            return False
        if result.score < alert_threshold(settings):
            return False

        now = self.clock()
        state = self._state.get(tab_id)
        if state and state.domain == result.domain and now - state.last_alert_ts < self.cooldown_seconds:
            return False

        severity = "HIGH" if result.level == RiskLevel.HIGH else "ELEVATED"
        title = f"NyxGuard: {severity} risk"
        message = (
            f"{result.domain} scored {result.score}/100 "
            f"(reliability {reliability_score(result.score)}/100). Avoid entering sensitive data.\n"
            f"{truncate_middle(result.url, ALERT_URL_MAX_LENGTH)}"
        )
        try:
            delivered = await self.notifier(title, message)
        except Exception as e:
            logger.warning(f"Danger alert delivery failed for tab {tab_id}: {e}")
            return False

        if delivered:
            self._state[tab_id] = AlertState(domain=result.domain, last_alert_ts=now)
        return bool(delivered)

    def reset(self, tab_id: int) -> None:
        self._state.pop(tab_id, None)
