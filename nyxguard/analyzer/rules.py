"""Scoring weights and classification defaults."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

WEIGHTS: dict[str, int] = {
    "punycode_domain": 25,
    "suspicious_login": 20,
    "invasive_overlay": 15,
    "popup_abuse": 10,
    "tracker_low": 5,
    "tracker_medium": 10,
    "tracker_high": 15,
    "ad_like_low": 5,
    "ad_like_high": 10,
    "hidden_iframes": 12,
    "reputation_suspicious": 18,
    "reputation_malicious_low": 35,
    "reputation_malicious_high": 55,
    "reputation_poor": 8,
    "denylist": 30,
    "allowlist": -100,
}

# Tier boundaries
TRACKER_HIGH_MIN = 10
TRACKER_MEDIUM_MIN = 5
AD_LIKE_MIN = 5
AD_LIKE_HIGH_MIN = 12
HIDDEN_IFRAMES_MIN = 2
OVERLAY_COUNT_MIN = 2
REPUTATION_MALICIOUS_HIGH_MIN = 3

SCORE_MIN = 0
SCORE_MAX = 100


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def apply_sensitivity(weight: int, sensitivity: float) -> int:
    return round_half_up(weight * sensitivity)


def merge_weights(overrides: Optional[Mapping[str, Any]] = None) -> dict[str, int]:
    """Return WEIGHTS with integer overrides applied; unknown keys are ignored."""
    weights = dict(WEIGHTS)
    for key, value in (overrides or {}).items():
        if key not in weights:
            logger.info("Ignoring unknown weight override: %s", key)
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            logger.info("Ignoring non-integer weight override for %s: %r", key, value)
            continue
        weights[key] = value
    return weights
