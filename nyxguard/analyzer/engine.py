"""Page risk scoring engine.

`evaluate()` is a pure function of a feature bundle and the user settings:
no I/O and no state beyond its inputs. The reasons list is evidence for the
UI, so it is built in a fixed check order and is fully reproducible.
"""

from __future__ import annotations

import time
from typing import Mapping, Optional

from ..constants import ENGINE_VERSION, ReasonCategory, RiskLevel
from ..storage.settings import Settings
from ..utils.domains import display_domain, is_punycode_domain
from .models import DetectionResult, Features, Reason
from .rules import (
    AD_LIKE_HIGH_MIN,
    AD_LIKE_MIN,
    HIDDEN_IFRAMES_MIN,
    OVERLAY_COUNT_MIN,
    REPUTATION_MALICIOUS_HIGH_MIN,
    SCORE_MAX,
    SCORE_MIN,
    TRACKER_HIGH_MIN,
    TRACKER_MEDIUM_MIN,
    WEIGHTS,
    apply_sensitivity,
)


def classify(score: int, settings: Settings) -> RiskLevel:
    """Map a clamped score to its level using the settings thresholds."""
    if score <= settings.low_max:
        return RiskLevel.LOW
    if score <= settings.medium_max:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def tracker_tier(count: int) -> tuple[str, str]:
    """Return (weight key, label) for a tracker count, or ("", "") for none."""
    if count >= TRACKER_HIGH_MIN:
        return "tracker_high", f"{TRACKER_HIGH_MIN}+"
    if count >= TRACKER_MEDIUM_MIN:
        return "tracker_medium", f"{TRACKER_MEDIUM_MIN}-{TRACKER_HIGH_MIN - 1}"
    if count >= 1:
        return "tracker_low", f"1-{TRACKER_MEDIUM_MIN - 1}"
    return "", ""


def evaluate(
    features: Features,
    settings: Settings,
    weights: Optional[Mapping[str, int]] = None,
    now: Optional[float] = None,
) -> DetectionResult:
    """Score a feature bundle against the user's settings."""
    w = weights or WEIGHTS
    domain = features.domain
    timestamp = time.time() if now is None else now
    reasons: list[Reason] = []
    score = 0

    def scaled(key: str) -> int:
        return apply_sensitivity(w[key], settings.sensitivity)

    def add(reason_id: str, title: str, detail: str, weight: int, category: ReasonCategory) -> None:
        nonlocal score
        score += weight
        reasons.append(Reason(reason_id, title, detail, weight, category))

    if domain in settings.allowlist:
        reasons.append(
            Reason(
                "allowlist",
                "Trusted domain",
                f"{domain} is in your allowlist.",
                w["allowlist"],
                ReasonCategory.SYSTEM,
            )
        )
        return DetectionResult(
            score=0,
            level=RiskLevel.LOW,
            reasons=reasons,
            features=features,
            domain=domain,
            url=features.url,
            timestamp=timestamp,
            engine_version=ENGINE_VERSION,
        )

    if domain in settings.denylist:
        add("denylist", "Blocked domain", f"{domain} is in your denylist.", w["denylist"], ReasonCategory.SYSTEM)

    if settings.enable_malicious_checks:
        if is_punycode_domain(domain):
            shown = display_domain(domain)
            detail = "Domain contains punycode (xn--) labels."
            if shown != domain:
                detail = f"Domain contains punycode (xn--) labels, rendered as {shown}."
            add("punycode-domain", "Punycode domain", detail, scaled("punycode_domain"), ReasonCategory.MALICIOUS)

        if features.has_password_form and features.suspicious_login_keywords_found:
            keywords = ", ".join(features.suspicious_login_keywords_found)
            add(
                "suspicious-login",
                "Suspicious login pattern",
                f"Password form with keywords: {keywords}.",
                scaled("suspicious_login"),
                ReasonCategory.MALICIOUS,
            )

        if features.iframe_hidden_count >= HIDDEN_IFRAMES_MIN:
            add(
                "hidden-iframes",
                "Hidden iframes",
                f"Detected {features.iframe_hidden_count} hidden iframe(s).",
                scaled("hidden_iframes"),
                ReasonCategory.MALICIOUS,
            )

    if settings.enable_content_checks:
        if features.has_blocking_overlay or features.overlay_count >= OVERLAY_COUNT_MIN:
            add(
                "invasive-overlay",
                "Invasive overlay",
                f"Detected {features.overlay_count} full-screen overlay(s).",
                scaled("invasive_overlay"),
                ReasonCategory.CONTENT,
            )

        if features.notification_dark_pattern_keywords:
            keywords = ", ".join(features.notification_dark_pattern_keywords)
            add(
                "popup-abuse",
                "Notification pressure",
                f"Keywords found: {keywords}.",
                scaled("popup_abuse"),
                ReasonCategory.CONTENT,
            )

    if settings.enable_ads_checks:
        tier_key, tier_label = tracker_tier(features.count_trackers)
        if tier_key:
            add(
                "tracker-density",
                "Tracker density",
                f"Matched {features.count_trackers} tracker request(s) ({tier_label}).",
                scaled(tier_key),
                ReasonCategory.ADS,
            )

        if features.ad_like_elements_count >= AD_LIKE_MIN:
            key = "ad_like_high" if features.ad_like_elements_count >= AD_LIKE_HIGH_MIN else "ad_like_low"
            add(
                "ad-heavy-dom",
                "Ad-heavy layout",
                f"Detected {features.ad_like_elements_count} ad-like element(s).",
                scaled(key),
                ReasonCategory.ADS,
            )

    summary = features.reputation_summary
    if settings.enable_reputation_checks and summary is not None:
        if summary.malicious > 0:
            key = (
                "reputation_malicious_high"
                if summary.malicious >= REPUTATION_MALICIOUS_HIGH_MIN
                else "reputation_malicious_low"
            )
            add(
                "reputation-malicious",
                "Malicious reputation verdicts",
                f"{summary.malicious} engine(s) flagged this domain as malicious.",
                scaled(key),
                ReasonCategory.MALICIOUS,
            )

        if summary.suspicious > 0:
            add(
                "reputation-suspicious",
                "Suspicious reputation verdicts",
                f"{summary.suspicious} engine(s) flagged this domain as suspicious.",
                scaled("reputation_suspicious"),
                ReasonCategory.MALICIOUS,
            )

        if summary.reputation < 0:
            add(
                "reputation-poor",
                "Negative reputation",
                f"Reputation score: {summary.reputation}.",
                scaled("reputation_poor"),
                ReasonCategory.MALICIOUS,
            )

    score = min(SCORE_MAX, max(SCORE_MIN, score))

    return DetectionResult(
        score=score,
        level=classify(score, settings),
        reasons=reasons,
        features=features,
        domain=domain,
        url=features.url,
        timestamp=timestamp,
        engine_version=ENGINE_VERSION,
    )
