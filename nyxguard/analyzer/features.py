"""Feature bundle construction from raw content payloads.

Page inspection itself happens outside NyxGuard; it sends a payload dict of
counts, flags and keyword hits. This module turns that payload plus the
per-tab tracker count and the reputation lookup into an immutable Features.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional

from ..constants import ReputationStatus
from ..utils.domains import normalize_domain
from .models import Features
from .reputation import ReputationLookup

LOGIN_KEYWORDS = [
    "login",
    "log in",
    "sign in",
    "verify",
    "bank",
    "wallet",
    "account",
    "iniciar sesion",
    "acceder",
    "verificar",
    "banco",
    "cartera",
    "cuenta",
]

NOTIFICATION_KEYWORDS = [
    "enable notifications",
    "click allow",
    "tap allow",
    "press allow",
    "allow to continue",
    "enable to continue",
    "habilitar notificaciones",
    "permitir notificaciones",
    "haz clic en permitir",
    "to continue allow",
    "para continuar",
]

AD_TOKENS = ["ad", "ads", "sponsor", "sponsored", "promoted", "taboola", "outbrain"]
AD_TOKEN_PATTERN = re.compile(r"\b(" + "|".join(AD_TOKENS) + r")\b")
MAX_AD_LIKE_ELEMENTS = 200
TEXT_SAMPLE_LENGTH = 500


def find_keywords(text: str, keywords: Iterable[str]) -> tuple[str, ...]:
    """Return the keywords contained in text, in vocabulary order."""
    lower = (text or "").lower()
    return tuple(dict.fromkeys(k for k in keywords if k in lower))


def count_ad_like_tokens(attributes: Iterable[str]) -> int:
    """Count id/class strings that match the ad vocabulary (capped)."""
    count = 0
    for value in attributes:
        if AD_TOKEN_PATTERN.search((value or "").lower()):
            count += 1
            if count >= MAX_AD_LIKE_ELEMENTS:
                break
    return count


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _keywords(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    cleaned = (str(item).strip().lower() for item in value if isinstance(item, str))
    return tuple(dict.fromkeys(item for item in cleaned if item))


def build_features(
    payload: Mapping[str, Any],
    tracker_count: int = 0,
    reputation: Optional[ReputationLookup] = None,
    include_text_sample: bool = False,
) -> Optional[Features]:
    """Build a Features bundle; None when no domain can be derived."""
    url = payload.get("url")
    if not isinstance(url, str):
        return None
    domain = normalize_domain(payload.get("domain") or "") or normalize_domain(url)
    if not domain:
        return None

    text = payload.get("page_text_sample") if isinstance(payload.get("page_text_sample"), str) else None

    login_keywords = _keywords(payload.get("suspicious_login_keywords_found"))
    notification_keywords = _keywords(payload.get("notification_dark_pattern_keywords"))
    # Payloads may carry raw visible text instead of pre-matched keywords.
    if text and not login_keywords:
        login_keywords = find_keywords(text, LOGIN_KEYWORDS)
    if text and not notification_keywords:
        notification_keywords = find_keywords(text, NOTIFICATION_KEYWORDS)

    status = reputation.status if reputation else ReputationStatus.NO_DATA
    summary = reputation.summary if reputation else None
    if status != ReputationStatus.CHECKED or summary is None:
        summary = None
        if status == ReputationStatus.CHECKED:
            status = ReputationStatus.NO_DATA

    return Features(
        url=url,
        domain=domain,
        has_password_form=payload.get("has_password_form") is True,
        suspicious_login_keywords_found=login_keywords,
        overlay_count=_non_negative_int(payload.get("overlay_count")),
        has_blocking_overlay=payload.get("has_blocking_overlay") is True,
        notification_dark_pattern_keywords=notification_keywords,
        ad_like_elements_count=_non_negative_int(payload.get("ad_like_elements_count")),
        iframe_hidden_count=_non_negative_int(payload.get("iframe_hidden_count")),
        count_trackers=max(0, int(tracker_count)),
        reputation_status=status,
        reputation_summary=summary,
        page_text_sample=text[:TEXT_SAMPLE_LENGTH] if (text and include_text_sample) else None,
    )
