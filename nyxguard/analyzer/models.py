"""Scoring data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

from ..constants import ReasonCategory, ReputationStatus, RiskLevel


@dataclass(frozen=True)
class ReputationSummary:
    """Third-party verdict counts and reputation for a domain."""

    malicious: int = 0
    suspicious: int = 0
    harmless: int = 0
    undetected: int = 0
    reputation: int = 0
    last_analysis_date: int = 0


@dataclass(frozen=True)
class Features:
    """Immutable snapshot of observed page and network signals."""

    url: str
    domain: str
    has_password_form: bool = False
    suspicious_login_keywords_found: tuple[str, ...] = ()
    overlay_count: int = 0
    has_blocking_overlay: bool = False
    notification_dark_pattern_keywords: tuple[str, ...] = ()
    ad_like_elements_count: int = 0
    iframe_hidden_count: int = 0
    count_trackers: int = 0
    reputation_status: ReputationStatus = ReputationStatus.NO_DATA
    reputation_summary: Optional[ReputationSummary] = None
    page_text_sample: Optional[str] = None

    def __post_init__(self):
        # Summary present iff the lookup was checked.
        if self.reputation_summary is not None and self.reputation_status != ReputationStatus.CHECKED:
            raise ValueError("reputation_summary requires reputation_status 'checked'")
        if self.reputation_summary is None and self.reputation_status == ReputationStatus.CHECKED:
            raise ValueError("reputation_status 'checked' requires a reputation_summary")
        for name in ("overlay_count", "ad_like_elements_count", "iframe_hidden_count", "count_trackers"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["suspicious_login_keywords_found"] = list(self.suspicious_login_keywords_found)
        data["notification_dark_pattern_keywords"] = list(self.notification_dark_pattern_keywords)
        data["reputation_status"] = str(self.reputation_status)
        return data


@dataclass(frozen=True)
class Reason:
    """One weighted, categorized scoring contribution."""

    id: str
    title: str
    detail: str
    weight: int
    category: ReasonCategory

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "detail": self.detail,
            "weight": self.weight,
            "category": str(self.category),
        }


@dataclass
class DetectionResult:
    """Outcome of one evaluation."""

    score: int
    level: RiskLevel
    features: Features
    domain: str
    url: str
    timestamp: float
    engine_version: str
    reasons: list[Reason] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": str(self.level),
            "reasons": [reason.to_dict() for reason in self.reasons],
            "features": self.features.to_dict(),
            "domain": self.domain,
            "url": self.url,
            "timestamp": self.timestamp,
            "engine_version": self.engine_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DetectionResult":
        """Rebuild a result stored by to_dict()."""
        feats = dict(data["features"])
        summary = feats.pop("reputation_summary", None)
        features = Features(
            **{
                **feats,
                "suspicious_login_keywords_found": tuple(feats.get("suspicious_login_keywords_found") or ()),
                "notification_dark_pattern_keywords": tuple(
                    feats.get("notification_dark_pattern_keywords") or ()
                ),
                "reputation_status": ReputationStatus.from_string(feats.get("reputation_status")),
            },
            reputation_summary=ReputationSummary(**summary) if summary else None,
        )
        return cls(
            score=int(data["score"]),
            level=RiskLevel(data["level"]),
            reasons=[
                Reason(
                    id=r["id"],
                    title=r["title"],
                    detail=r["detail"],
                    weight=int(r["weight"]),
                    category=ReasonCategory(r["category"]),
                )
                for r in data.get("reasons", [])
            ],
            features=features,
            domain=data["domain"],
            url=data["url"],
            timestamp=float(data["timestamp"]),
            engine_version=data.get("engine_version", ""),
        )
