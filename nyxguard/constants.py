"""Centralized constants for NyxGuard.

Enums shared by the scoring engine, the reputation adapter and the scan
pipeline, so every layer agrees on the same string values.
"""

from enum import Enum

ENGINE_VERSION = "0.1.0"


class RiskLevel(str, Enum):
    """Classification band of a risk score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


class ReasonCategory(str, Enum):
    """Which family of checks produced a reason."""

    MALICIOUS = "malicious"
    ADS = "ads"
    CONTENT = "content"
    SYSTEM = "system"  # allowlist/denylist, never scaled by sensitivity

    def __str__(self) -> str:
        return self.value


class ReputationStatus(str, Enum):
    """Outcome of a reputation lookup."""

    CHECKED = "checked"
    NO_DATA = "no_data"
    ERROR = "error"

    @classmethod
    def from_string(cls, value: str | None) -> "ReputationStatus":
        """Convert a stored status to the enum, defaulting to NO_DATA."""
        if not value:
            return cls.NO_DATA
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NO_DATA

    def __str__(self) -> str:
        return self.value
