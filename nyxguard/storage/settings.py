"""User settings: defaults, validation and persistence.

Every field is enumerated with its fallback so a stored record with missing,
wrongly-typed or out-of-range values still yields a fully populated Settings
that satisfies its invariants (lowMax < mediumMax < 100, disjoint lists).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional

from ..utils.domains import normalize_domain
from .database import Database

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"

SENSITIVITY_MIN = 0.5
SENSITIVITY_MAX = 1.5
LOW_MAX_LIMIT = 98
MEDIUM_MAX_LIMIT = 99

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass
class Settings:
    """Process-wide user configuration."""

    enable_malicious_checks: bool = True
    enable_ads_checks: bool = True
    enable_content_checks: bool = True
    enable_text_sample: bool = False
    enable_reputation_checks: bool = False
    enable_danger_alerts: bool = True
    sensitivity: float = 1.0
    low_max: int = 24
    medium_max: int = 59
    reputation_api_key: str = ""
    allowlist: list[str] = field(default_factory=list)
    denylist: list[str] = field(default_factory=list)


DEFAULT_SETTINGS = Settings()

_BOOL_FIELDS = (
    "enable_malicious_checks",
    "enable_ads_checks",
    "enable_content_checks",
    "enable_text_sample",
    "enable_reputation_checks",
    "enable_danger_alerts",
)


@dataclass
class DomainParseResult:
    """Outcome of parsing user-entered domain lines."""

    domains: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _parse_number(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return fallback
    return numeric if math.isfinite(numeric) else fallback


def parse_domain_lines(text: str) -> DomainParseResult:
    """Parse one-domain-per-line text into normalized, deduplicated domains."""
    result = DomainParseResult()
    seen: set[str] = set()

    for line in _LINE_SPLIT.split(text or ""):
        entry = line.strip()
        if not entry:
            continue
        # A domain field, not a URL
        if "://" in entry or "/" in entry:
            result.invalid.append(entry)
            continue
        normalized = normalize_domain(entry)
        if not normalized:
            result.invalid.append(entry)
            continue
        if normalized not in seen:
            seen.add(normalized)
            result.domains.append(normalized)

    return result


def _domain_list(values: Any) -> DomainParseResult:
    if not isinstance(values, (list, tuple)):
        return DomainParseResult()
    strings = [v for v in values if isinstance(v, str)]
    result = parse_domain_lines("\n".join(strings))
    result.invalid.extend(repr(v) for v in values if not isinstance(v, str))
    return result


def normalize_domain_list(values: Iterable[str]) -> list[str]:
    return _domain_list(list(values)).domains


def normalize_thresholds(low_max: float, medium_max: float) -> tuple[int, int]:
    """Round and clamp classification bounds so three non-empty bands exist."""
    low = int(_clamp(math.floor(low_max + 0.5), 0, LOW_MAX_LIMIT))
    medium = int(_clamp(math.floor(medium_max + 0.5), low + 1, MEDIUM_MAX_LIMIT))
    return low, medium


def normalize_settings(raw: Optional[Mapping[str, Any]]) -> Settings:
    """Build a valid Settings from an untrusted stored record."""
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    toggles = {}
    for name in _BOOL_FIELDS:
        value = data.get(name)
        toggles[name] = value if isinstance(value, bool) else getattr(DEFAULT_SETTINGS, name)

    low_max, medium_max = normalize_thresholds(
        _parse_number(data.get("low_max"), DEFAULT_SETTINGS.low_max),
        _parse_number(data.get("medium_max"), DEFAULT_SETTINGS.medium_max),
    )
    sensitivity = _clamp(
        _parse_number(data.get("sensitivity"), DEFAULT_SETTINGS.sensitivity),
        SENSITIVITY_MIN,
        SENSITIVITY_MAX,
    )
    api_key = data.get("reputation_api_key")
    api_key = api_key.strip() if isinstance(api_key, str) else ""

    allow = _domain_list(data.get("allowlist"))
    deny = _domain_list(data.get("denylist"))
    allow_set = set(allow.domains)
    denylist = [d for d in deny.domains if d not in allow_set]

    invalid_count = len(allow.invalid) + len(deny.invalid)
    if invalid_count:
        logger.info("Dropped %d invalid domain list entries while loading settings", invalid_count)

    return Settings(
        **toggles,
        sensitivity=sensitivity,
        low_max=low_max,
        medium_max=medium_max,
        reputation_api_key=api_key,
        allowlist=allow.domains,
        denylist=denylist,
    )


def settings_to_dict(settings: Settings) -> dict:
    return asdict(settings)


class SettingsStore:
    """Read-modify-write access to the persisted settings record."""

    def __init__(self, database: Database):
        self.database = database

    async def get(self) -> Settings:
        """Load and normalize the stored settings (defaults when absent)."""
        stored = await self.database.get_json(SETTINGS_KEY)
        return normalize_settings(stored)

    async def save(self, settings: Settings) -> Settings:
        normalized = normalize_settings(settings_to_dict(settings))
        await self.database.set_json(SETTINGS_KEY, settings_to_dict(normalized))
        return normalized

    async def update_domain_lists(
        self,
        allowlist: Optional[Iterable[str]] = None,
        denylist: Optional[Iterable[str]] = None,
    ) -> Settings:
        """Merge a partial allow/deny update; the allowlist wins on conflict."""
        current = await self.get()
        next_allow = normalize_domain_list(current.allowlist if allowlist is None else allowlist)
        next_deny = normalize_domain_list(current.denylist if denylist is None else denylist)
        allow_set = set(next_allow)
        updated = replace(
            current,
            allowlist=next_allow,
            denylist=[d for d in next_deny if d not in allow_set],
        )
        return await self.save(updated)

    async def add_to_list(self, domain: str, list_name: str) -> Settings:
        """Add a domain to one list and remove it from the other."""
        normalized = normalize_domain(domain)
        if not normalized:
            raise ValueError(f"Invalid domain: {domain!r}")
        if list_name not in ("allow", "deny"):
            raise ValueError(f"Unknown list: {list_name!r}")

        current = await self.get()
        allowlist = [d for d in current.allowlist if d != normalized]
        denylist = [d for d in current.denylist if d != normalized]
        if list_name == "allow":
            allowlist.append(normalized)
        else:
            denylist.append(normalized)

        logger.info("Added %s to %slist", normalized, list_name)
        return await self.update_domain_lists(allowlist=allowlist, denylist=denylist)

    async def reset(self) -> Settings:
        """Persist and return the default settings."""
        logger.info("Resetting settings to defaults")
        return await self.save(Settings())
