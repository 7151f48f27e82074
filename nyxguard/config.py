"""Configuration management for NyxGuard."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .analyzer.reputation import (
    CACHE_TTL_SECONDS,
    ERROR_CACHE_TTL_SECONDS,
    MIN_REQUEST_INTERVAL_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    VIRUSTOTAL_API_BASE,
)
from .analyzer.rules import WEIGHTS, merge_weights

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Process configuration loaded from environment."""

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    log_level: str = "INFO"

    # Reputation lookups
    virustotal_api_base: str = VIRUSTOTAL_API_BASE
    reputation_timeout: float = REQUEST_TIMEOUT_SECONDS
    reputation_min_interval: float = MIN_REQUEST_INTERVAL_SECONDS
    reputation_cache_ttl: float = CACHE_TTL_SECONDS
    reputation_error_cache_ttl: float = ERROR_CACHE_TTL_SECONDS

    # Scan pipeline
    result_ttl: float = 10 * 60
    recalc_delay_ms: int = 400
    alert_cooldown: float = 2 * 60

    # Scoring weights (override via config/weights.yaml)
    weights: dict[str, int] = field(default_factory=lambda: dict(WEIGHTS))

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "nyxguard.db"


def _load_weight_overrides(config_dir: Path) -> dict:
    """Load scoring weight overrides from config/weights.yaml (optional)."""
    path = Path(config_dir or ".") / "weights.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse weights.yaml: %s", exc)
        return {}

    if not isinstance(data, dict):
        logger.warning("Ignoring weights.yaml: expected a mapping")
        return {}
    weights = data.get("weights", data)
    return weights if isinstance(weights, dict) else {}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("NYXGUARD_CONFIG_DIR", "./config"))
    return Config(
        data_dir=Path(os.getenv("NYXGUARD_DATA_DIR", "./data")),
        config_dir=config_dir,
        log_level=os.getenv("NYXGUARD_LOG_LEVEL", "INFO").upper(),
        virustotal_api_base=os.getenv("VIRUSTOTAL_API_BASE", VIRUSTOTAL_API_BASE),
        reputation_timeout=_env_float("REPUTATION_TIMEOUT", REQUEST_TIMEOUT_SECONDS),
        reputation_min_interval=_env_float("REPUTATION_MIN_INTERVAL", MIN_REQUEST_INTERVAL_SECONDS),
        reputation_cache_ttl=_env_float("REPUTATION_CACHE_TTL", CACHE_TTL_SECONDS),
        reputation_error_cache_ttl=_env_float("REPUTATION_ERROR_CACHE_TTL", ERROR_CACHE_TTL_SECONDS),
        result_ttl=_env_float("RESULT_TTL", 10 * 60),
        recalc_delay_ms=int(_env_float("RECALC_DELAY_MS", 400)),
        alert_cooldown=_env_float("ALERT_COOLDOWN", 2 * 60),
        weights=merge_weights(_load_weight_overrides(config_dir)),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if not config.virustotal_api_base.startswith(("http://", "https://")):
        errors.append("VIRUSTOTAL_API_BASE must be an http(s) URL")
    if config.reputation_timeout <= 0:
        errors.append("REPUTATION_TIMEOUT must be positive")
    if config.reputation_min_interval < 0:
        errors.append("REPUTATION_MIN_INTERVAL must not be negative")
    if config.result_ttl <= 0:
        errors.append("RESULT_TTL must be positive")
    if config.recalc_delay_ms < 0:
        errors.append("RECALC_DELAY_MS must not be negative")
    return errors
