"""Tests for environment configuration."""

import logging

from nyxguard.analyzer.rules import WEIGHTS
from nyxguard.config import Config, load_config, validate_config


def _isolate(monkeypatch, tmp_path):
    for name in (
        "VIRUSTOTAL_API_BASE",
        "REPUTATION_TIMEOUT",
        "REPUTATION_MIN_INTERVAL",
        "REPUTATION_CACHE_TTL",
        "REPUTATION_ERROR_CACHE_TTL",
        "RESULT_TTL",
        "RECALC_DELAY_MS",
        "ALERT_COOLDOWN",
        "NYXGUARD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NYXGUARD_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("NYXGUARD_CONFIG_DIR", str(tmp_path))


def test_defaults(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    config = load_config()

    assert config.db_path == tmp_path / "data" / "nyxguard.db"
    assert config.reputation_min_interval == 16.0
    assert config.reputation_cache_ttl == 6 * 60 * 60
    assert config.reputation_error_cache_ttl == 5 * 60
    assert config.result_ttl == 600
    assert config.recalc_delay_ms == 400
    assert config.alert_cooldown == 120
    assert config.weights == WEIGHTS
    assert validate_config(config) == []


def test_env_overrides(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    monkeypatch.setenv("REPUTATION_MIN_INTERVAL", "2.5")
    monkeypatch.setenv("RECALC_DELAY_MS", "150")
    monkeypatch.setenv("NYXGUARD_LOG_LEVEL", "debug")

    config = load_config()
    assert config.reputation_min_interval == 2.5
    assert config.recalc_delay_ms == 150
    assert config.log_level == "DEBUG"


def test_invalid_number_falls_back(monkeypatch, tmp_path, caplog):
    _isolate(monkeypatch, tmp_path)
    monkeypatch.setenv("RESULT_TTL", "ten minutes")
    with caplog.at_level(logging.WARNING, logger="nyxguard.config"):
        config = load_config()
    assert config.result_ttl == 600
    assert "RESULT_TTL" in caplog.text


def test_weight_overrides_from_yaml(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    (tmp_path / "weights.yaml").write_text(
        "weights:\n  punycode_domain: 30\n  denylist: high\n  not_a_weight: 3\n"
    )
    config = load_config()
    assert config.weights["punycode_domain"] == 30
    assert config.weights["denylist"] == WEIGHTS["denylist"]
    assert "not_a_weight" not in config.weights


def test_malformed_yaml_is_ignored(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    (tmp_path / "weights.yaml").write_text("weights: [unclosed\n")
    assert load_config().weights == WEIGHTS


def test_validate_config_reports_errors():
    config = Config(
        virustotal_api_base="ftp://vt.test/",
        reputation_timeout=0,
        reputation_min_interval=-1,
        result_ttl=0,
        recalc_delay_ms=-5,
    )
    errors = validate_config(config)
    assert len(errors) == 5
    assert any("VIRUSTOTAL_API_BASE" in e for e in errors)
