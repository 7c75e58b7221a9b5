"""Tests for config module."""
from __future__ import annotations

import sys

import pytest

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

import config
from config import (
    ANOMALY_CPU_PERCENT,
    LOG_RING_CAPACITY,
    NET_SAMPLE_SEC,
    SMOOTHING_RATE_REAL,
    SMOOTHING_RATE_SIMULATED,
    EngineSettings,
    get,
    load_config_file,
    settings_from_config,
)


@pytest.fixture(autouse=True)
def _clean_overrides():
    config.reset_overrides()
    yield
    config.reset_overrides()


def test_config_constants() -> None:
    assert SMOOTHING_RATE_REAL > SMOOTHING_RATE_SIMULATED > 0
    assert NET_SAMPLE_SEC > 0
    assert ANOMALY_CPU_PERCENT > 0
    assert LOG_RING_CAPACITY > 0


def test_get_dot_path() -> None:
    assert get("engine.info_refresh_sec") == 2.0
    assert get("speedtest.target_bytes") == 10_000_000
    assert get("nope.missing", "fallback") == "fallback"


def test_settings_defaults_match_config() -> None:
    s = settings_from_config()
    assert s == EngineSettings()
    assert s.logring_capacity == 40
    assert s.speedtest_upload_factor == 0.15


def test_load_yaml_overrides(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("anomaly:\n  cpu_percent: 80\nlogring:\n  capacity: 10\n", encoding="utf-8")
    assert load_config_file(path) is True
    assert get("anomaly.cpu_percent") == 80
    assert get("anomaly.ram_percent") == 95.0
    s = settings_from_config()
    assert s.anomaly_cpu_percent == 80.0
    assert s.logring_capacity == 10


def test_load_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("engine: [unclosed\n", encoding="utf-8")
    assert load_config_file(path) is False
    assert load_config_file(tmp_path / "missing.yaml") is False


def test_env_overrides_file(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("RF_ANOMALY_RAM", "90")
    path = tmp_path / "config.yaml"
    path.write_text("anomaly:\n  ram_percent: 70\n", encoding="utf-8")
    assert load_config_file(path) is True
    assert get("anomaly.ram_percent") == 90.0
