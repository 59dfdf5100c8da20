from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from services.safety_policy import SafetyPolicy  # noqa: E402


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_development_defaults_to_strict():
    assert _settings(ENVIRONMENT="development").safety_policy is SafetyPolicy.STRICT
    assert _settings(ENVIRONMENT="test").safety_policy is SafetyPolicy.STRICT


def test_production_like_defaults_to_permissive():
    assert _settings(ENVIRONMENT="production").safety_policy is SafetyPolicy.PERMISSIVE
    assert _settings(ENVIRONMENT=" Staging ").safety_policy is SafetyPolicy.PERMISSIVE


def test_explicit_safety_mode_wins():
    assert _settings(ENVIRONMENT="production", SAFETY_MODE="strict").safety_policy is SafetyPolicy.STRICT
    assert _settings(ENVIRONMENT="development", SAFETY_MODE="PERMISSIVE").safety_policy is SafetyPolicy.PERMISSIVE


def test_validate_rejects_unknown_safety_mode():
    with pytest.raises(RuntimeError, match="SAFETY_MODE"):
        _settings(SAFETY_MODE="lenient").validate_safety_configuration()


def test_validate_rejects_non_positive_windows():
    with pytest.raises(RuntimeError) as exc:
        _settings(PAIN_ACTIVE_WINDOW_DAYS=0, EMERGENCY_STOP_MIN_REPORTS=0).validate_safety_configuration()
    assert "PAIN_ACTIVE_WINDOW_DAYS" in str(exc.value)
    assert "EMERGENCY_STOP_MIN_REPORTS" in str(exc.value)


def test_valid_configuration_passes():
    _settings(SAFETY_MODE="permissive").validate_safety_configuration()


def test_policy_parsing():
    assert SafetyPolicy.from_value(" strict ") is SafetyPolicy.STRICT
    with pytest.raises(ValueError):
        SafetyPolicy.from_value("off")
