"""Tests for configuration helpers."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from bankrec import config
from bankrec.config import Settings, parse_comma_list


def test_parse_comma_list_defaults() -> None:
    assert parse_comma_list(None, ["a"]) == ["a"]


def test_parse_comma_list_accepts_list() -> None:
    assert parse_comma_list(["x", "y"], ["a"]) == ["x", "y"]


def test_parse_comma_list_splits_string() -> None:
    assert parse_comma_list("x, y, ,z", ["a"]) == ["x", "y", "z"]


def test_suite_settings_use_testing_environment() -> None:
    assert config.settings.environment == "testing"


def test_environment_alias_reads_deployment_environment(monkeypatch) -> None:
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("ENV", "staging")
    assert Settings(_env_file=None).environment == "staging"


def test_cors_origins_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://books.example.com, https://admin.example.com")
    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["https://books.example.com", "https://admin.example.com"]


def test_reconciliation_defaults(monkeypatch) -> None:
    for name in (
        "RECONCILIATION_DATE_TOLERANCE_DAYS",
        "RECONCILIATION_DESCRIPTION_MATCH",
        "RECONCILIATION_BALANCE_TOLERANCE",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.reconciliation_date_tolerance_days == 3
    assert settings.reconciliation_description_match is False
    assert settings.reconciliation_balance_tolerance == Decimal("0.01")


def test_negative_tolerance_rejected(monkeypatch) -> None:
    monkeypatch.setenv("RECONCILIATION_DATE_TOLERANCE_DAYS", "-1")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
