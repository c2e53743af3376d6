"""Shared fixtures for all tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from propcheck.models.account import AccountState
from propcheck.util.io import load_rules_yaml

FIXTURES = Path(__file__).parent / "fixtures"


def _load_account(name: str) -> AccountState:
    raw = json.loads((FIXTURES / "accounts" / name).read_text(encoding="utf-8"))
    return AccountState.model_validate(raw)


@pytest.fixture
def static_rules():
    return load_rules_yaml(FIXTURES / "rules" / "static_100k.yaml")


@pytest.fixture
def trailing_rules():
    return load_rules_yaml(FIXTURES / "rules" / "trailing_100k.yaml")


@pytest.fixture
def catalog_path():
    return FIXTURES / "rules" / "catalog.yaml"


@pytest.fixture
def account_fresh():
    return _load_account("fresh_100k.json")


@pytest.fixture
def account_daily_loss():
    return _load_account("daily_loss_breached.json")


@pytest.fixture
def account_trailing_breached():
    return _load_account("trailing_breached.json")


@pytest.fixture
def account_static_recovered():
    return _load_account("static_recovered.json")


@pytest.fixture
def account_passed():
    return _load_account("passed.json")
