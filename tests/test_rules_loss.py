"""Tests for loss rules: LOSS-001 (daily), LOSS-002 (max drawdown)."""

from propcheck.engine.evaluator import evaluate_health
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet, pct, usd


def test_daily_loss_violation(static_rules, account_daily_loss):
    """Daily start $100k, current $94k, limit 5% → $6,000 loss ≥ $5,000. Violation."""
    r = evaluate_health(account_daily_loss, static_rules)
    assert r.classification == "VIOLATION"
    assert r.status == "danger"
    assert [v.rule_id for v in r.violations] == ["LOSS-001"]
    assert r.daily.limit_usd == 5000.0
    assert r.daily.used_usd == 6000.0
    assert r.daily.buffer_usd == 0.0
    assert r.daily.level == "BREACH"
    assert r.messages[0].startswith("VIOLATION: Daily drawdown")


def test_daily_loss_at_exactly_limit_is_violation(static_rules):
    account = AccountState(
        start_balance=100000.0,
        current_balance=95000.0,
        daily_start_balance=100000.0,
    )
    r = evaluate_health(account, static_rules)
    assert r.classification == "VIOLATION"
    assert r.daily.level == "BREACH"


def test_trailing_drawdown_violation(trailing_rules, account_trailing_breached):
    """Highest $110k, current $99.5k, limit 10% → floor $100k. Violation."""
    r = evaluate_health(account_trailing_breached, trailing_rules)
    assert r.classification == "VIOLATION"
    assert [v.rule_id for v in r.violations] == ["LOSS-002"]
    assert r.drawdown.mode == "trailing"
    assert r.drawdown.baseline_usd == 110000.0
    assert r.drawdown.floor_usd == 100000.0
    assert r.drawdown.used_usd == 10500.0


def test_static_drawdown_ignores_highest_balance(static_rules, account_static_recovered):
    """Static: start $100k, current $92k → 80% used, not above the warning band."""
    r = evaluate_health(account_static_recovered, static_rules)
    assert r.classification == "SAFE"
    assert r.status == "safe"
    assert r.drawdown.baseline_usd == 100000.0
    assert r.drawdown.used_usd == 8000.0
    assert r.drawdown.usage_pct == 0.8
    assert r.drawdown.level == "OK"
    assert r.violations == []


def test_static_account_would_breach_if_trailing(trailing_rules, account_static_recovered):
    r = evaluate_health(account_static_recovered, trailing_rules)
    assert r.classification == "VIOLATION"
    assert r.drawdown.baseline_usd == 115000.0


def test_drawdown_never_negative_when_highest_is_stale(trailing_rules):
    account = AccountState(
        start_balance=100000.0,
        current_balance=105000.0,
        highest_balance=100000.0,
        daily_start_balance=105000.0,
    )
    r = evaluate_health(account, trailing_rules)
    assert r.drawdown.used_usd == 0.0
    assert r.drawdown.baseline_usd == 105000.0
    assert r.drawdown.buffer_usd == 10000.0


def test_trailing_without_highest_is_approximate(trailing_rules):
    account = AccountState(
        start_balance=100000.0,
        current_balance=103000.0,
        daily_start_balance=103000.0,
    )
    r = evaluate_health(account, trailing_rules)
    assert r.drawdown.is_approx_trailing is True
    assert r.drawdown.baseline_usd == 103000.0
    assert any("highest balance unknown" in m for m in r.messages)


def test_trailing_floor_locks_at_start_balance():
    rules = RuleSet(
        max_limit=pct(0.10),
        drawdown_mode="trailing",
        lock_floor_at_start=True,
    )
    account = AccountState(
        start_balance=100000.0,
        current_balance=112000.0,
        highest_balance=125000.0,
    )
    r = evaluate_health(account, rules)
    assert r.drawdown.baseline_usd == 110000.0
    assert r.drawdown.floor_usd == 100000.0
    assert r.drawdown.used_usd == 0.0

    below = account.model_copy(update={"current_balance": 99000.0})
    r = evaluate_health(below, rules)
    assert r.classification == "VIOLATION"
    assert r.drawdown.used_usd == 11000.0


def test_warning_band(static_rules):
    """85% of the max drawdown used → WARNING, status warning."""
    account = AccountState(
        start_balance=100000.0,
        current_balance=91500.0,
        daily_start_balance=91500.0,
    )
    r = evaluate_health(account, static_rules)
    assert r.classification == "WARNING"
    assert r.status == "warning"
    assert r.drawdown.level == "WARNING"
    assert [w.severity for w in r.warnings] == ["MED"]
    assert r.messages[0].startswith("WARNING: Max drawdown")


def test_danger_band(static_rules):
    """95% used → still classified WARNING but status danger."""
    account = AccountState(
        start_balance=100000.0,
        current_balance=90500.0,
        daily_start_balance=90500.0,
    )
    r = evaluate_health(account, static_rules)
    assert r.classification == "WARNING"
    assert r.status == "danger"
    assert r.drawdown.level == "DANGER"
    assert [w.severity for w in r.warnings] == ["HIGH"]
    assert r.messages[0].startswith("DANGER: Max drawdown")


def test_equity_basis_uses_floating_pnl():
    rules = RuleSet(daily_limit=pct(0.05), max_limit=pct(0.10), basis="equity")
    account = AccountState(
        start_balance=100000.0,
        current_balance=100000.0,
        current_equity=94000.0,
        daily_start_balance=100000.0,
    )
    r = evaluate_health(account, rules)
    assert r.classification == "VIOLATION"
    assert r.drawdown.basis_used == "equity"
    assert r.daily.used_usd == 6000.0


def test_equity_basis_falls_back_to_balance():
    rules = RuleSet(max_limit=pct(0.10), basis="equity")
    account = AccountState(start_balance=100000.0, current_balance=99000.0)
    r = evaluate_health(account, rules)
    assert r.drawdown.basis_used == "balance"
    assert any("Equity basis requested" in m for m in r.messages)


def test_no_daily_rule_skips_daily_check():
    rules = RuleSet(max_limit=usd(2500.0), drawdown_mode="trailing")
    account = AccountState(
        start_balance=50000.0,
        current_balance=47900.0,
        highest_balance=50000.0,
    )
    r = evaluate_health(account, rules)
    assert r.daily is None
    assert r.drawdown.limit_usd == 2500.0
    assert r.classification == "WARNING"


def test_account_size_overrides_start_balance_for_pct_limits():
    rules = RuleSet(max_limit=pct(0.04), account_size=50000.0)
    account = AccountState(start_balance=50500.0, current_balance=50500.0)
    r = evaluate_health(account, rules)
    assert r.drawdown.limit_usd == 2000.0
