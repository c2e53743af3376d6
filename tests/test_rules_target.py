"""Tests for TARGET-001 (profit target, minimum trading days) and CONS-001."""

from propcheck.engine.evaluator import evaluate_health
from propcheck.models.account import AccountState
from propcheck.models.rules import ConsistencyRule, RuleSet, pct


def _consistency_rules(share: float = 0.40) -> RuleSet:
    return RuleSet(
        max_limit=pct(0.10),
        profit_target=pct(0.08),
        consistency=ConsistencyRule(max_day_share_pct=share),
    )


def test_passed(static_rules, account_passed):
    """Target 8% of $100k, balance $108.5k, 5 trading days ≥ 4. Passed."""
    r = evaluate_health(account_passed, static_rules)
    assert r.classification == "PASSED"
    assert r.status == "safe"
    assert r.profit.target_usd == 8000.0
    assert r.profit.profit_usd == 8500.0
    assert r.profit.remaining_usd == 0.0
    assert r.profit.progress_pct == 1.0
    assert r.profit.target_met is True
    assert r.profit.days_met is True
    assert r.messages[-1].startswith("PASSED:")


def test_target_met_but_days_short(static_rules, account_passed):
    account = account_passed.model_copy(update={"trading_days": 2})
    r = evaluate_health(account, static_rules)
    assert r.classification == "SAFE"
    assert r.profit.days_met is False
    assert any("2 more trading day(s)" in m for m in r.messages)


def test_progress_toward_target(static_rules):
    account = AccountState(
        start_balance=100000.0,
        current_balance=102000.0,
        daily_start_balance=102000.0,
    )
    r = evaluate_health(account, static_rules)
    assert r.classification == "SAFE"
    assert r.profit.remaining_usd == 6000.0
    assert r.profit.progress_pct == 0.25
    assert r.messages[-1].startswith("OK: Account is healthy.")


def test_no_target_never_passes():
    rules = RuleSet(max_limit=pct(0.10))
    account = AccountState(start_balance=100000.0, current_balance=150000.0)
    r = evaluate_health(account, rules)
    assert r.profit is None
    assert r.classification == "SAFE"


def test_consistency_satisfied_passes():
    account = AccountState(
        start_balance=100000.0,
        current_balance=110000.0,
        daily_start_balance=110000.0,
        best_day_profit=3000.0,
    )
    r = evaluate_health(account, _consistency_rules())
    assert r.consistency.day_share_pct == 0.3
    assert r.consistency.satisfied is True
    assert r.classification == "PASSED"


def test_consistency_blocks_pass():
    account = AccountState(
        start_balance=100000.0,
        current_balance=110000.0,
        daily_start_balance=110000.0,
        best_day_profit=6000.0,
    )
    r = evaluate_health(account, _consistency_rules())
    assert r.consistency.satisfied is False
    assert r.classification == "SAFE"
    assert any("Consistency rule not met" in m for m in r.messages)


def test_open_day_counts_toward_best_day():
    """Today's $6k gain outweighs the recorded $3k best day."""
    account = AccountState(
        start_balance=100000.0,
        current_balance=110000.0,
        daily_start_balance=104000.0,
        best_day_profit=3000.0,
    )
    r = evaluate_health(account, _consistency_rules())
    assert r.consistency.best_day_profit_usd == 6000.0
    assert r.consistency.satisfied is False


def test_consistency_without_profit_is_unmet():
    account = AccountState(
        start_balance=100000.0,
        current_balance=99000.0,
        best_day_profit=0.0,
    )
    r = evaluate_health(account, _consistency_rules())
    assert r.consistency.satisfied is False
    assert r.consistency.day_share_pct == 1.0


def test_warning_outranks_passed(static_rules, account_passed):
    """Target and days met, but today's $4,200 loss is in the daily warning band."""
    account = account_passed.model_copy(
        update={"daily_start_balance": 112700.0, "highest_balance": 112700.0}
    )
    r = evaluate_health(account, static_rules)
    assert r.profit.target_met is True
    assert r.profit.days_met is True
    assert r.daily.level == "WARNING"
    assert r.classification == "WARNING"
    assert not any(m.startswith("PASSED:") for m in r.messages)


def test_violation_outranks_passed(static_rules, account_passed):
    """Target and days met, but today's $5,100 loss breaches the daily limit."""
    account = account_passed.model_copy(
        update={"daily_start_balance": 113600.0, "highest_balance": 113600.0}
    )
    r = evaluate_health(account, static_rules)
    assert r.profit.target_met is True
    assert r.profit.days_met is True
    assert r.daily.level == "BREACH"
    assert r.classification == "VIOLATION"
    assert r.violations[0].rule_id == "LOSS-001"
