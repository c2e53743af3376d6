"""Derived metric computation and the deterministic health evaluation pipeline.

Evaluation order (fixed):
  1. Input validation (fail-closed: INVALID, never defaulted)
  2. Daily loss limit
  3. Max drawdown limit (static or trailing baseline)
  4. Profit target, minimum trading days, consistency
  5. Classification, first match wins:
       breach -> VIOLATION, approach -> WARNING, target met -> PASSED, else SAFE
"""

from __future__ import annotations

import math
from typing import List, Optional

from propcheck.engine.checks import (
    basis_value,
    check_consistency,
    check_daily_loss,
    check_drawdown,
    check_profit_target,
    drawdown_baseline,
    percent_base,
    violation_for,
    warning_for,
)
from propcheck.engine.results import (
    Classification,
    EvaluationResult,
    ErrorInfo,
    HealthStatus,
    LimitCheck,
    Violation,
)
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet
from propcheck.util.errors import (
    ComputationImpossible,
    InvalidInput,
    RuleEngineError,
)


def validate_inputs(account: AccountState, rules: RuleSet) -> None:
    """Raise InvalidInput / ComputationImpossible naming the offending field."""
    if rules.max_limit is None:
        raise InvalidInput("Rule set has no max drawdown limit.", field="max_limit")
    for name in (
        "start_balance",
        "current_balance",
        "current_equity",
        "highest_balance",
        "daily_start_balance",
        "best_day_profit",
    ):
        value = getattr(account, name)
        if value is not None and not math.isfinite(value):
            raise InvalidInput(f"{name} must be a finite number.", field=name)
    if account.start_balance <= 0:
        raise ComputationImpossible(
            f"start_balance must be positive, got {account.start_balance}.",
            field="start_balance",
        )
    if rules.daily_limit is not None and account.daily_start_balance is None:
        raise InvalidInput(
            "daily_start_balance is required when a daily loss limit applies.",
            field="daily_start_balance",
        )
    if rules.consistency is not None and account.best_day_profit is None:
        raise InvalidInput(
            "best_day_profit is required when a consistency rule applies.",
            field="best_day_profit",
        )


def invalid_result(err: RuleEngineError) -> EvaluationResult:
    """Build the INVALID result for a refused evaluation."""
    return EvaluationResult(
        classification="INVALID",
        status="danger",
        violations=[
            Violation(
                rule_id=err.code,
                severity="CRIT",
                message=err.message,
                inputs={"field": err.field},
                computed={},
            )
        ],
        messages=[f"ERROR: {err.message}"],
        error=ErrorInfo(code=err.code, message=err.message, field=err.field),
    )


def _status(checks: List[LimitCheck], classification: Classification) -> HealthStatus:
    if classification == "VIOLATION" or any(c.level == "DANGER" for c in checks):
        return "danger"
    if any(c.level == "WARNING" for c in checks):
        return "warning"
    return "safe"


def _limit_message(check: LimitCheck, name: str, noun: str) -> Optional[str]:
    used_pct = check.usage_pct * 100
    if check.level == "BREACH":
        return f"VIOLATION: {name} limit breached ({used_pct:.1f}% used)."
    if check.level == "DANGER":
        return (
            f"DANGER: {name} at {used_pct:.1f}% used. "
            f"Only ${check.buffer_usd:,.0f} {noun}."
        )
    if check.level == "WARNING":
        return (
            f"WARNING: {name} at {used_pct:.1f}% used. "
            f"${check.buffer_usd:,.0f} {noun}."
        )
    return None


def evaluate_health(account: AccountState, rules: RuleSet) -> EvaluationResult:
    """Evaluate an account snapshot against a rule set.

    Returns a deterministic EvaluationResult. Invalid inputs produce an
    INVALID result rather than an exception.
    """
    try:
        validate_inputs(account, rules)
    except RuleEngineError as err:
        return invalid_result(err)

    thresholds = rules.thresholds
    base = percent_base(account, rules)
    value, basis_used = basis_value(account, rules)
    messages: List[str] = []

    # === 1. Daily loss ===
    daily = None
    if rules.daily_limit is not None:
        daily = check_daily_loss(
            account.daily_start_balance,
            value,
            rules.daily_limit.to_usd(base),
            thresholds,
        )

    # === 2. Max drawdown ===
    max_limit_usd = rules.max_limit.to_usd(base)
    baseline, approx = drawdown_baseline(account, rules, max_limit_usd, value)
    drawdown = check_drawdown(
        mode=rules.drawdown_mode,
        baseline=baseline,
        value=value,
        limit_usd=max_limit_usd,
        basis_used=basis_used,
        is_approx_trailing=approx,
        thresholds=thresholds,
    )

    # === 3. Profit target / trading days / consistency ===
    profit_amount = account.current_balance - account.start_balance
    profit = None
    if rules.profit_target is not None:
        profit = check_profit_target(
            profit_amount,
            rules.profit_target.to_usd(base),
            account.trading_days,
            rules.min_trading_days,
        )

    consistency = None
    if rules.consistency is not None:
        # The open day counts as a candidate best day.
        best_day = max(account.best_day_profit, account.today_pnl)
        consistency = check_consistency(best_day, profit_amount, rules.consistency)

    # === 4. Classification ===
    limit_checks = [c for c in (daily, drawdown) if c is not None]
    violations = [v for v in map(violation_for, limit_checks) if v is not None]
    warnings = [w for w in map(warning_for, limit_checks) if w is not None]

    passed = (
        profit is not None
        and profit.target_met
        and profit.days_met
        and (consistency is None or consistency.satisfied)
    )

    if violations:
        classification: Classification = "VIOLATION"
    elif warnings:
        classification = "WARNING"
    elif passed:
        classification = "PASSED"
    else:
        classification = "SAFE"

    # === 5. Messages ===
    if daily is not None:
        msg = _limit_message(daily, "Daily drawdown", "remaining")
        if msg:
            messages.append(msg)
    msg = _limit_message(drawdown, "Max drawdown", "above floor")
    if msg:
        messages.append(msg)

    if approx:
        messages.append(
            "NOTE: Trailing drawdown enabled but highest balance unknown. "
            "Floor is approximate."
        )
    elif rules.is_trailing and account.current_balance > account.start_balance:
        messages.append(
            f"NOTE: Trailing drawdown active. Floor is at ${drawdown.floor_usd:,.0f}."
        )
    if rules.basis == "equity" and basis_used == "balance":
        messages.append(
            "NOTE: Equity basis requested but not available. Using balance instead."
        )
    if profit is not None and profit.target_met and not profit.days_met:
        messages.append(
            f"NOTE: Profit target met; {profit.min_trading_days - profit.trading_days} "
            "more trading day(s) required."
        )
    if consistency is not None and profit is not None and profit.target_met and not consistency.satisfied:
        messages.append(
            f"NOTE: Consistency rule not met: best day is "
            f"{consistency.day_share_pct:.1%} of total profit "
            f"(max {consistency.max_day_share_pct:.0%})."
        )
    if classification == "PASSED":
        messages.append("PASSED: Profit target reached and all rules satisfied.")
    elif classification == "SAFE":
        daily_txt = f"{1 - daily.usage_pct:.1%}" if daily is not None else "n/a"
        messages.append(
            f"OK: Account is healthy. Daily buffer: {daily_txt}, "
            f"Max buffer: {1 - drawdown.usage_pct:.1%}."
        )

    return EvaluationResult(
        classification=classification,
        status=_status(limit_checks, classification),
        daily=daily,
        drawdown=drawdown,
        profit=profit,
        consistency=consistency,
        violations=violations,
        warnings=warnings,
        messages=messages,
    )
