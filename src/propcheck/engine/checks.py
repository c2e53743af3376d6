"""Individual rule checks.

Each check receives already-derived amounts and returns a check record.
Breached and approached limits are turned into Violations by
``violation_for`` / ``warning_for``. Checks are pure functions with no side
effects.
"""

from __future__ import annotations

from typing import Optional

from propcheck.engine.results import (
    ConsistencyCheck,
    DrawdownCheck,
    Level,
    LimitCheck,
    ProfitCheck,
    Violation,
)
from propcheck.models.account import AccountState
from propcheck.models.rules import ConsistencyRule, RuleSet, Thresholds

DAILY_LOSS = "LOSS-001"
MAX_DRAWDOWN = "LOSS-002"
PROFIT_TARGET = "TARGET-001"
CONSISTENCY = "CONS-001"

_RULE_NAMES = {
    DAILY_LOSS: "Daily loss",
    MAX_DRAWDOWN: "Max drawdown",
}


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 1.0 if numerator > 0 else 0.0
    return numerator / denominator


def usage_level(used: float, limit: float, thresholds: Thresholds) -> Level:
    """Touching the limit is a breach; the warning bands are strict."""
    if used >= limit:
        return "BREACH"
    if used > limit * thresholds.danger_usage_pct:
        return "DANGER"
    if used > limit * thresholds.warning_usage_pct:
        return "WARNING"
    return "OK"


def percent_base(account: AccountState, rules: RuleSet) -> float:
    """Account size used to convert pct limits to USD."""
    if rules.account_size is not None:
        return rules.account_size
    return account.start_balance


def basis_value(account: AccountState, rules: RuleSet) -> tuple[float, str]:
    """Return (value, basis_used). Equity falls back to balance when unknown."""
    if rules.basis == "equity" and account.current_equity is not None:
        return account.current_equity, "equity"
    return account.current_balance, "balance"


def drawdown_baseline(
    account: AccountState, rules: RuleSet, limit_usd: float, value: float
) -> tuple[float, bool]:
    """Return (baseline, is_approx_trailing) for the max drawdown rule.

    Static accounts always measure from the starting balance; trailing
    accounts from the highest balance reached.
    """
    if not rules.is_trailing:
        return account.start_balance, False

    approx = False
    if account.highest_balance is not None:
        baseline = account.highest_balance
    else:
        baseline = max(account.start_balance, account.current_balance)
        approx = True
    # Running max; tolerates a stale highest_balance below the current value.
    baseline = max(baseline, value)
    if rules.lock_floor_at_start:
        baseline = min(baseline, account.start_balance + limit_usd)
    return baseline, approx


def check_daily_loss(
    daily_start_balance: float,
    value: float,
    limit_usd: float,
    thresholds: Thresholds,
) -> LimitCheck:
    """LOSS-001: loss since the start of the trading day."""
    used = max(0.0, daily_start_balance - value)
    return LimitCheck(
        rule_id=DAILY_LOSS,
        limit_usd=limit_usd,
        used_usd=round(used, 2),
        buffer_usd=round(max(0.0, limit_usd - used), 2),
        usage_pct=round(_ratio(used, limit_usd), 6),
        level=usage_level(used, limit_usd, thresholds),
    )


def check_drawdown(
    mode: str,
    baseline: float,
    value: float,
    limit_usd: float,
    basis_used: str,
    is_approx_trailing: bool,
    thresholds: Thresholds,
) -> DrawdownCheck:
    """LOSS-002: decline from the static or trailing baseline."""
    used = max(0.0, baseline - value)
    return DrawdownCheck(
        rule_id=MAX_DRAWDOWN,
        limit_usd=limit_usd,
        used_usd=round(used, 2),
        buffer_usd=round(max(0.0, limit_usd - used), 2),
        usage_pct=round(_ratio(used, limit_usd), 6),
        level=usage_level(used, limit_usd, thresholds),
        mode=mode,
        baseline_usd=round(baseline, 2),
        floor_usd=round(baseline - limit_usd, 2),
        basis_used=basis_used,
        is_approx_trailing=is_approx_trailing,
    )


def check_profit_target(
    profit: float,
    target_usd: float,
    trading_days: int,
    min_trading_days: int,
) -> ProfitCheck:
    """TARGET-001: profit target and minimum trading days."""
    return ProfitCheck(
        target_usd=target_usd,
        profit_usd=round(profit, 2),
        remaining_usd=round(max(0.0, target_usd - max(0.0, profit)), 2),
        progress_pct=round(min(1.0, max(0.0, _ratio(profit, target_usd))), 6),
        target_met=profit >= target_usd,
        trading_days=trading_days,
        min_trading_days=min_trading_days,
        days_met=trading_days >= min_trading_days,
    )


def check_consistency(
    best_day_profit: float,
    total_profit: float,
    rule: ConsistencyRule,
) -> ConsistencyCheck:
    """CONS-001: best day must not dominate total profit.

    With no total profit yet the rule cannot be judged and counts as unmet.
    """
    if total_profit <= 0:
        share = 1.0
        satisfied = False
    else:
        share = max(0.0, best_day_profit) / total_profit
        satisfied = share <= rule.max_day_share_pct
    return ConsistencyCheck(
        best_day_profit_usd=round(best_day_profit, 2),
        total_profit_usd=round(total_profit, 2),
        day_share_pct=round(share, 6),
        max_day_share_pct=rule.max_day_share_pct,
        satisfied=satisfied,
    )


def violation_for(check: LimitCheck) -> Optional[Violation]:
    """CRIT violation when a loss limit is breached."""
    if check.level != "BREACH":
        return None
    name = _RULE_NAMES.get(check.rule_id, check.rule_id)
    return Violation(
        rule_id=check.rule_id,
        severity="CRIT",
        message=(
            f"{name} ${check.used_usd:,.2f} breaches "
            f"limit ${check.limit_usd:,.2f}."
        ),
        inputs={"limit_usd": check.limit_usd},
        computed={"used_usd": check.used_usd, "usage_pct": check.usage_pct},
    )


def warning_for(check: LimitCheck) -> Optional[Violation]:
    """MED/HIGH record when a loss limit is approached but not breached."""
    if check.level not in ("WARNING", "DANGER"):
        return None
    name = _RULE_NAMES.get(check.rule_id, check.rule_id)
    return Violation(
        rule_id=check.rule_id,
        severity="HIGH" if check.level == "DANGER" else "MED",
        message=(
            f"{name} at {check.usage_pct:.1%} of limit, "
            f"${check.buffer_usd:,.2f} remaining."
        ),
        inputs={"limit_usd": check.limit_usd},
        computed={"used_usd": check.used_usd, "usage_pct": check.usage_pct},
    )
