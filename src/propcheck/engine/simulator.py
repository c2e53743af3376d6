"""Hypothetical trade simulation on top of the health evaluator.

A simulation projects the account through ``apply_trade`` (the input
snapshot is untouched), evaluates the projection and reports which rules
would be breached and how much room each limit would have left.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional

from propcheck.engine.checks import DAILY_LOSS, MAX_DRAWDOWN, PROFIT_TARGET, basis_value
from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.ledger import apply_trade
from propcheck.engine.results import (
    ErrorInfo,
    EvaluationResult,
    LimitCheck,
    Recommendations,
    SimulationResult,
    Verdict,
)
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet
from propcheck.util.errors import InvalidInput, RuleEngineError

# Projected balances below this are rejected as nonsensical input.
BALANCE_FLOOR = 0.0

_NAMES = {DAILY_LOSS: "daily loss", MAX_DRAWDOWN: "max drawdown"}


def _signed_usage(
    account: AccountState, rules: RuleSet, result: EvaluationResult
) -> List[tuple[float, float]]:
    """(limit, used) per loss limit, where used goes negative while the
    account sits above the limit's reference balance."""
    value, _ = basis_value(account, rules)
    usage = []
    if result.daily is not None:
        usage.append((result.daily.limit_usd, account.daily_start_balance - value))
    if result.drawdown is not None:
        usage.append((result.drawdown.limit_usd, result.drawdown.baseline_usd - value))
    return usage


def _max_risk_before_violation(
    account: AccountState, rules: RuleSet, result: EvaluationResult
) -> float:
    usage = _signed_usage(account, rules, result) if result.is_valid else []
    if not usage:
        return 0.0
    return round(max(0.0, min(limit - used for limit, used in usage)), 2)


def _max_safe_risk(
    account: AccountState, rules: RuleSet, result: EvaluationResult
) -> float:
    usage = _signed_usage(account, rules, result) if result.is_valid else []
    if not usage:
        return 0.0
    pct = rules.thresholds.warning_usage_pct
    return round(max(0.0, min(limit * pct - used for limit, used in usage)), 2)


def max_risk_before_violation(account: AccountState, rules: RuleSet) -> float:
    """Smallest loss, measured from the current value, that breaches a limit.

    Profit made today or above a static start widens the room beyond the
    displayed buffer.
    """
    return _max_risk_before_violation(account, rules, evaluate_health(account, rules))


def max_safe_risk(account: AccountState, rules: RuleSet) -> float:
    """Largest loss that keeps every limit at or below its warning threshold."""
    return _max_safe_risk(account, rules, evaluate_health(account, rules))


def _invalid(
    err: RuleEngineError | ErrorInfo,
    pnl: float,
    before: Optional[EvaluationResult] = None,
) -> SimulationResult:
    if isinstance(err, RuleEngineError):
        err = ErrorInfo(code=err.code, message=err.message, field=err.field)
    return SimulationResult(
        hypothetical_pnl=pnl,
        classification="INVALID",
        verdict="INVALID",
        before=before,
        user_message=err.message,
        reasons=[err.message],
        is_valid=False,
        error=err,
    )


def _tightest(checks: List[LimitCheck]) -> LimitCheck:
    return max(checks, key=lambda c: c.usage_pct)


def _explain(
    pnl: float,
    verdict: Verdict,
    before: EvaluationResult,
    after: EvaluationResult,
) -> tuple[str, List[str]]:
    reasons: List[str] = []
    checks = after.limit_checks()
    loss = max(0.0, -pnl)

    if verdict == "VIOLATION":
        names = [_NAMES.get(v.rule_id, v.rule_id) for v in after.violations]
        if len(names) > 1:
            message = f"This trade would breach BOTH your {' and '.join(names)} limits."
        else:
            message = f"This trade would breach your {names[0]} limit."
        for v in after.violations:
            reasons.append(v.message)
    elif verdict == "RISKY":
        c = _tightest(checks)
        name = _NAMES.get(c.rule_id, c.rule_id)
        message = (
            f"Warning: after this trade your {name} would be at "
            f"{c.usage_pct:.1%} of its limit (${c.buffer_usd:,.0f} remaining)."
        )
        for w in after.warnings:
            reasons.append(w.message)
    elif after.classification == "PASSED":
        message = "This trade would reach the profit target with all rules satisfied."
        reasons.append("Trade is within safe limits.")
    elif loss > 0:
        parts = [
            f"{loss / c.limit_usd:.1%} of your {_NAMES.get(c.rule_id, c.rule_id)} limit"
            for c in checks
            if c.limit_usd > 0
        ]
        message = f"If stopped out, this trade would use {' and '.join(parts)}."
        reasons.append("Trade is within safe limits.")
    else:
        message = "This trade keeps the account within safe limits."
        reasons.append("Trade is within safe limits.")

    for c in before.limit_checks():
        if c.buffer_usd <= 0:
            reasons.append(
                f"{_NAMES.get(c.rule_id, c.rule_id).capitalize()} buffer is already depleted."
            )
    if after.drawdown is not None and after.drawdown.is_approx_trailing:
        reasons.append(
            "Max drawdown buffer is approximate (trailing without highest balance)."
        )
    return message, reasons


def simulate_trade(
    account: AccountState,
    rules: RuleSet,
    hypothetical_pnl: float,
) -> SimulationResult:
    """Simulate a hypothetical trade result against the account's rules.

    ``hypothetical_pnl`` is signed: a stop-out risk of $500 is ``-500``.
    Invalid input yields ``is_valid=False`` with the offending field; this
    function does not raise for bad input.
    """
    if not math.isfinite(hypothetical_pnl):
        return _invalid(
            InvalidInput(
                "Hypothetical P&L must be a finite number.",
                field="hypothetical_pnl",
            ),
            0.0,
        )

    before = evaluate_health(account, rules)
    if before.error is not None:
        return _invalid(before.error, hypothetical_pnl, before)

    projected = apply_trade(account, hypothetical_pnl)
    if not math.isfinite(projected.current_balance):
        return _invalid(
            InvalidInput(
                f"Hypothetical P&L {hypothetical_pnl:,.2f} overflows the projected balance.",
                field="hypothetical_pnl",
            ),
            hypothetical_pnl,
            before,
        )
    if projected.current_balance < BALANCE_FLOOR:
        return _invalid(
            InvalidInput(
                f"Hypothetical P&L {hypothetical_pnl:,.2f} would take the balance "
                f"below {BALANCE_FLOOR:,.2f}.",
                field="hypothetical_pnl",
            ),
            hypothetical_pnl,
            before,
        )

    after = evaluate_health(projected, rules)
    if after.error is not None:
        return _invalid(after.error, hypothetical_pnl, before)

    if after.classification == "VIOLATION":
        verdict: Verdict = "VIOLATION"
    elif after.classification == "WARNING":
        verdict = "RISKY"
    else:
        verdict = "SAFE"

    distances: Dict[str, float] = {c.rule_id: c.buffer_usd for c in after.limit_checks()}
    if after.profit is not None:
        distances[PROFIT_TARGET] = after.profit.remaining_usd

    message, reasons = _explain(hypothetical_pnl, verdict, before, after)

    return SimulationResult(
        hypothetical_pnl=hypothetical_pnl,
        classification=after.classification,
        verdict=verdict,
        breached_rules=[v.rule_id for v in after.violations],
        distances=distances,
        projected_account=projected,
        before=before,
        after=after,
        recommendations=Recommendations(
            max_safe_risk=_max_safe_risk(account, rules, before),
            max_risk_before_violation=_max_risk_before_violation(account, rules, before),
        ),
        user_message=message,
        reasons=reasons,
    )
