"""Replay audit events to verify determinism.

Given a recorded audit event, reconstruct the inputs and re-run the
evaluation or simulation. The replayed result must match the original.
"""

from __future__ import annotations

from typing import Any, Dict

from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.results import EvaluationResult, SimulationResult
from propcheck.engine.simulator import simulate_trade
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet

# Timing varies between runs and is not part of the verdict.
_VOLATILE_FIELDS = {"eval_ms"}


def replay_event(
    event: Dict[str, Any],
) -> tuple[EvaluationResult | SimulationResult, EvaluationResult | SimulationResult]:
    """Replay a single audit event.

    Returns (original_result, replayed_result).
    The caller should assert they match.
    """
    account = AccountState.model_validate(event["account"])
    rules = RuleSet.model_validate(event["rules"])

    if event.get("kind") == "simulate":
        original = SimulationResult.model_validate(event["result"])
        replayed = simulate_trade(account, rules, event["hypothetical_pnl"])
    else:
        original = EvaluationResult.model_validate(event["result"])
        replayed = evaluate_health(account, rules)
    return original, replayed


def results_match(
    a: EvaluationResult | SimulationResult,
    b: EvaluationResult | SimulationResult,
) -> bool:
    """Compare two results for logical equality, ignoring timing."""
    if type(a) is not type(b):
        return False
    if isinstance(a, SimulationResult):
        exclude = {
            "before": _VOLATILE_FIELDS,
            "after": _VOLATILE_FIELDS,
        }
    else:
        exclude = _VOLATILE_FIELDS
    return a.model_dump(mode="json", exclude=exclude) == b.model_dump(
        mode="json", exclude=exclude
    )
