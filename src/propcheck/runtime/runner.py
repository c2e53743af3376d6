"""Journal runner: replay a stream of closed trades through the rule engine.

The runner owns account state evolution:
  - Rolls the trading day when a trade is flagged ``new_day``
  - Applies each trade's realized P&L through the ledger
  - Evaluates the new snapshot and audits it
  - Stops at the first VIOLATION (unless told otherwise) or INVALID result

Balances only. Floating P&L is not modelled between trades, so equity moves
with the realized P&L of each trade.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from propcheck.engine.audit import build_audit_event, write_audit_event
from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.ledger import apply_trade, start_new_day
from propcheck.engine.results import EvaluationResult
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet

logger = logging.getLogger(__name__)


class TradeRecord(BaseModel):
    """A closed trade from a journal."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    trade_id: str
    timestamp: str
    pnl: float
    new_day: bool = False  # trade opens a new trading day


class RunSummary:
    """Accumulates run statistics."""

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id
        self.total: int = 0
        self.counts: Dict[str, int] = {
            "SAFE": 0, "WARNING": 0, "VIOLATION": 0, "PASSED": 0, "INVALID": 0,
        }
        self.rule_histogram: Dict[str, int] = {}
        self.stopped_at: Optional[str] = None
        self.last_classification: Optional[str] = None

    def record(self, result: EvaluationResult) -> None:
        self.total += 1
        self.counts[result.classification] = (
            self.counts.get(result.classification, 0) + 1
        )
        self.last_classification = result.classification
        for v in result.violations:
            self.rule_histogram[v.rule_id] = (
                self.rule_histogram.get(v.rule_id, 0) + 1
            )

    def to_dict(self, account: AccountState) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "total_trades": self.total,
            "classifications": self.counts,
            "rule_histogram": dict(sorted(self.rule_histogram.items())),
            "final_classification": self.last_classification,
            "final_balance": round(account.current_balance, 2),
            "highest_balance": (
                round(account.highest_balance, 2)
                if account.highest_balance is not None
                else None
            ),
            "trading_days": account.trading_days,
            "stopped_at": self.stopped_at,
        }
        if self.run_id is not None:
            d["run_id"] = self.run_id
        return d


def run_journal(
    rules: RuleSet,
    account: AccountState,
    trades: Iterable[TradeRecord],
    audit_log_path: Optional[str | Path] = None,
    stop_on_violation: bool = True,
    catalog_hash: Optional[str] = None,
) -> tuple[RunSummary, AccountState]:
    """Run a journal of trades against a rule set.

    Returns (summary, final_account). The final account is the snapshot
    after the last applied trade, including the one that breached.
    """
    run_id = str(uuid.uuid4())
    summary = RunSummary(run_id=run_id)

    for trade in trades:
        if trade.new_day:
            account = start_new_day(account)
        account = apply_trade(account, trade.pnl)

        result = evaluate_health(account, rules)
        summary.record(result)

        if audit_log_path:
            event = build_audit_event(
                result=result,
                account=account,
                rules=rules,
                catalog_hash=catalog_hash,
                run_id=run_id,
            )
            write_audit_event(audit_log_path, event)

        if result.classification == "INVALID":
            logger.error(
                "Trade %s produced an invalid account: %s",
                trade.trade_id, result.error.message if result.error else "",
            )
            summary.stopped_at = trade.trade_id
            break

        if result.classification == "VIOLATION":
            rule_ids = ", ".join(v.rule_id for v in result.violations)
            logger.warning("Trade %s breached %s", trade.trade_id, rule_ids)
            if stop_on_violation:
                summary.stopped_at = trade.trade_id
                break
        else:
            logger.debug(
                "Trade %s pnl=%.2f -> %s", trade.trade_id, trade.pnl,
                result.classification,
            )

    logger.info(
        "Run %s finished: %d trades, final %s",
        run_id, summary.total, summary.last_classification,
    )
    return summary, account
