"""Aggregation helpers for dashboard and notification consumers."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from propcheck.engine.results import EvaluationResult, HealthStatus
from propcheck.models.account import AccountState

AccountResult = Tuple[AccountState, EvaluationResult]

_MESSAGE_PRIORITY = ("ERROR:", "VIOLATION:", "DANGER:", "WARNING:")


class DashboardStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_accounts: int
    total_balance: float
    today_pnl: float
    safe_count: int
    warning_count: int
    danger_count: int
    accounts_at_risk: int


class AccountWarning(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_id: Optional[str]
    status: HealthStatus
    message: str


def summarize_accounts(pairs: Iterable[AccountResult]) -> DashboardStats:
    pairs = list(pairs)
    statuses = [result.status for _, result in pairs]
    return DashboardStats(
        total_accounts=len(pairs),
        total_balance=round(sum(a.current_balance for a, _ in pairs), 2),
        today_pnl=round(sum(a.today_pnl for a, _ in pairs), 2),
        safe_count=statuses.count("safe"),
        warning_count=statuses.count("warning"),
        danger_count=statuses.count("danger"),
        accounts_at_risk=sum(1 for s in statuses if s != "safe"),
    )


def primary_warning(result: EvaluationResult) -> Optional[str]:
    """Most critical message for an account, or None when there are none."""
    if not result.messages:
        return None
    for prefix in _MESSAGE_PRIORITY:
        for message in result.messages:
            if message.startswith(prefix):
                return message
    return result.messages[0]


def warnings_for_assistant(pairs: Iterable[AccountResult]) -> List[AccountWarning]:
    """One headline warning per account that is not safe."""
    out = []
    for account, result in pairs:
        if result.status == "safe":
            continue
        message = primary_warning(result)
        if message is None:
            continue
        out.append(
            AccountWarning(
                account_id=account.account_id,
                status=result.status,
                message=message,
            )
        )
    return out
