"""Account snapshot evolution: recording trades and rolling trading days.

Snapshots are never mutated; each operation returns a new AccountState.
After ``apply_trade`` the invariant ``current_balance <= highest_balance``
holds.
"""

from __future__ import annotations

from propcheck.models.account import AccountState


def apply_trade(account: AccountState, pnl: float) -> AccountState:
    """Return the snapshot after a realized trade of ``pnl`` USD."""
    new_balance = account.current_balance + pnl
    previous_high = (
        account.highest_balance
        if account.highest_balance is not None
        else max(account.start_balance, account.current_balance)
    )
    update = {
        "current_balance": new_balance,
        "highest_balance": max(previous_high, new_balance),
    }
    if account.current_equity is not None:
        update["current_equity"] = account.current_equity + pnl
    return account.model_copy(update=update)


def start_new_day(account: AccountState) -> AccountState:
    """Close the current trading day and open the next one.

    The closing day's profit is folded into ``best_day_profit`` when the
    account tracks it.
    """
    update = {
        "daily_start_balance": account.current_balance,
        "trading_days": account.trading_days + 1,
    }
    if account.best_day_profit is not None and account.daily_start_balance is not None:
        update["best_day_profit"] = max(account.best_day_profit, account.today_pnl)
    return account.model_copy(update=update)
