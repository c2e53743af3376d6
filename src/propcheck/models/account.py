from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AccountState(BaseModel):
    """Point-in-time snapshot of a challenge account.

    Snapshots are immutable: recording a trade produces a new snapshot
    (see ``propcheck.engine.ledger``). ``highest_balance`` is the running
    maximum of ``current_balance`` and is the trailing drawdown baseline.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    account_id: Optional[str] = None
    start_balance: float
    current_balance: float
    current_equity: Optional[float] = None  # includes floating P&L
    highest_balance: Optional[float] = None
    daily_start_balance: Optional[float] = None
    trading_days: int = Field(default=0, ge=0)
    best_day_profit: Optional[float] = None

    @property
    def today_pnl(self) -> float:
        if self.daily_start_balance is None:
            return 0.0
        return self.current_balance - self.daily_start_balance
