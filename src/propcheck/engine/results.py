from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from propcheck.models.account import AccountState

Classification = Literal["SAFE", "WARNING", "VIOLATION", "PASSED", "INVALID"]
HealthStatus = Literal["safe", "warning", "danger"]
Level = Literal["OK", "WARNING", "DANGER", "BREACH"]
Severity = Literal["LOW", "MED", "HIGH", "CRIT"]
Verdict = Literal["SAFE", "RISKY", "VIOLATION", "INVALID"]


class Violation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rule_id: str
    severity: Severity
    message: str
    inputs: Dict[str, Any] = Field(default_factory=dict)
    computed: Dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    field: Optional[str] = None


class LimitCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rule_id: str
    limit_usd: float
    used_usd: float
    buffer_usd: float
    usage_pct: float
    level: Level


class DrawdownCheck(LimitCheck):
    mode: Literal["static", "trailing"]
    baseline_usd: float
    floor_usd: float
    basis_used: Literal["balance", "equity"]
    is_approx_trailing: bool = False


class ProfitCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rule_id: str = "TARGET-001"
    target_usd: float
    profit_usd: float
    remaining_usd: float
    progress_pct: float
    target_met: bool
    trading_days: int
    min_trading_days: int
    days_met: bool


class ConsistencyCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rule_id: str = "CONS-001"
    best_day_profit_usd: float
    total_profit_usd: float
    day_share_pct: float
    max_day_share_pct: float
    satisfied: bool


class EvaluationResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    classification: Classification
    status: HealthStatus
    daily: Optional[LimitCheck] = None
    drawdown: Optional[DrawdownCheck] = None
    profit: Optional[ProfitCheck] = None
    consistency: Optional[ConsistencyCheck] = None
    violations: List[Violation] = Field(default_factory=list)
    warnings: List[Violation] = Field(default_factory=list)
    messages: List[str] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None
    eval_ms: Optional[float] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

    def limit_checks(self) -> List[LimitCheck]:
        return [c for c in (self.daily, self.drawdown) if c is not None]


class Recommendations(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_safe_risk: float
    max_risk_before_violation: float


class SimulationResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hypothetical_pnl: float
    classification: Classification
    verdict: Verdict
    breached_rules: List[str] = Field(default_factory=list)
    distances: Dict[str, float] = Field(default_factory=dict)
    projected_account: Optional[AccountState] = None
    before: Optional[EvaluationResult] = None
    after: Optional[EvaluationResult] = None
    recommendations: Optional[Recommendations] = None
    user_message: str
    reasons: List[str] = Field(default_factory=list)
    is_valid: bool = True
    error: Optional[ErrorInfo] = None
