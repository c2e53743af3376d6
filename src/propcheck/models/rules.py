from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from propcheck.util.errors import UnknownProgram

LimitKind = Literal["pct", "usd"]
DrawdownMode = Literal["static", "trailing"]
Basis = Literal["balance", "equity"]


class Limit(BaseModel):
    """A threshold expressed as a fraction of account size or a fixed USD amount."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    kind: LimitKind
    value: float = Field(..., gt=0.0)

    @model_validator(mode="after")
    def pct_must_be_fraction(self) -> "Limit":
        if self.kind == "pct" and self.value > 1.0:
            raise ValueError(
                f"pct limits are fractions (0.05 = 5%), got {self.value}"
            )
        return self

    def to_usd(self, base: float) -> float:
        if self.kind == "pct":
            return round(self.value * base, 2)
        return round(self.value, 2)


def pct(value: float) -> Limit:
    return Limit(kind="pct", value=value)


def usd(value: float) -> Limit:
    return Limit(kind="usd", value=value)


class Thresholds(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    warning_usage_pct: float = Field(default=0.80, gt=0.0, lt=1.0)
    danger_usage_pct: float = Field(default=0.90, gt=0.0, lt=1.0)

    @model_validator(mode="after")
    def warning_below_danger(self) -> "Thresholds":
        if self.warning_usage_pct >= self.danger_usage_pct:
            raise ValueError(
                "warning_usage_pct must be lower than danger_usage_pct"
            )
        return self


class ConsistencyRule(BaseModel):
    """No single trading day may exceed this share of total profit."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    max_day_share_pct: float = Field(..., gt=0.0, le=1.0)


class RuleSet(BaseModel):
    """Immutable rule set for one firm program. Read-only at evaluation time."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    daily_limit: Optional[Limit] = None  # None means the firm has no daily rule
    max_limit: Optional[Limit] = None  # required at evaluation time
    drawdown_mode: DrawdownMode = Field(default="static")
    basis: Basis = Field(default="balance")
    lock_floor_at_start: bool = Field(default=False)
    profit_target: Optional[Limit] = None
    min_trading_days: int = Field(default=0, ge=0, le=3650)
    consistency: Optional[ConsistencyRule] = None
    account_size: Optional[float] = Field(default=None, gt=0.0)
    thresholds: Thresholds = Field(default_factory=Thresholds)

    @property
    def is_trailing(self) -> bool:
        return self.drawdown_mode == "trailing"


class FirmEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    programs: Dict[str, RuleSet] = Field(default_factory=dict)


class FirmCatalog(BaseModel):
    """Firm catalog v0.1: firm -> program -> rule set."""

    model_config = ConfigDict(extra="forbid")

    version: Literal["0.1"] = Field(default="0.1")
    currency: str = Field(default="USD")
    thresholds: Thresholds = Field(default_factory=Thresholds)
    firms: Dict[str, FirmEntry] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def currency_must_be_usd(cls, v: str) -> str:
        if v.upper() != "USD":
            raise ValueError("v0.1 requires currency: USD")
        return "USD"

    def resolve(self, firm: str, program: str) -> RuleSet:
        """Return the effective rule set for a firm program.

        Programs without their own thresholds inherit the catalog's.
        """
        entry = self.firms.get(firm)
        if entry is None:
            raise UnknownProgram(f"Unknown firm {firm!r}")
        rules = entry.programs.get(program)
        if rules is None:
            raise UnknownProgram(
                f"Unknown program {program!r} for firm {firm!r}"
            )
        if "thresholds" not in rules.model_fields_set:
            return rules.model_copy(update={"thresholds": self.thresholds})
        return rules

    def programs(self) -> list[tuple[str, str]]:
        return sorted(
            (firm, program)
            for firm, entry in self.firms.items()
            for program in entry.programs
        )
