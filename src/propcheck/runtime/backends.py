"""Simulation backend protocol and core request type.

A backend turns a SimulationRequest into a SimulationResult, either in
process or across a network boundary. No retries, no caching.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from propcheck.engine.results import SimulationResult
from propcheck.engine.simulator import simulate_trade
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet


class SimulationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    account: AccountState
    rules: RuleSet
    hypothetical_pnl: float


@runtime_checkable
class SimulationBackend(Protocol):
    async def simulate(self, request: SimulationRequest) -> SimulationResult:
        """Run one simulation. Transport failures raise SimulationTransportError."""
        ...


class LocalSimulationBackend:
    """Runs the rule engine in process."""

    async def simulate(self, request: SimulationRequest) -> SimulationResult:
        return simulate_trade(request.account, request.rules, request.hypothetical_pnl)


def create_backend(name: str, **kwargs) -> SimulationBackend:
    """Lazy-import and instantiate the requested backend."""
    if name == "local":
        return LocalSimulationBackend()

    if name == "http":
        try:
            from propcheck.runtime.http_backend import HttpSimulationBackend
        except ImportError:
            print(
                "Error: requests is not installed.\n"
                "  pip install propcheck[http]",
                file=sys.stderr,
            )
            raise
        return HttpSimulationBackend(**kwargs)

    raise ValueError(f"unknown simulation backend '{name}'")
