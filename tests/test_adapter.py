"""Tests for the TradeSimulator adapter: state machine, last-request-wins, failures."""

from __future__ import annotations

import asyncio

import pytest

from propcheck.engine.results import SimulationResult
from propcheck.runtime.adapter import SimulationState, TradeSimulator
from propcheck.runtime.backends import (
    LocalSimulationBackend,
    SimulationBackend,
    SimulationRequest,
    create_backend,
)
from propcheck.util.errors import SimulationTransportError


class GatedBackend:
    """Local backend that holds selected requests until their gate opens."""

    def __init__(self) -> None:
        self.gates: dict[float, asyncio.Event] = {}
        self.calls = 0
        self.cancelled: list[float] = []
        self._local = LocalSimulationBackend()

    async def simulate(self, request):
        self.calls += 1
        gate = self.gates.get(request.hypothetical_pnl)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled.append(request.hypothetical_pnl)
                raise
        return await self._local.simulate(request)


class SlowBackend:
    async def simulate(self, request):
        await asyncio.sleep(5)


class MalformedBackend:
    """Returns a payload that is not a SimulationResult."""

    async def simulate(self, request):
        return SimulationResult.model_validate({"bogus": 1})


class BrokenBackend:
    def __init__(self) -> None:
        self.calls = 0

    async def simulate(self, request):
        self.calls += 1
        raise SimulationTransportError("connection refused")


@pytest.fixture
def make_request(static_rules, account_fresh):
    def _make(pnl: float) -> SimulationRequest:
        return SimulationRequest(
            account=account_fresh, rules=static_rules, hypothetical_pnl=pnl
        )

    return _make


def test_backends_satisfy_protocol():
    assert isinstance(LocalSimulationBackend(), SimulationBackend)
    assert isinstance(GatedBackend(), SimulationBackend)
    assert isinstance(create_backend("local"), LocalSimulationBackend)
    with pytest.raises(ValueError, match="unknown simulation backend"):
        create_backend("carrier-pigeon")


def test_initial_state_is_idle():
    sim = TradeSimulator()
    assert sim.state == SimulationState()
    assert sim.state.status == "idle"
    assert sim.state.is_loading is False


async def test_success_transitions(make_request):
    sim = TradeSimulator()
    seen: list[str] = []
    sim.subscribe(lambda s: seen.append(s.status))

    result = await sim.simulate(make_request(-500.0))

    assert result.verdict == "SAFE"
    assert seen == ["loading", "success"]
    assert sim.state.status == "success"
    assert sim.state.request_id == 1
    assert sim.state.result == result
    assert sim.state.error is None


async def test_stale_result_is_discarded(make_request):
    backend = GatedBackend()
    backend.gates[-6000.0] = asyncio.Event()
    sim = TradeSimulator(backend)

    first = asyncio.create_task(sim.simulate(make_request(-6000.0)))
    await asyncio.sleep(0.01)
    assert sim.state.is_loading

    second = await sim.simulate(make_request(-500.0))
    assert sim.state.status == "success"
    assert sim.state.request_id == 2

    assert await first is None
    assert backend.cancelled == [-6000.0]
    # The superseded VIOLATION never reaches the state.
    assert sim.state.request_id == 2
    assert sim.state.result == second
    assert sim.state.result.verdict == "SAFE"


async def test_loading_keeps_previous_result(make_request):
    backend = GatedBackend()
    sim = TradeSimulator(backend)
    previous = await sim.simulate(make_request(-500.0))

    backend.gates[-700.0] = asyncio.Event()
    task = asyncio.create_task(sim.simulate(make_request(-700.0)))
    await asyncio.sleep(0)
    assert sim.state.is_loading
    assert sim.state.result == previous

    backend.gates[-700.0].set()
    await task
    assert sim.state.result.hypothetical_pnl == -700.0


async def test_timeout_settles_failed(make_request):
    sim = TradeSimulator(SlowBackend(), timeout=0.01)
    result = await sim.simulate(make_request(-500.0))
    assert result is None
    assert sim.state.status == "failed"
    assert "timed out" in sim.state.error


async def test_transport_error_settles_failed_without_retry(make_request):
    backend = BrokenBackend()
    sim = TradeSimulator(backend)
    result = await sim.simulate(make_request(-500.0))
    assert result is None
    assert backend.calls == 1
    assert sim.state.status == "failed"
    assert sim.state.error == "connection refused"


async def test_invalid_simulation_settles_failed(make_request):
    sim = TradeSimulator()
    result = await sim.simulate(make_request(float("nan")))
    assert result.is_valid is False
    assert sim.state.status == "failed"
    assert sim.state.result == result
    assert sim.state.error == result.user_message


async def test_clear_invalidates_in_flight(make_request):
    backend = GatedBackend()
    backend.gates[-500.0] = asyncio.Event()
    sim = TradeSimulator(backend)

    task = asyncio.create_task(sim.simulate(make_request(-500.0)))
    await asyncio.sleep(0.01)
    sim.clear()
    assert sim.state.status == "idle"

    assert await task is None
    assert backend.cancelled == [-500.0]
    assert sim.state.status == "idle"
    assert sim.state.result is None


async def test_unsubscribe(make_request):
    sim = TradeSimulator()
    seen: list[str] = []
    unsubscribe = sim.subscribe(lambda s: seen.append(s.status))
    await sim.simulate(make_request(-100.0))
    unsubscribe()
    await sim.simulate(make_request(-200.0))
    assert seen == ["loading", "success"]


async def test_unexpected_backend_error_settles_failed(make_request):
    sim = TradeSimulator(MalformedBackend())
    seen: list[str] = []
    sim.subscribe(lambda s: seen.append(s.status))

    result = await sim.simulate(make_request(-500.0))

    assert result is None
    assert seen == ["loading", "failed"]
    assert sim.state.status == "failed"
    assert sim.state.error.startswith("Simulation failed:")


async def test_caller_cancellation_resets_to_idle(make_request):
    backend = GatedBackend()
    backend.gates[-500.0] = asyncio.Event()
    sim = TradeSimulator(backend)

    task = asyncio.create_task(sim.simulate(make_request(-500.0)))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert sim.state.status == "idle"
    assert backend.cancelled == [-500.0]
