"""Trade simulation adapter for interactive consumers.

Wraps a SimulationBackend with observable request state:

    idle -> loading -> success | failed

Every call to ``simulate`` takes a new request id from a generation
counter. A result that resolves after a newer request was issued (or after
``clear``) is discarded and never touches the state: last request wins.
The superseded backend call is cancelled. Failures of any kind settle as
``failed`` and are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Literal, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from propcheck.engine.results import SimulationResult
from propcheck.runtime.backends import (
    LocalSimulationBackend,
    SimulationBackend,
    SimulationRequest,
)
from propcheck.util.errors import SimulationTransportError

logger = logging.getLogger(__name__)

SimulationStatus = Literal["idle", "loading", "success", "failed"]


class SimulationState(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    status: SimulationStatus = "idle"
    request_id: int = 0
    result: Optional[SimulationResult] = None
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.status == "loading"


Listener = Callable[[SimulationState], None]


class TradeSimulator:
    """Last-request-wins simulation runner with observable state."""

    def __init__(
        self,
        backend: Optional[SimulationBackend] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._backend = backend if backend is not None else LocalSimulationBackend()
        self._timeout = timeout
        self._generation = 0
        self._state = SimulationState()
        self._listeners: List[Listener] = []
        self._in_flight: Optional[Tuple[int, asyncio.Future]] = None
        self._superseded: Set[int] = set()

    @property
    def state(self) -> SimulationState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SimulationState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _is_stale(self, request_id: int) -> bool:
        if request_id != self._generation:
            logger.debug(
                "Discarding stale simulation %d (current %d)",
                request_id, self._generation,
            )
            return True
        return False

    def _cancel_in_flight(self) -> None:
        if self._in_flight is None:
            return
        request_id, task = self._in_flight
        self._in_flight = None
        if not task.done():
            self._superseded.add(request_id)
            task.cancel()

    def clear(self) -> None:
        """Reset to idle. The in-flight backend call is cancelled."""
        self._cancel_in_flight()
        self._generation += 1
        self._set_state(SimulationState(request_id=self._generation))

    def _fail(
        self,
        request_id: int,
        message: str,
        result: Optional[SimulationResult] = None,
    ) -> None:
        logger.info("Simulation %d failed: %s", request_id, message)
        self._set_state(
            SimulationState(
                status="failed",
                request_id=request_id,
                result=result,
                error=message,
            )
        )

    async def simulate(self, request: SimulationRequest) -> Optional[SimulationResult]:
        """Run a simulation.

        Returns the result, or None when the request failed or was
        superseded. Invalid simulations settle as ``failed`` but the invalid
        result is still returned.
        """
        self._cancel_in_flight()
        self._generation += 1
        request_id = self._generation
        self._set_state(
            SimulationState(
                status="loading",
                request_id=request_id,
                result=self._state.result,
            )
        )

        call = self._backend.simulate(request)
        if self._timeout is not None:
            call = asyncio.wait_for(call, self._timeout)
        task = asyncio.ensure_future(call)
        self._in_flight = (request_id, task)

        try:
            result = await task
        except asyncio.CancelledError:
            if request_id in self._superseded:
                return None
            if request_id == self._generation:
                self._set_state(SimulationState(request_id=request_id))
            raise
        except asyncio.TimeoutError:
            if not self._is_stale(request_id):
                self._fail(request_id, f"Simulation timed out after {self._timeout}s.")
            return None
        except SimulationTransportError as e:
            if not self._is_stale(request_id):
                self._fail(request_id, str(e))
            return None
        except Exception as e:
            if not self._is_stale(request_id):
                logger.exception("Simulation %d raised", request_id)
                self._fail(request_id, f"Simulation failed: {e}")
            return None
        finally:
            self._superseded.discard(request_id)
            if self._in_flight is not None and self._in_flight[1] is task:
                self._in_flight = None

        if self._is_stale(request_id):
            return None

        if not result.is_valid:
            self._fail(request_id, result.user_message, result)
            return result

        self._set_state(
            SimulationState(status="success", request_id=request_id, result=result)
        )
        return result
