"""HTTP simulation backend.

Posts simulation requests to a ``propcheck-serve`` instance so rule logic
can stay server-side.

Configuration (environment variables):
  - PROPCHECK_URL    base URL of the simulation service
  - PROPCHECK_TOKEN  optional Bearer token

Install the optional dependency:
  pip install propcheck[http]
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict
from urllib.parse import urljoin

from pydantic import ValidationError

from propcheck.engine.results import SimulationResult
from propcheck.runtime.backends import SimulationRequest
from propcheck.util.errors import SimulationTransportError

try:
    import requests
except ImportError as e:
    raise ImportError(
        "requests is required for the HTTP simulation backend. "
        "Install with: pip install propcheck[http]"
    ) from e

logger = logging.getLogger(__name__)


class HttpSimulationBackend:
    """Remote simulation over ``POST /simulate``.

    Implements the SimulationBackend protocol. The blocking request runs in
    a worker thread. Failures are not retried.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url or os.environ.get("PROPCHECK_URL", "")
        token = token or os.environ.get("PROPCHECK_TOKEN") or None

        if not self._base_url:
            raise ValueError(
                "Simulation service URL required. Set PROPCHECK_URL environment "
                "variable, or pass base_url= to the constructor."
            )
        if not self._base_url.endswith("/"):
            self._base_url += "/"

        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    # ── Thin HTTP layer (mock this for tests) ─────────────────────────

    def _request(self, path: str, payload: Dict[str, Any]) -> tuple[int, Dict[str, Any]]:
        """POST a JSON payload. Returns (status_code, parsed_body).

        Raises requests.RequestException on transport failure.
        """
        url = urljoin(self._base_url, path)
        resp = self._session.post(url, json=payload, timeout=self._timeout)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        return resp.status_code, body if isinstance(body, dict) else {}

    # ── Backend protocol ──────────────────────────────────────────────

    def simulate_sync(self, request: SimulationRequest) -> SimulationResult:
        payload = request.model_dump(mode="json")
        try:
            status, body = self._request("simulate", payload)
        except requests.RequestException as e:
            logger.warning("Simulation request to %s failed: %s", self._base_url, e)
            raise SimulationTransportError(f"Simulation request failed: {e}") from e

        if status != 200:
            detail = body.get("message") or body.get("error") or "no detail"
            raise SimulationTransportError(
                f"Simulation service returned HTTP {status}: {detail}"
            )
        try:
            return SimulationResult.model_validate(body)
        except ValidationError as e:
            logger.warning("Malformed simulation result from %s: %s", self._base_url, e)
            raise SimulationTransportError(
                f"Simulation service returned a malformed result: "
                f"{e.error_count()} validation error(s)"
            ) from e

    async def simulate(self, request: SimulationRequest) -> SimulationResult:
        return await asyncio.to_thread(self.simulate_sync, request)
