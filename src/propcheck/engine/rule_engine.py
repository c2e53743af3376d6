"""Top-level RuleEngine: load a firm catalog, evaluate and simulate accounts."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.results import EvaluationResult, SimulationResult
from propcheck.engine.simulator import simulate_trade
from propcheck.models.account import AccountState
from propcheck.models.rules import FirmCatalog, RuleSet
from propcheck.util.hashing import catalog_hash
from propcheck.util.io import load_catalog_yaml

logger = logging.getLogger(__name__)


class RuleEngine:
    """Deterministic rule evaluation against a loaded firm catalog."""

    def __init__(self, catalog_path: str | Path) -> None:
        self._catalog_path = Path(catalog_path)
        self._catalog_raw = self._catalog_path.read_text(encoding="utf-8")
        self._catalog: FirmCatalog = load_catalog_yaml(self._catalog_path)
        self._catalog_hash: str = catalog_hash(self._catalog_raw)
        logger.info(
            "Loaded catalog %s (%d programs, hash %s)",
            self._catalog_path,
            len(self._catalog.programs()),
            self._catalog_hash[:12],
        )

    @property
    def catalog(self) -> FirmCatalog:
        return self._catalog

    @property
    def catalog_hash(self) -> str:
        return self._catalog_hash

    def rules_for(self, firm: str, program: str) -> RuleSet:
        """Resolve a program's rule set. Raises UnknownProgram."""
        return self._catalog.resolve(firm, program)

    def evaluate(
        self, account: AccountState, firm: str, program: str
    ) -> EvaluationResult:
        """Evaluate an account against a catalog program."""
        rules = self.rules_for(firm, program)
        t0 = time.perf_counter_ns()
        result = evaluate_health(account, rules)
        t1 = time.perf_counter_ns()
        result.eval_ms = round((t1 - t0) / 1_000_000, 3)
        if result.error is not None:
            logger.warning(
                "Evaluation refused for %s/%s: %s (field=%s)",
                firm, program, result.error.message, result.error.field,
            )
        else:
            logger.debug(
                "Evaluated %s/%s account=%s -> %s",
                firm, program, account.account_id, result.classification,
            )
        return result

    def simulate(
        self,
        account: AccountState,
        firm: str,
        program: str,
        hypothetical_pnl: float,
    ) -> SimulationResult:
        """Simulate a hypothetical trade for an account on a catalog program."""
        rules = self.rules_for(firm, program)
        result = simulate_trade(account, rules, hypothetical_pnl)
        if not result.is_valid:
            logger.warning(
                "Simulation refused for %s/%s: %s", firm, program, result.user_message
            )
        else:
            logger.debug(
                "Simulated %s/%s pnl=%.2f -> %s",
                firm, program, hypothetical_pnl, result.verdict,
            )
        return result
