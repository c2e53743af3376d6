"""Append-only JSONL audit emitter."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from propcheck.engine.results import EvaluationResult, SimulationResult
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet
from propcheck.version import __version__


def build_audit_event(
    result: EvaluationResult | SimulationResult,
    account: AccountState,
    rules: RuleSet,
    catalog_hash: Optional[str] = None,
    hypothetical_pnl: Optional[float] = None,
    run_id: Optional[str] = None,
    engine_version: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a structured audit event dict (serialisable to JSON).

    The rule set is embedded so the event can be replayed without the
    catalog it came from.
    """
    kind = "simulate" if isinstance(result, SimulationResult) else "evaluate"
    event: Dict[str, Any] = {
        "event_id": str(uuid.uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "kind": kind,
        "engine_version": engine_version or __version__,
        "catalog_hash": catalog_hash,
        "account": account.model_dump(mode="json"),
        "rules": rules.model_dump(mode="json"),
        "result": result.model_dump(mode="json"),
    }
    if hypothetical_pnl is not None:
        event["hypothetical_pnl"] = hypothetical_pnl
    if run_id is not None:
        event["run_id"] = run_id
    return event


def write_audit_event(path: str | Path, event: Dict[str, Any]) -> None:
    """Append a single audit event as a JSON line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(event, sort_keys=True, separators=(",", ":"))
    with open(path, "a", encoding="utf-8") as f:
        f.write(line + "\n")


def read_audit_events(path: str | Path) -> list[Dict[str, Any]]:
    """Read all audit events from a JSONL file."""
    path = Path(path)
    events = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                events.append(json.loads(line))
    return events
