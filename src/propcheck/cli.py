"""CLI entry point: propcheck-eval."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from propcheck.engine.audit import build_audit_event, write_audit_event
from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.results import EvaluationResult
from propcheck.engine.rule_engine import RuleEngine
from propcheck.engine.simulator import simulate_trade
from propcheck.models.account import AccountState
from propcheck.util.hashing import catalog_hash
from propcheck.util.io import load_json, load_rules_yaml


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="propcheck-eval",
        description="Evaluate a prop-firm account against its challenge rules.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--rules", help="Path to a single rule set YAML file."
    )
    source.add_argument(
        "--catalog", help="Path to a firm catalog YAML file."
    )
    parser.add_argument(
        "--firm", default=None, help="Firm slug in the catalog."
    )
    parser.add_argument(
        "--program", default=None, help="Program slug in the catalog."
    )
    parser.add_argument(
        "--account", required=True, help="Path to account snapshot JSON file."
    )
    parser.add_argument(
        "--simulate-pnl",
        type=float,
        default=None,
        help="Simulate a hypothetical trade with this P&L (USD) instead of "
             "evaluating the current snapshot.",
    )
    parser.add_argument(
        "--audit-log",
        default=None,
        help="Path to JSONL audit log. If set, appends an audit event.",
    )
    parser.add_argument(
        "--pretty", action="store_true", help="Pretty-print JSON output."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        if args.rules:
            rules = load_rules_yaml(args.rules)
            source_hash = catalog_hash(Path(args.rules).read_text(encoding="utf-8"))
        else:
            if not (args.firm and args.program):
                raise ValueError("--catalog requires --firm and --program")
            engine = RuleEngine(args.catalog)
            rules = engine.rules_for(args.firm, args.program)
            source_hash = engine.catalog_hash

        account = AccountState.model_validate(load_json(args.account))

        if args.simulate_pnl is not None:
            result = simulate_trade(account, rules, args.simulate_pnl)
        else:
            result = evaluate_health(account, rules)

        output = result.model_dump(mode="json")
        indent = 2 if args.pretty else None
        print(json.dumps(output, indent=indent, sort_keys=True))

        if args.audit_log:
            event = build_audit_event(
                result=result,
                account=account,
                rules=rules,
                catalog_hash=source_hash,
                hypothetical_pnl=args.simulate_pnl,
            )
            write_audit_event(args.audit_log, event)

        # Exit code: 0 not violated, 1 VIOLATION, 2 invalid input
        if isinstance(result, EvaluationResult):
            if not result.is_valid:
                return 2
            return 1 if result.classification == "VIOLATION" else 0
        if not result.is_valid:
            return 2
        return 1 if result.verdict == "VIOLATION" else 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
