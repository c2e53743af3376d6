"""CLI entry point: propcheck-run.

Runs a trade journal through the rule engine, producing an audit log and
a summary.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from propcheck.engine.rule_engine import RuleEngine
from propcheck.models.account import AccountState
from propcheck.runtime.runner import TradeRecord, run_journal
from propcheck.util.hashing import catalog_hash
from propcheck.util.io import load_json, load_jsonl, load_rules_yaml


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="propcheck-run",
        description="Replay a trade journal against challenge rules.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--rules", help="Path to a single rule set YAML file."
    )
    source.add_argument(
        "--catalog", help="Path to a firm catalog YAML file."
    )
    parser.add_argument("--firm", default=None, help="Firm slug in the catalog.")
    parser.add_argument("--program", default=None, help="Program slug in the catalog.")
    parser.add_argument(
        "--account", required=True, help="Path to initial account snapshot JSON."
    )
    parser.add_argument(
        "--trades", required=True, help="Path to JSONL file of TradeRecords."
    )
    parser.add_argument(
        "--audit-log", default=None, help="Path to JSONL audit log output."
    )
    parser.add_argument(
        "--keep-going", action="store_true",
        help="Continue past the first VIOLATION.",
    )
    parser.add_argument(
        "--out-summary", default=None, help="Path to write run summary JSON."
    )
    parser.add_argument(
        "--pretty", action="store_true", help="Pretty-print JSON output."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
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
        trades = [TradeRecord.model_validate(row) for row in load_jsonl(args.trades)]

        # Clean audit log if it exists
        if args.audit_log:
            audit_path = Path(args.audit_log)
            if audit_path.exists():
                audit_path.unlink()
        else:
            audit_path = None

        summary, final_account = run_journal(
            rules=rules,
            account=account,
            trades=trades,
            audit_log_path=audit_path,
            stop_on_violation=not args.keep_going,
            catalog_hash=source_hash,
        )

        summary_dict = summary.to_dict(final_account)
        indent = 2 if args.pretty else None
        summary_json = json.dumps(summary_dict, indent=indent, sort_keys=True)

        print(summary_json)

        if args.out_summary:
            Path(args.out_summary).write_text(
                summary_json + "\n", encoding="utf-8"
            )

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
