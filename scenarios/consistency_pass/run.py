"""Consistency Pass scenario: four green days reach the $3,000 target.

No day exceeds half of the total profit, so the account passes on the fourth
trading day with the trailing floor locked at the starting balance.
"""

from __future__ import annotations

import json
from pathlib import Path

from propcheck.models.account import AccountState
from propcheck.runtime.runner import TradeRecord, run_journal
from propcheck.util.io import load_json, load_jsonl, load_rules_yaml

SCENARIO_DIR = Path(__file__).resolve().parent
OUT_DIR = SCENARIO_DIR / "out"


def main():
    OUT_DIR.mkdir(parents=True, exist_ok=True)
    audit_path = OUT_DIR / "audit.jsonl"
    summary_path = OUT_DIR / "summary.json"

    for p in (audit_path, summary_path):
        if p.exists():
            p.unlink()

    rules = load_rules_yaml(SCENARIO_DIR / "rules.yaml")
    account = AccountState.model_validate(load_json(SCENARIO_DIR / "account.json"))
    trades = [
        TradeRecord.model_validate(row)
        for row in load_jsonl(SCENARIO_DIR / "journal.jsonl")
    ]

    summary, final = run_journal(rules, account, trades, audit_log_path=audit_path)

    summary_dict = summary.to_dict(final)
    summary_path.write_text(
        json.dumps(summary_dict, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )

    print(f"Consistency Pass: {summary_dict['total_trades']} trades")
    for cls, count in sorted(summary_dict["classifications"].items()):
        if count:
            print(f"  {cls}: {count}")
    print(f"  Final: {summary_dict['final_classification']} at ${summary_dict['final_balance']:,.2f}")
    if summary_dict["stopped_at"]:
        print(f"  Stopped at: {summary_dict['stopped_at']}")
    if summary_dict["rule_histogram"]:
        print("  Violations:")
        for rule, count in sorted(summary_dict["rule_histogram"].items()):
            print(f"    {rule}: {count}")
    print(f"  Outputs: {OUT_DIR}")


if __name__ == "__main__":
    main()
