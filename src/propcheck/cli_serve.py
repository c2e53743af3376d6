"""CLI entry point: propcheck-serve.

HTTP surface for the rule engine. Callers POST an account snapshot and
receive the evaluation or a hypothetical-trade simulation synchronously.

Request bodies:
    {"account": {...}, "rules": {...}}                       explicit rule set
    {"account": {...}, "firm": "...", "program": "..."}      catalog program
    {"account": {...}}                                       server default rules
POST /simulate additionally requires "hypothetical_pnl".

Threading model:
    Evaluation is pure and runs without a lock. A single threading.Lock
    guards the audit writer and request counters.

Security:
    Binds to 127.0.0.1 by default. Use --token to enforce Bearer auth.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import uuid
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from propcheck.engine.audit import build_audit_event, write_audit_event
from propcheck.engine.evaluator import evaluate_health
from propcheck.engine.rule_engine import RuleEngine
from propcheck.engine.simulator import simulate_trade
from propcheck.models.account import AccountState
from propcheck.models.rules import RuleSet
from propcheck.util.errors import UnknownProgram
from propcheck.util.hashing import catalog_hash
from propcheck.util.io import load_rules_yaml
from propcheck.version import __version__

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 65_536  # 64 KB


class _ServerState:
    """Shared server state. Only the audit log and counters are mutable."""

    def __init__(
        self,
        engine: Optional[RuleEngine],
        default_rules: Optional[RuleSet],
        default_rules_hash: Optional[str],
        run_id: str,
        audit_log_path: Optional[Path],
        token: Optional[str],
    ) -> None:
        self.engine = engine
        self.default_rules = default_rules
        self.default_rules_hash = default_rules_hash
        self.run_id = run_id
        self.audit_log_path = audit_log_path
        self.token = token
        self.evaluations = 0
        self.simulations = 0
        self.lock = threading.Lock()


class _RequestRejected(Exception):
    """Raised while parsing a request; carries the HTTP error response."""

    def __init__(self, status: int, error: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.error = error
        self.message = message


class RuleHandler(BaseHTTPRequestHandler):
    """HTTP handler for POST /evaluate, POST /simulate and GET /health."""

    server_state: _ServerState  # set by create_server

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_json(self, code: int, body: dict) -> None:
        raw = json.dumps(body, separators=(",", ":")).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(raw)

    def _authorized(self) -> bool:
        expected = self.server_state.token
        if expected is None or self.headers.get("Authorization", "") == f"Bearer {expected}":
            return True
        self._send_json(401, {
            "error": "unauthorized",
            "message": "Invalid or missing Bearer token.",
        })
        return False

    def _payload(self) -> Dict[str, Any]:
        if "application/json" not in self.headers.get("Content-Type", ""):
            raise _RequestRejected(
                400, "invalid_content_type", "Content-Type must be application/json."
            )
        length_header = self.headers.get("Content-Length")
        if length_header is None:
            raise _RequestRejected(
                400, "missing_content_length", "Content-Length header is required."
            )
        try:
            length = int(length_header)
        except ValueError:
            length = -1
        if length < 0:
            raise _RequestRejected(
                400, "invalid_content_length", "Content-Length must be a non-negative integer."
            )
        if length > MAX_BODY_BYTES:
            raise _RequestRejected(
                413, "payload_too_large", f"Request body exceeds {MAX_BODY_BYTES} bytes."
            )

        try:
            payload = json.loads(self.rfile.read(length))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise _RequestRejected(400, "invalid_json", str(exc)) from None
        if not isinstance(payload, dict) or "account" not in payload:
            raise _RequestRejected(
                400, "invalid_json", "Request body must be an object with an 'account' key."
            )
        return payload

    def _rules_for(self, payload: Dict[str, Any]) -> tuple[RuleSet, Optional[str]]:
        """Inline rules win, then a catalog program, then the server default."""
        st = self.server_state

        if payload.get("rules") is not None:
            try:
                return RuleSet.model_validate(payload["rules"]), None
            except ValidationError as exc:
                raise _RequestRejected(400, "invalid_rules", f"Invalid rule set: {exc}") from None

        firm, program = payload.get("firm"), payload.get("program")
        if firm is not None or program is not None:
            if st.engine is None:
                raise _RequestRejected(
                    400, "no_catalog", "Server was started without a firm catalog."
                )
            try:
                return st.engine.rules_for(str(firm), str(program)), st.engine.catalog_hash
            except UnknownProgram as exc:
                raise _RequestRejected(404, "unknown_program", exc.args[0]) from None

        if st.default_rules is None:
            raise _RequestRejected(
                400, "missing_rules", "Provide 'rules', or 'firm' and 'program'."
            )
        return st.default_rules, st.default_rules_hash

    def do_GET(self) -> None:
        if not self._authorized():
            return
        if self.path != "/health":
            self._send_json(404, {"error": "not_found"})
            return

        st = self.server_state
        with st.lock:
            evaluations, simulations = st.evaluations, st.simulations
        self._send_json(200, {
            "status": "ok",
            "version": __version__,
            "run_id": st.run_id,
            "catalog_hash": st.engine.catalog_hash if st.engine else None,
            "programs_count": len(st.engine.catalog.programs()) if st.engine else 0,
            "has_default_rules": st.default_rules is not None,
            "evaluations": evaluations,
            "simulations": simulations,
        })

    def do_POST(self) -> None:
        if not self._authorized():
            return
        if self.path not in ("/evaluate", "/simulate"):
            self._send_json(404, {"error": "not_found"})
            return

        try:
            body = self._handle_check(self.path == "/simulate")
        except _RequestRejected as rej:
            logger.info("rejected %s: %s", self.path, rej.error)
            self._send_json(rej.status, {"error": rej.error, "message": rej.message})
            return
        self._send_json(200, body)

    def _handle_check(self, simulate: bool) -> Dict[str, Any]:
        payload = self._payload()
        try:
            account = AccountState.model_validate(payload["account"])
        except ValidationError as exc:
            raise _RequestRejected(
                400, "invalid_account", f"Invalid account snapshot: {exc}"
            ) from None
        rules, source_hash = self._rules_for(payload)

        pnl: Optional[float] = None
        if simulate:
            raw_pnl = payload.get("hypothetical_pnl")
            # bool is an int subclass
            if isinstance(raw_pnl, bool) or not isinstance(raw_pnl, (int, float)):
                raise _RequestRejected(
                    400, "invalid_json", "'hypothetical_pnl' must be a number."
                )
            pnl = float(raw_pnl)
            result = simulate_trade(account, rules, pnl)
        else:
            result = evaluate_health(account, rules)

        st = self.server_state
        with st.lock:
            if simulate:
                st.simulations += 1
            else:
                st.evaluations += 1
            if st.audit_log_path:
                write_audit_event(
                    st.audit_log_path,
                    build_audit_event(
                        result=result,
                        account=account,
                        rules=rules,
                        catalog_hash=source_hash,
                        hypothetical_pnl=pnl,
                        run_id=st.run_id,
                    ),
                )
        return result.model_dump(mode="json")

    def _method_not_allowed(self) -> None:
        self._send_json(405, {"error": "method_not_allowed"})

    do_PUT = do_DELETE = do_PATCH = _method_not_allowed


def create_server(
    catalog_path: Optional[str] = None,
    rules_path: Optional[str] = None,
    host: str = "127.0.0.1",
    port: int = 8100,
    audit_log_path: Optional[str] = None,
    token: Optional[str] = None,
) -> ThreadingHTTPServer:
    """Create (but do not start) a configured server. Useful for testing."""
    engine = RuleEngine(catalog_path) if catalog_path else None
    default_rules = load_rules_yaml(rules_path) if rules_path else None
    default_rules_hash = (
        catalog_hash(Path(rules_path).read_text(encoding="utf-8"))
        if rules_path
        else None
    )
    run_id = str(uuid.uuid4())

    audit_p = Path(audit_log_path) if audit_log_path else None
    if audit_p is not None and audit_p.exists():
        audit_p.unlink()

    state = _ServerState(
        engine=engine,
        default_rules=default_rules,
        default_rules_hash=default_rules_hash,
        run_id=run_id,
        audit_log_path=audit_p,
        token=token,
    )

    # Attach state to handler class via a closure
    class Handler(RuleHandler):
        server_state = state

    server = ThreadingHTTPServer((host, port), Handler)
    logger.info("Server %s bound to %s:%d", run_id, host, server.server_address[1])
    return server


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="propcheck-serve",
        description="HTTP surface for prop-firm rule evaluation.",
    )
    parser.add_argument(
        "--catalog", default=None, help="Path to a firm catalog YAML file.",
    )
    parser.add_argument(
        "--rules", default=None, help="Path to a default rule set YAML file.",
    )
    parser.add_argument(
        "--host", default="127.0.0.1",
        help="Bind address (default: 127.0.0.1). Use 0.0.0.0 with --token.",
    )
    parser.add_argument(
        "--port", type=int, default=8100,
        help="Listen port (default: 8100).",
    )
    parser.add_argument(
        "--audit-log", default=None, help="Path to JSONL audit log output.",
    )
    parser.add_argument(
        "--token", default=None,
        help="Bearer token for authentication. If set, all requests require "
             "Authorization: Bearer <token>.",
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

    if not (args.catalog or args.rules):
        print("Error: at least one of --catalog or --rules is required", file=sys.stderr)
        return 2

    try:
        server = create_server(
            catalog_path=args.catalog,
            rules_path=args.rules,
            host=args.host,
            port=args.port,
            audit_log_path=args.audit_log,
            token=args.token,
        )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"propcheck-serve listening on {args.host}:{args.port}")
    if args.token:
        print("  Bearer token authentication enabled")
    print("  POST /evaluate  evaluate an account snapshot")
    print("  POST /simulate  simulate a hypothetical trade")
    print("  GET  /health    server status")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down.")
        server.shutdown()

    return 0


if __name__ == "__main__":
    sys.exit(main())
