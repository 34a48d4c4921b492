"""
Command-line interface.

    solana-privacy-scanner scan-wallet ADDRESS [--json] [--policy strict]
    solana-privacy-scanner scan-tx SIGNATURE
    solana-privacy-scanner scan-program PROGRAM_ID
    solana-privacy-scanner analyze snapshot.json --type wallet
    solana-privacy-scanner serve --port 8000

Exit codes: 0 success, 1 fatal input error (invalid target, labels, policy,
snapshot), 2 report violates the requested policy.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from solana_privacy_scanner import __version__
from solana_privacy_scanner.analysis_engine.models import PrivacyReport, TargetType
from solana_privacy_scanner.config import env
from solana_privacy_scanner.config.policy import PrivacyPolicy, evaluate_policy, load_policy
from solana_privacy_scanner.core.exceptions import (
    InvalidTargetError,
    LabelProviderError,
    PolicyError,
)
from solana_privacy_scanner.formatter import format_report
from solana_privacy_scanner.labels import StaticLabelProvider
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.logging.logger import configure_structlog
from solana_privacy_scanner.scanner import (
    analyze_snapshot,
    collect_target,
    load_snapshot,
    validate_target,
)
from solana_privacy_scanner.solana_listener.models import RawScanData
from solana_privacy_scanner.solana_listener.rpc_client import SolanaRpcClient

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_POLICY_FAILED = 2

_SCAN_COMMANDS = {
    "scan-wallet": TargetType.WALLET,
    "scan-tx": TargetType.TRANSACTION,
    "scan-program": TargetType.PROGRAM,
}


def _add_report_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--labels", type=Path, default=None, help="Known-address label file (default: bundled labels)")
    p.add_argument("--json", action="store_true", help="Print the report as JSON")
    p.add_argument("--output", "-o", type=Path, default=None, help="Write the report to FILE instead of stdout")
    p.add_argument("--policy", default=None, help="Policy file or preset: default | strict | permissive")
    p.add_argument("--workers", type=int, default=None, help="Evaluate detectors on N threads")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-privacy-scanner",
        description="Deterministic privacy-risk analysis for Solana wallets, transactions, and programs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only warnings and errors on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    for command, kind in _SCAN_COMMANDS.items():
        p = sub.add_parser(command, help=f"Scan a {kind.value}")
        p.add_argument("target", help="Signature" if kind == TargetType.TRANSACTION else "Base58 address")
        p.add_argument("--rpc", default=None, help="Solana RPC URL (default: SOLANA_RPC_URL / HELIUS_API_KEY)")
        p.add_argument(
            "--max-signatures",
            type=int,
            default=None,
            help=f"Transactions to fetch (default: SCAN_MAX_SIGNATURES or {env.DEFAULT_MAX_SIGNATURES})",
        )
        p.add_argument("--save-raw", type=Path, default=None, help="Also write the raw snapshot to FILE for `analyze`")
        _add_report_options(p)

    p = sub.add_parser("analyze", help="Analyze a saved raw snapshot offline")
    p.add_argument("snapshot", type=Path, help="Raw snapshot JSON (from --save-raw)")
    p.add_argument("--type", dest="target_type", choices=[t.value for t in TargetType], default="wallet")
    _add_report_options(p)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    return parser


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return EXIT_INPUT_ERROR


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


async def _fetch(args: argparse.Namespace, kind: TargetType) -> RawScanData:
    async with SolanaRpcClient(rpc_url=args.rpc) as client:
        return await collect_target(args.target, kind, client=client, max_signatures=args.max_signatures)


def _emit(report: PrivacyReport, args: argparse.Namespace) -> None:
    text = json.dumps(report.to_dict(), indent=2) + "\n" if args.json else format_report(report)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        print(f"Report written to {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(text)


def _finish(report: PrivacyReport, policy: PrivacyPolicy | None, args: argparse.Namespace) -> int:
    _emit(report, args)
    if policy is None:
        return EXIT_OK
    result = evaluate_policy(report, policy)
    if result.passed:
        return EXIT_OK
    print("Policy check failed:", file=sys.stderr)
    for violation in result.violations:
        print(f"  - {violation}", file=sys.stderr)
    logger.info("cli_policy_failed", target=report.target, violations=len(result.violations))
    return EXIT_POLICY_FAILED


def _run_report_command(args: argparse.Namespace) -> int:
    try:
        policy = load_policy(args.policy) if args.policy is not None else None
        labels = StaticLabelProvider(args.labels)
    except (PolicyError, LabelProviderError) as e:
        return _error(str(e))

    if args.command == "analyze":
        try:
            payload = json.loads(args.snapshot.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return _error(f"Cannot read snapshot {args.snapshot}: {e}")
        if not isinstance(payload, dict):
            return _error(f"Snapshot {args.snapshot} is not a JSON object")
        raw = load_snapshot(payload, args.target_type)
    else:
        kind = _SCAN_COMMANDS[args.command]
        try:
            validate_target(args.target, kind)
        except InvalidTargetError as e:
            return _error(str(e))
        raw = asyncio.run(_fetch(args, kind))
        if args.save_raw is not None:
            _write_json(args.save_raw, raw.to_dict())

    report = analyze_snapshot(raw, labels, max_workers=args.workers)
    return _finish(report, policy, args)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from solana_privacy_scanner.api_server.app import app

    logger.info("cli_server_starting", host=args.host, port=args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        configure_structlog(level="DEBUG")
    elif args.quiet:
        configure_structlog(level="WARNING")
    if args.command == "serve":
        return _serve(args)
    return _run_report_command(args)


if __name__ == "__main__":
    sys.exit(main())
