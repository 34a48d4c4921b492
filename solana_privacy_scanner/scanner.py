"""
Scan orchestration: validate target -> collect -> normalize -> report.

Target validation runs before any I/O, so an invalid address or signature
raises InvalidTargetError without touching the network. Everything after
validation degrades to missing data instead of raising.
"""

from __future__ import annotations

from typing import Any, Mapping

from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_privacy_scanner.analysis_engine.models import PrivacyReport, TargetType
from solana_privacy_scanner.analysis_engine.report import generate_report
from solana_privacy_scanner.config import env
from solana_privacy_scanner.core.exceptions import InvalidTargetError
from solana_privacy_scanner.heuristics.registry import DetectorRegistry
from solana_privacy_scanner.labels import LabelProvider, StaticLabelProvider
from solana_privacy_scanner.logging import bind_target
from solana_privacy_scanner.normalizer import normalize
from solana_privacy_scanner.solana_listener.collectors import (
    collect_program_data,
    collect_transaction_data,
    collect_wallet_data,
)
from solana_privacy_scanner.solana_listener.models import (
    RawProgramData,
    RawScanData,
    RawTransactionData,
    RawWalletData,
)
from solana_privacy_scanner.solana_listener.rpc_client import SolanaRpcClient


def validate_target(target: str, target_type: TargetType | str) -> str:
    """
    Check that target parses as a Solana pubkey (wallet, program) or
    signature (transaction). Returns the stripped target.

    Raises:
        InvalidTargetError: target is empty or does not parse.
    """
    kind = TargetType(target_type)
    value = (target or "").strip()
    if not value:
        raise InvalidTargetError(target, kind.value, "empty")
    try:
        if kind == TargetType.TRANSACTION:
            Signature.from_string(value)
        else:
            Pubkey.from_string(value)
    except ValueError as e:
        raise InvalidTargetError(target, kind.value, str(e)) from e
    return value


def analyze_snapshot(
    raw: RawScanData,
    labels: LabelProvider | None = None,
    *,
    registry: DetectorRegistry | None = None,
    max_workers: int | None = None,
) -> PrivacyReport:
    """Normalize one raw snapshot and build its report. No network access."""
    context = normalize(raw, labels)
    return generate_report(context, registry=registry, max_workers=max_workers)


def load_snapshot(payload: Mapping[str, Any], target_type: TargetType | str) -> RawScanData:
    """Build a raw snapshot from its to_dict() form (as written by ``--save-raw``)."""
    kind = TargetType(target_type)
    if kind == TargetType.WALLET:
        return RawWalletData.from_dict(payload)
    if kind == TargetType.TRANSACTION:
        return RawTransactionData.from_dict(payload)
    return RawProgramData.from_dict(payload)


async def _collect(
    client: SolanaRpcClient,
    target: str,
    kind: TargetType,
    max_signatures: int,
) -> RawScanData:
    if kind == TargetType.WALLET:
        return await collect_wallet_data(client, target, max_signatures=max_signatures)
    if kind == TargetType.TRANSACTION:
        return await collect_transaction_data(client, target)
    return await collect_program_data(client, target, max_transactions=max_signatures)


async def collect_target(
    target: str,
    target_type: TargetType | str,
    *,
    client: SolanaRpcClient | None = None,
    max_signatures: int | None = None,
) -> RawScanData:
    """Validate and fetch the raw snapshot for a target."""
    kind = TargetType(target_type)
    value = validate_target(target, kind)
    limit = max_signatures if max_signatures is not None else env.get_max_signatures()
    if client is not None:
        return await _collect(client, value, kind, limit)
    async with SolanaRpcClient() as owned:
        return await _collect(owned, value, kind, limit)


async def scan(
    target: str,
    target_type: TargetType | str,
    *,
    client: SolanaRpcClient | None = None,
    labels: LabelProvider | None = None,
    max_signatures: int | None = None,
    registry: DetectorRegistry | None = None,
    max_workers: int | None = None,
) -> PrivacyReport:
    """
    Full scan of one target.

    Args:
        target: Wallet address, transaction signature, or program id.
        target_type: wallet | transaction | program.
        client: RPC client to use; a client from config.env is opened and closed when omitted.
        labels: Label provider; the bundled StaticLabelProvider when omitted.
        max_signatures: Signature limit for wallet and program history.
        registry: Detectors to run; the default battery when omitted.
        max_workers: Evaluate detectors on a thread pool when greater than 1.

    Raises:
        InvalidTargetError: target does not parse for its type.
        LabelProviderError: default label database cannot be loaded.
    """
    kind = TargetType(target_type)
    log = bind_target(target, kind.value)
    validate_target(target, kind)
    provider = labels if labels is not None else StaticLabelProvider()
    log.info("scan_started", max_signatures=max_signatures)
    raw = await collect_target(target, kind, client=client, max_signatures=max_signatures)
    report = analyze_snapshot(raw, provider, registry=registry, max_workers=max_workers)
    log.info(
        "scan_completed",
        overall_risk=report.overall_risk.value,
        signals=report.summary.total_signals,
        transactions=report.summary.transactions_analyzed,
    )
    return report


async def scan_wallet(address: str, **kwargs: Any) -> PrivacyReport:
    return await scan(address, TargetType.WALLET, **kwargs)


async def scan_transaction(signature: str, **kwargs: Any) -> PrivacyReport:
    return await scan(signature, TargetType.TRANSACTION, **kwargs)


async def scan_program(program_id: str, **kwargs: Any) -> PrivacyReport:
    return await scan(program_id, TargetType.PROGRAM, **kwargs)
