"""
Data normalizer: raw wallet / transaction / program snapshots -> ScanContext.

The only component that recovers from malformed upstream data. Absent
transactions (failed fetches) and unparseable payloads are skipped and never
counted; every collection defaults to empty. Labels are resolved with one
lookup_many() call per scan and copied into the context as a snapshot.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable

from solana_privacy_scanner.analysis_engine.models import (
    Label,
    ScanContext,
    TargetType,
    TimeRange,
    TokenAccountBalance,
)
from solana_privacy_scanner.labels import LabelProvider
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.normalizer.parser import ParsedTransaction, parse_transaction
from solana_privacy_scanner.solana_listener.models import (
    RawProgramData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
)

logger = get_logger(__name__)


def _parse_all(items: Iterable[Any]) -> list[ParsedTransaction]:
    """Parse RawTransaction entries in order; skip absent, unparseable, and duplicate ones."""
    parsed: list[ParsedTransaction] = []
    seen: set[str] = set()
    for item in items or []:
        if not isinstance(item, RawTransaction):
            continue
        if item.transaction is None:
            logger.info(
                "normalizer_transaction_absent",
                signature=item.signature,
                reason=item.fetch_error or "not found",
            )
            continue
        p = parse_transaction(item.transaction, item.signature, item.block_time)
        if p is None:
            logger.warning("normalizer_transaction_skipped", signature=item.signature)
            continue
        sig = p.metadata.signature
        if sig and sig in seen:
            continue
        seen.add(sig)
        parsed.append(p)
    return parsed


def _token_account_balances(items: Iterable[Any]) -> list[TokenAccountBalance]:
    """getTokenAccountsByOwner (jsonParsed) items -> balances; malformed items skipped."""
    out: list[TokenAccountBalance] = []
    for item in items or []:
        if not isinstance(item, dict) or not isinstance(item.get("pubkey"), str):
            continue
        data = (item.get("account") or {}).get("data") if isinstance(item.get("account"), dict) else None
        parsed = data.get("parsed") if isinstance(data, dict) else None
        info = parsed.get("info") if isinstance(parsed, dict) else None
        if not isinstance(info, dict) or not isinstance(info.get("mint"), str):
            continue
        amount = info.get("tokenAmount") if isinstance(info.get("tokenAmount"), dict) else {}
        balance = amount.get("uiAmount")
        if not isinstance(balance, (int, float)) or isinstance(balance, bool):
            try:
                balance = float(amount.get("uiAmountString"))
            except (TypeError, ValueError):
                balance = 0.0
        out.append(TokenAccountBalance(mint=info["mint"], address=item["pubkey"], balance=float(balance)))
    return out


def _lookup_labels(labels: LabelProvider | None, addresses: set[str]) -> dict[str, Label]:
    """Resolve every address with one batched lookup; failures mean no labels."""
    if labels is None or not addresses:
        return {}
    wanted = sorted(addresses)
    try:
        found = labels.lookup_many(wanted)
    except Exception as e:
        logger.warning("normalizer_label_lookup_failed", address_count=len(wanted), error=str(e))
        return {}
    return {addr: found[addr] for addr in wanted if addr in found}


def _build_context(
    target: str,
    target_type: TargetType,
    parsed: list[ParsedTransaction],
    labels: LabelProvider | None,
    token_accounts: list[TokenAccountBalance] | None = None,
) -> ScanContext:
    transfers = [t for p in parsed for t in p.transfers]
    instructions = [ix for p in parsed for ix in p.instructions]
    transactions = [p.metadata for p in parsed]
    token_events = [e for p in parsed for e in p.token_events]
    pdas = [d for p in parsed for d in p.pda_interactions]

    counterparties: set[str] = set()
    for t in transfers:
        if t.from_address == target:
            counterparties.add(t.to_address)
        elif t.to_address == target:
            counterparties.add(t.from_address)
        else:
            counterparties.update((t.from_address, t.to_address))
    counterparties.update(d.pda for d in pdas)
    if target_type != TargetType.WALLET:
        for p in parsed:
            counterparties.update(p.account_keys)
    counterparties.discard(target)
    counterparties.discard("")

    fee_payers = {tx.fee_payer for tx in transactions}
    signers = {s for tx in transactions for s in tx.signers}
    programs = {ix.program_id for ix in instructions if ix.program_id}

    label_snapshot = _lookup_labels(labels, (counterparties | fee_payers | signers | programs) - {target})

    times = [tx.block_time for tx in transactions if tx.block_time is not None]
    time_range = TimeRange(earliest=min(times), latest=max(times)) if times else TimeRange()

    context = ScanContext(
        target=target,
        target_type=target_type,
        transfers=tuple(transfers),
        instructions=tuple(instructions),
        transactions=tuple(transactions),
        token_account_events=tuple(token_events),
        pda_interactions=tuple(pdas),
        counterparties=frozenset(counterparties),
        fee_payers=frozenset(fee_payers),
        signers=frozenset(signers),
        programs=frozenset(programs),
        labels=MappingProxyType(label_snapshot),
        token_accounts=tuple(token_accounts or ()),
        time_range=time_range,
        transaction_count=len(parsed),
    )
    logger.info(
        "normalizer_context_built",
        target=target,
        target_type=target_type.value,
        transaction_count=context.transaction_count,
        transfer_count=len(transfers),
        counterparty_count=len(counterparties),
        labeled_count=len(label_snapshot),
    )
    return context


def normalize_wallet(raw: RawWalletData, labels: LabelProvider | None) -> ScanContext:
    parsed = _parse_all(raw.transactions)
    return _build_context(
        raw.address or "",
        TargetType.WALLET,
        parsed,
        labels,
        token_accounts=_token_account_balances(raw.token_accounts),
    )


def normalize_transaction(raw: RawTransactionData, labels: LabelProvider | None) -> ScanContext:
    item = RawTransaction(signature=raw.signature or "", transaction=raw.transaction, block_time=raw.block_time)
    return _build_context(raw.signature or "", TargetType.TRANSACTION, _parse_all([item]), labels)


def normalize_program(raw: RawProgramData, labels: LabelProvider | None) -> ScanContext:
    parsed = _parse_all(raw.related_transactions)
    logger.debug("normalizer_program_accounts", program_id=raw.program_id, account_count=len(raw.accounts or []))
    return _build_context(raw.program_id or "", TargetType.PROGRAM, parsed, labels)


def normalize(
    raw: RawWalletData | RawTransactionData | RawProgramData,
    labels: LabelProvider | None,
) -> ScanContext:
    """
    Convert one raw snapshot plus a label provider into a ScanContext.

    Args:
        raw: Wallet history, single transaction, or program activity snapshot.
        labels: Label provider; looked up once per scan. None disables labels.

    Returns:
        An immutable ScanContext. transaction_count counts only transactions
        that were fetched and parsed.
    """
    if isinstance(raw, RawWalletData):
        return normalize_wallet(raw, labels)
    if isinstance(raw, RawTransactionData):
        return normalize_transaction(raw, labels)
    if isinstance(raw, RawProgramData):
        return normalize_program(raw, labels)
    raise TypeError(f"Unsupported raw data type: {type(raw).__name__}")
