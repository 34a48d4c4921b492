"""
Solana transaction parser: one getTransaction payload to normalized pieces.

Handles jsonParsed and plain json encodings, legacy and versioned messages.
Every helper tolerates missing or mistyped fields and returns an empty value
instead of raising; parse_transaction() returns None only when the payload has
no usable message (it then counts as absent, not as a parsed transaction).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterator

import base58
from solders.pubkey import Pubkey

from solana_privacy_scanner.analysis_engine.models import (
    NormalizedInstruction,
    PDAInteraction,
    TokenAccountEvent,
    TokenAccountEventType,
    TransactionMetadata,
    Transfer,
)
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.normalizer.programs import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    COMPUTE_BUDGET_PROGRAM_ID,
    CORE_PROGRAM_IDS,
    MEMO_PROGRAM_IDS,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_IDS,
    categorize_instruction,
    parsed_info,
    parsed_type,
)

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# System Program instruction discriminators (u32 little-endian)
SYSTEM_TRANSFER_DISCRIMINATOR = 2
# ComputeBudget SetComputeUnitPrice discriminator (u8), followed by u64 micro-lamports
COMPUTE_UNIT_PRICE_DISCRIMINATOR = 3

SYSTEM_TRANSFER_TYPES = frozenset({"transfer", "transferWithSeed"})
TOKEN_INIT_TYPES = frozenset({"initializeAccount", "initializeAccount2", "initializeAccount3"})
ATA_CREATE_TYPES = frozenset({"create", "createIdempotent"})


@dataclass
class ParsedTransaction:
    """Everything the normalizer extracts from one transaction payload."""

    metadata: TransactionMetadata
    account_keys: list[str]
    transfers: list[Transfer] = field(default_factory=list)
    instructions: list[NormalizedInstruction] = field(default_factory=list)
    token_events: list[TokenAccountEvent] = field(default_factory=list)
    pda_interactions: list[PDAInteraction] = field(default_factory=list)


@dataclass(frozen=True)
class _AccountKey:
    pubkey: str
    signer: bool


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def _get_message_and_meta(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, dict[str, Any]]:
    """Return (transaction.message, meta) from a getTransaction-style result."""
    tx_obj = raw.get("transaction")
    if not isinstance(tx_obj, dict):
        return None, {}
    message = tx_obj.get("message")
    if not isinstance(message, dict):
        return None, {}
    meta = raw.get("meta")
    return message, meta if isinstance(meta, dict) else {}


def _get_account_keys(message: dict[str, Any], meta: dict[str, Any]) -> list[_AccountKey]:
    """
    Resolve accountKeys with signer flags (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (never signers).
    """
    keys = message.get("accountKeys")
    if not isinstance(keys, list):
        return []
    header = message.get("header") if isinstance(message.get("header"), dict) else {}
    num_signers = header.get("numRequiredSignatures")
    if not isinstance(num_signers, int):
        num_signers = 1
    out: list[_AccountKey] = []
    for i, k in enumerate(keys):
        if isinstance(k, str):
            out.append(_AccountKey(pubkey=k, signer=i < num_signers))
        elif isinstance(k, dict) and isinstance(k.get("pubkey"), str):
            out.append(_AccountKey(pubkey=k["pubkey"], signer=bool(k.get("signer"))))
    loaded = meta.get("loadedAddresses")
    if isinstance(loaded, dict):
        for role in ("writable", "readonly"):
            for addr in loaded.get(role) or []:
                if isinstance(addr, str):
                    out.append(_AccountKey(pubkey=addr, signer=False))
    return out


def _get_program_id(keys: list[str], ix: dict[str, Any]) -> str | None:
    """Resolve program id: jsonParsed programId, else programIdIndex -> account key."""
    pid = ix.get("programId")
    if isinstance(pid, str) and pid:
        return pid
    idx = ix.get("programIdIndex")
    if isinstance(idx, int) and 0 <= idx < len(keys):
        return keys[idx]
    return None


def _get_accounts(keys: list[str], ix: dict[str, Any]) -> tuple[str, ...] | None:
    """Instruction accounts as addresses; for jsonParsed, the address-like info values."""
    accounts = ix.get("accounts")
    if isinstance(accounts, list):
        out: list[str] = []
        for a in accounts:
            if isinstance(a, str):
                out.append(a)
            elif isinstance(a, int) and 0 <= a < len(keys):
                out.append(keys[a])
        return tuple(out)
    info = parsed_info(ix)
    if info:
        return tuple(v for v in info.values() if isinstance(v, str) and 32 <= len(v) <= 44)
    return None


def _b58decode(data: Any) -> bytes | None:
    if not isinstance(data, str) or not data:
        return None
    try:
        return base58.b58decode(data)
    except ValueError:
        return None


def _iter_instructions(
    message: dict[str, Any], meta: dict[str, Any]
) -> Iterator[tuple[dict[str, Any], bool]]:
    """Yield (instruction, is_inner) in execution order: each outer ix, then its CPIs."""
    outer = message.get("instructions")
    if not isinstance(outer, list):
        outer = []
    inner_by_index: dict[int, list[dict[str, Any]]] = {}
    for block in meta.get("innerInstructions") or []:
        if not isinstance(block, dict) or not isinstance(block.get("index"), int):
            continue
        inner_by_index[block["index"]] = [
            i for i in block.get("instructions") or [] if isinstance(i, dict)
        ]
    for i, ix in enumerate(outer):
        if not isinstance(ix, dict):
            continue
        yield ix, False
        for inner in inner_by_index.get(i, []):
            yield inner, True


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _extract_memo(program_id: str | None, ix: dict[str, Any]) -> str | None:
    """Memo text from a Memo program instruction only."""
    if program_id not in MEMO_PROGRAM_IDS:
        return None
    parsed = ix.get("parsed")
    if isinstance(parsed, str):
        return parsed
    raw = _b58decode(ix.get("data"))
    if raw is None:
        return None
    return raw.decode("utf-8", errors="replace")


def _extract_priority_fee(program_id: str | None, ix: dict[str, Any]) -> int | None:
    """Micro-lamport compute unit price from ComputeBudget SetComputeUnitPrice."""
    if program_id != COMPUTE_BUDGET_PROGRAM_ID:
        return None
    if parsed_type(ix) == "setComputeUnitPrice":
        return _as_int(parsed_info(ix).get("microLamports"))
    raw = _b58decode(ix.get("data"))
    if raw is None or len(raw) < 9 or raw[0] != COMPUTE_UNIT_PRICE_DISCRIMINATOR:
        return None
    return int.from_bytes(raw[1:9], "little")


def _extract_system_transfer(
    keys: list[str], program_id: str | None, ix: dict[str, Any]
) -> tuple[str, str, int] | None:
    """(source, destination, lamports) for a System transfer, parsed or raw-encoded."""
    if program_id != SYSTEM_PROGRAM_ID:
        return None
    if parsed_type(ix) in SYSTEM_TRANSFER_TYPES:
        info = parsed_info(ix)
        lamports = _as_int(info.get("lamports"))
        src, dst = info.get("source"), info.get("destination")
        if isinstance(src, str) and isinstance(dst, str) and lamports is not None:
            return src, dst, lamports
        return None
    raw = _b58decode(ix.get("data"))
    if raw is None or len(raw) < 12:
        return None
    if int.from_bytes(raw[0:4], "little") != SYSTEM_TRANSFER_DISCRIMINATOR:
        return None
    accounts = _get_accounts(keys, ix) or ()
    if len(accounts) < 2:
        return None
    return accounts[0], accounts[1], int.from_bytes(raw[4:12], "little")


def _pair_deltas(deltas: list[tuple[str, float]]) -> list[tuple[str, str, float]]:
    """
    Pair each receiver (positive delta) with the largest sender (negative delta).
    Input order is account order; output order follows receivers.
    """
    senders = [(addr, d) for addr, d in deltas if d < 0]
    if not senders:
        return []
    # Largest outflow; ties keep account order.
    sender = min(senders, key=lambda s: s[1])[0]
    return [(sender, addr, d) for addr, d in deltas if d > 0 and addr != sender]


def _balance_delta_transfers(
    keys: list[str], meta: dict[str, Any], signature: str, block_time: int | None
) -> list[Transfer]:
    """SOL transfers inferred from pre/post balances; the fee is added back for the payer."""
    pre = meta.get("preBalances")
    post = meta.get("postBalances")
    if not isinstance(pre, list) or not isinstance(post, list):
        return []
    n = min(len(keys), len(pre), len(post))
    fee = _as_int(meta.get("fee")) or 0
    deltas: list[tuple[str, float]] = []
    for i in range(n):
        a, b = _as_int(pre[i]), _as_int(post[i])
        if a is None or b is None:
            continue
        d = b - a + (fee if i == 0 else 0)
        if d != 0:
            deltas.append((keys[i], d))
    return [
        Transfer(
            from_address=src,
            to_address=dst,
            amount=amount / LAMPORTS_PER_SOL,
            signature=signature,
            block_time=block_time,
        )
        for src, dst, amount in _pair_deltas(deltas)
    ]


def _ui_amount(entry: dict[str, Any]) -> float | None:
    ui = entry.get("uiTokenAmount")
    if not isinstance(ui, dict):
        return None
    amount = ui.get("uiAmount")
    if isinstance(amount, (int, float)) and not isinstance(amount, bool):
        return float(amount)
    try:
        return float(ui.get("uiAmountString"))
    except (TypeError, ValueError):
        return None


def _token_transfers(
    keys: list[str], meta: dict[str, Any], signature: str, block_time: int | None
) -> list[Transfer]:
    """SPL token transfers from pre/post token balances, attributed to token owners."""
    balances: dict[tuple[str, str], list[float]] = {}
    order: list[tuple[str, str]] = []
    for slot, field_name in ((0, "preTokenBalances"), (1, "postTokenBalances")):
        for entry in meta.get(field_name) or []:
            if not isinstance(entry, dict):
                continue
            mint = entry.get("mint")
            idx = entry.get("accountIndex")
            owner = entry.get("owner")
            if not isinstance(owner, str):
                owner = keys[idx] if isinstance(idx, int) and 0 <= idx < len(keys) else None
            amount = _ui_amount(entry)
            if not isinstance(mint, str) or owner is None or amount is None:
                continue
            key = (mint, owner)
            if key not in balances:
                balances[key] = [0.0, 0.0]
                order.append(key)
            balances[key][slot] += amount
    by_mint: dict[str, list[tuple[str, float]]] = defaultdict(list)
    for mint, owner in order:
        pre, post = balances[(mint, owner)]
        delta = post - pre
        if abs(delta) > 1e-12:
            by_mint[mint].append((owner, delta))
    out: list[Transfer] = []
    for mint, deltas in by_mint.items():
        for src, dst, amount in _pair_deltas(deltas):
            out.append(
                Transfer(
                    from_address=src,
                    to_address=dst,
                    amount=amount,
                    token=mint,
                    signature=signature,
                    block_time=block_time,
                )
            )
    return out


def _lamports_to_sol(keys: list[str], meta: dict[str, Any], account: str) -> float | None:
    pre = meta.get("preBalances")
    if not isinstance(pre, list) or account not in keys:
        return None
    idx = keys.index(account)
    if idx >= len(pre):
        return None
    lamports = _as_int(pre[idx])
    return lamports / LAMPORTS_PER_SOL if lamports is not None else None


def _token_account_event(
    keys: list[str],
    meta: dict[str, Any],
    program_id: str | None,
    ix: dict[str, Any],
    fee_payer: str,
    signature: str,
    block_time: int | None,
) -> TokenAccountEvent | None:
    ix_type = parsed_type(ix)
    info = parsed_info(ix)
    if program_id == ASSOCIATED_TOKEN_PROGRAM_ID and ix_type in ATA_CREATE_TYPES:
        account, owner = info.get("account"), info.get("wallet")
        if not isinstance(account, str) or not isinstance(owner, str):
            return None
        source = info.get("source")
        return TokenAccountEvent(
            type=TokenAccountEventType.CREATE,
            token_account=account,
            owner=owner,
            mint=info.get("mint") if isinstance(info.get("mint"), str) else None,
            funder=source if isinstance(source, str) else fee_payer,
            signature=signature,
            block_time=block_time,
        )
    if program_id not in TOKEN_PROGRAM_IDS:
        return None
    if ix_type in TOKEN_INIT_TYPES:
        account, owner = info.get("account"), info.get("owner")
        if not isinstance(account, str) or not isinstance(owner, str):
            return None
        return TokenAccountEvent(
            type=TokenAccountEventType.CREATE,
            token_account=account,
            owner=owner,
            mint=info.get("mint") if isinstance(info.get("mint"), str) else None,
            funder=fee_payer,
            signature=signature,
            block_time=block_time,
        )
    if ix_type == "closeAccount":
        account = info.get("account")
        owner = info.get("owner") or info.get("multisigOwner")
        destination = info.get("destination")
        if not isinstance(account, str):
            return None
        return TokenAccountEvent(
            type=TokenAccountEventType.CLOSE,
            token_account=account,
            owner=owner if isinstance(owner, str) else fee_payer,
            rent_refund=_lamports_to_sol(keys, meta, account),
            refund_destination=destination if isinstance(destination, str) else None,
            signature=signature,
            block_time=block_time,
        )
    return None


def _is_off_curve(address: str) -> bool:
    try:
        return not Pubkey.from_string(address).is_on_curve()
    except ValueError:
        return False


def _pda_interactions(
    program_id: str | None,
    accounts: tuple[str, ...] | None,
    skip: set[str],
    signature: str,
) -> list[PDAInteraction]:
    """Off-curve accounts passed to a non-core program are program-derived addresses."""
    if not program_id or program_id in CORE_PROGRAM_IDS or not accounts:
        return []
    out: list[PDAInteraction] = []
    for account in accounts:
        if account in skip or account in CORE_PROGRAM_IDS:
            continue
        if _is_off_curve(account):
            out.append(PDAInteraction(pda=account, program_id=program_id, signature=signature))
    return out


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


def parse_transaction(
    raw: dict[str, Any] | None,
    signature: str = "",
    block_time: int | None = None,
) -> ParsedTransaction | None:
    """
    Parse one getTransaction result into normalized pieces.

    Args:
        raw: RPC result object, or None when the fetch failed.
        signature: Signature the payload was requested for (falls back to
            transaction.signatures[0]).
        block_time: blockTime from the signature listing, used when the payload
            has none.

    Returns:
        ParsedTransaction, or None if the payload is absent or has no message
        or account keys.
    """
    if not isinstance(raw, dict):
        return None
    message, meta = _get_message_and_meta(raw)
    if message is None:
        logger.debug("parser_no_message", signature=signature)
        return None
    account_keys = _get_account_keys(message, meta)
    if not account_keys:
        logger.debug("parser_no_account_keys", signature=signature)
        return None
    keys = [k.pubkey for k in account_keys]

    if not signature:
        sigs = raw["transaction"].get("signatures")
        signature = sigs[0] if isinstance(sigs, list) and sigs and isinstance(sigs[0], str) else ""
    bt = _as_int(raw.get("blockTime"))
    if bt is None:
        bt = _as_int(block_time)

    fee_payer = keys[0]
    signers = tuple(k.pubkey for k in account_keys if k.signer)
    invoked: set[str] = set()
    memos: list[str] = []
    priority_fee: int | None = None
    system_transfers: list[Transfer] = []
    instructions: list[NormalizedInstruction] = []
    token_events: list[TokenAccountEvent] = []
    seen_events: set[tuple[str, str]] = set()
    pdas: list[PDAInteraction] = []
    seen_pdas: set[tuple[str, str]] = set()

    for ix, is_inner in _iter_instructions(message, meta):
        program_id = _get_program_id(keys, ix)
        if program_id:
            invoked.add(program_id)
        accounts = _get_accounts(keys, ix)

        parsed = ix.get("parsed")
        instructions.append(
            NormalizedInstruction(
                program_id=program_id or "",
                category=categorize_instruction(program_id, ix),
                signature=signature,
                block_time=bt,
                accounts=accounts,
                data=dict(parsed) if isinstance(parsed, dict) else None,
                raw_data=None if isinstance(parsed, dict) else _b58decode(ix.get("data")),
                is_inner=is_inner,
            )
        )
        # Memos and compute budget only count at the top level.
        if not is_inner:
            memo = _extract_memo(program_id, ix)
            if memo:
                memos.append(memo)
            fee = _extract_priority_fee(program_id, ix)
            if fee is not None:
                priority_fee = fee

        transfer = _extract_system_transfer(keys, program_id, ix)
        if transfer is not None and transfer[2] > 0:
            src, dst, lamports = transfer
            system_transfers.append(
                Transfer(
                    from_address=src,
                    to_address=dst,
                    amount=lamports / LAMPORTS_PER_SOL,
                    signature=signature,
                    block_time=bt,
                )
            )

        event = _token_account_event(keys, meta, program_id, ix, fee_payer, signature, bt)
        if event is not None:
            event_key = (event.type.value, event.token_account)
            if event_key not in seen_events:
                seen_events.add(event_key)
                token_events.append(event)

        for pda in _pda_interactions(program_id, accounts, set(signers) | invoked, signature):
            pda_key = (pda.pda, pda.program_id)
            if pda_key not in seen_pdas:
                seen_pdas.add(pda_key)
                pdas.append(pda)

    transfers = system_transfers or _balance_delta_transfers(keys, meta, signature, bt)
    transfers = transfers + _token_transfers(keys, meta, signature, bt)

    metadata = TransactionMetadata(
        signature=signature,
        block_time=bt,
        fee_payer=fee_payer,
        signers=signers,
        memo=" | ".join(memos) if memos else None,
        priority_fee=priority_fee,
        compute_units_used=_as_int(meta.get("computeUnitsConsumed")),
        fee=_as_int(meta.get("fee")),
    )
    # Programs invoked anywhere in the transaction are not PDAs.
    pdas = [p for p in pdas if p.pda not in invoked]
    return ParsedTransaction(
        metadata=metadata,
        account_keys=keys,
        transfers=transfers,
        instructions=instructions,
        token_events=token_events,
        pda_interactions=pdas,
    )
