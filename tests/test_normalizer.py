"""
Tests for the transaction parser and the normalizer (raw snapshot -> ScanContext).

Payloads mirror getTransaction results in jsonParsed and plain json encodings.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import base58
import pytest

from solana_privacy_scanner.analysis_engine.models import (
    InstructionCategory,
    TargetType,
    TokenAccountEventType,
)
from solana_privacy_scanner.heuristics.staking import vote_account_of
from solana_privacy_scanner.normalizer import normalize, parse_transaction
from solana_privacy_scanner.normalizer.programs import (
    COMPUTE_BUDGET_PROGRAM_ID,
    MEMO_PROGRAM_ID,
    STAKE_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from solana_privacy_scanner.solana_listener.models import (
    RawProgramData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
)

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
ALICE = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
BOB = "5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9"
EXCHANGE = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
TOKEN_ACCOUNT = "H8sMJSCQxfKiFTCfDR3DUMLPwcRbM61LGFJ8N4dK3WjS"
SIGS = [f"sig{i}" + "1" * 60 for i in range(1, 6)]


def _raw_json_tx(lamports: int, micro_lamports: int) -> dict:
    """Plain json encoding: string account keys, index-based instructions, base58 data."""
    transfer_data = (2).to_bytes(4, "little") + lamports.to_bytes(8, "little")
    price_data = bytes([3]) + micro_lamports.to_bytes(8, "little")
    return {
        "blockTime": 1_700_000_100,
        "transaction": {
            "signatures": ["rawsig" + "1" * 60],
            "message": {
                "header": {"numRequiredSignatures": 2, "numReadonlySignedAccounts": 0, "numReadonlyUnsignedAccounts": 2},
                "accountKeys": [ALICE, TARGET, BOB, SYSTEM_PROGRAM_ID, COMPUTE_BUDGET_PROGRAM_ID],
                "instructions": [
                    {"programIdIndex": 4, "accounts": [], "data": base58.b58encode(price_data).decode()},
                    {"programIdIndex": 3, "accounts": [1, 2], "data": base58.b58encode(transfer_data).decode()},
                ],
            },
        },
        "meta": {"err": None, "fee": 5000, "preBalances": [0] * 5, "postBalances": [0] * 5},
    }


def test_parse_transfer_with_memo(tx_factory):
    """jsonParsed transfer: fee payer, signers, memo, transfer amount in SOL."""
    raw = tx_factory(SIGS[0], TARGET, ALICE, 1_500_000_000, memo="Payment to alice@example.com")
    parsed = parse_transaction(raw, SIGS[0])
    assert parsed is not None
    meta = parsed.metadata
    assert meta.fee_payer == TARGET
    assert meta.signers == (TARGET,)
    assert meta.memo == "Payment to alice@example.com"
    assert meta.fee == 5000
    assert meta.compute_units_used == 450
    assert len(parsed.transfers) == 1
    t = parsed.transfers[0]
    assert (t.from_address, t.to_address, t.amount, t.token) == (TARGET, ALICE, 1.5, None)
    categories = [ix.category for ix in parsed.instructions]
    assert categories[0] == InstructionCategory.TRANSFER
    assert parsed.instructions[1].program_id == MEMO_PROGRAM_ID


def test_parse_external_fee_payer(tx_factory):
    """Fee payer is the first account key; both payer and source sign."""
    parsed = parse_transaction(tx_factory(SIGS[0], TARGET, ALICE, 1000, fee_payer=BOB), SIGS[0])
    assert parsed.metadata.fee_payer == BOB
    assert parsed.metadata.signers == (BOB, TARGET)


def test_parse_raw_json_encoding():
    """Plain json: signers from header, transfer and priority fee decoded from base58 data."""
    parsed = parse_transaction(_raw_json_tx(2_000_000_000, 25_000))
    assert parsed is not None
    assert parsed.metadata.signature.startswith("rawsig")
    assert parsed.metadata.signers == (ALICE, TARGET)
    assert parsed.metadata.priority_fee == 25_000
    assert [(t.from_address, t.to_address, t.amount) for t in parsed.transfers] == [(TARGET, BOB, 2.0)]


def test_parse_records_inner_instructions():
    """CPIs are recorded as inner; raw bytes are kept; an inner memo is not the transaction memo."""
    delegate = (2).to_bytes(4, "little")
    raw = {
        "blockTime": 1_700_000_000,
        "transaction": {
            "signatures": [SIGS[0]],
            "message": {
                "header": {"numRequiredSignatures": 1, "numReadonlySignedAccounts": 0, "numReadonlyUnsignedAccounts": 3},
                "accountKeys": [TARGET, BOB, ALICE, STAKE_PROGRAM_ID, MEMO_PROGRAM_ID],
                "instructions": [
                    {"programIdIndex": 3, "accounts": [1, 2], "data": base58.b58encode(delegate).decode()},
                ],
            },
        },
        "meta": {
            "fee": 5000,
            "preBalances": [0] * 5,
            "postBalances": [0] * 5,
            "innerInstructions": [
                {"index": 0, "instructions": [
                    {"programIdIndex": 4, "accounts": [], "data": base58.b58encode(b"inner note").decode()},
                ]},
            ],
        },
    }
    parsed = parse_transaction(raw, SIGS[0])
    outer, inner = parsed.instructions
    assert (outer.program_id, outer.is_inner, outer.raw_data) == (STAKE_PROGRAM_ID, False, delegate)
    assert (inner.program_id, inner.is_inner) == (MEMO_PROGRAM_ID, True)
    assert vote_account_of(outer) == ALICE
    assert parsed.metadata.memo is None


def test_parse_balance_delta_fallback():
    """Without a System transfer instruction, SOL movement comes from balance deltas."""
    raw = {
        "blockTime": 1_700_000_000,
        "transaction": {
            "signatures": [SIGS[0]],
            "message": {
                "accountKeys": [
                    {"pubkey": TARGET, "signer": True},
                    {"pubkey": ALICE, "signer": False},
                ],
                "instructions": [],
            },
        },
        "meta": {"fee": 5000, "preBalances": [3_000_005_000, 0], "postBalances": [1_000_000_000, 2_000_000_000]},
    }
    parsed = parse_transaction(raw, SIGS[0])
    assert [(t.from_address, t.to_address, t.amount) for t in parsed.transfers] == [(TARGET, ALICE, 2.0)]


def test_parse_close_account_event():
    """closeAccount yields a CLOSE event with the rent refund from preBalances."""
    raw = {
        "blockTime": 1_700_000_000,
        "transaction": {
            "signatures": [SIGS[0]],
            "message": {
                "accountKeys": [
                    {"pubkey": TARGET, "signer": True},
                    {"pubkey": TOKEN_ACCOUNT, "signer": False},
                    {"pubkey": EXCHANGE, "signer": False},
                    {"pubkey": TOKEN_PROGRAM_ID, "signer": False},
                ],
                "instructions": [
                    {
                        "programId": TOKEN_PROGRAM_ID,
                        "program": "spl-token",
                        "parsed": {
                            "type": "closeAccount",
                            "info": {"account": TOKEN_ACCOUNT, "destination": EXCHANGE, "owner": TARGET},
                        },
                    }
                ],
            },
        },
        "meta": {"fee": 5000, "preBalances": [1_000_000_000, 2_039_280, 0, 1], "postBalances": [999_995_000, 0, 2_039_280, 1]},
    }
    parsed = parse_transaction(raw, SIGS[0])
    assert len(parsed.token_events) == 1
    event = parsed.token_events[0]
    assert event.type == TokenAccountEventType.CLOSE
    assert event.owner == TARGET
    assert event.refund_destination == EXCHANGE
    assert event.rent_refund == 0.00203928
    assert parsed.instructions[0].category == InstructionCategory.TOKEN_OPERATION


def test_parse_without_message_returns_none():
    """Payloads with no message or no account keys are not transactions."""
    assert parse_transaction(None) is None
    assert parse_transaction({"transaction": {}}) is None
    assert parse_transaction({"transaction": {"message": {"accountKeys": []}}}) is None


def test_null_transaction_not_counted(tx_factory):
    """5 signatures, fetch #3 failed -> 4 transactions, nothing attributed to #3."""
    transactions = []
    for i, sig in enumerate(SIGS):
        if i == 2:
            transactions.append(RawTransaction.absent(sig, 1_700_000_000 + i, "transaction not found"))
        else:
            raw = tx_factory(sig, TARGET, ALICE, 1_000_000 * (i + 1), 1_700_000_000 + i)
            transactions.append(RawTransaction(signature=sig, transaction=raw, block_time=1_700_000_000 + i))
    context = normalize(RawWalletData(address=TARGET, transactions=transactions), None)

    assert context.transaction_count == 4
    assert SIGS[2] not in {tx.signature for tx in context.transactions}
    assert SIGS[2] not in {t.signature for t in context.transfers}
    assert SIGS[2] not in {ix.signature for ix in context.instructions}
    assert context.time_range.earliest == 1_700_000_000
    assert context.time_range.latest == 1_700_000_004


def test_duplicate_signatures_parsed_once(tx_factory):
    """The same signature twice in a snapshot counts once."""
    raw = tx_factory(SIGS[0], TARGET, ALICE, 1000)
    item = RawTransaction(signature=SIGS[0], transaction=raw)
    context = normalize(RawWalletData(address=TARGET, transactions=[item, item]), None)
    assert context.transaction_count == 1
    assert len(context.transfers) == 1


def test_malformed_snapshot_times_are_coerced(tx_factory):
    """Replayed snapshots with string or junk blockTime/slot values still normalize."""
    untimed = tx_factory(SIGS[0], TARGET, ALICE, 1000, block_time=None)
    junk = tx_factory(SIGS[2], TARGET, ALICE, 3000)
    junk["blockTime"] = "soon"
    payload = {
        "address": TARGET,
        "signatures": [{"signature": SIGS[0], "slot": "not-a-slot", "blockTime": "1700000000"}],
        "transactions": [
            {"signature": SIGS[0], "transaction": untimed, "blockTime": "1700000000"},
            {"signature": SIGS[1], "transaction": tx_factory(SIGS[1], TARGET, ALICE, 2000, 1_700_000_600), "blockTime": 1_700_000_600},
            {"signature": SIGS[2], "transaction": junk, "blockTime": [1]},
        ],
    }
    raw = RawWalletData.from_dict(payload)
    assert raw.signatures[0].slot is None
    assert raw.signatures[0].block_time == 1_700_000_000
    assert [t.block_time for t in raw.transactions] == [1_700_000_000, 1_700_000_600, None]

    context = normalize(raw, None)
    assert context.transaction_count == 3
    assert [tx.block_time for tx in context.transactions] == [1_700_000_000, 1_700_000_600, None]
    assert context.time_range.earliest == 1_700_000_000
    assert context.time_range.latest == 1_700_000_600


def test_wallet_context_sets_and_labels(tx_factory, labels):
    """Counterparties exclude the target; labels are a snapshot of known addresses."""
    transactions = [
        RawTransaction(signature=SIGS[0], transaction=tx_factory(SIGS[0], TARGET, EXCHANGE, 1000)),
        RawTransaction(signature=SIGS[1], transaction=tx_factory(SIGS[1], ALICE, TARGET, 1000)),
    ]
    context = normalize(RawWalletData(address=TARGET, transactions=transactions), labels)
    assert context.target_type == TargetType.WALLET
    assert context.counterparties == frozenset({EXCHANGE, ALICE})
    assert context.fee_payers == frozenset({TARGET, ALICE})
    assert SYSTEM_PROGRAM_ID in context.programs
    assert set(context.labels) == {EXCHANGE}


def test_context_labels_are_read_only(tx_factory, labels):
    """Detectors cannot add to or change the label snapshot."""
    transactions = [RawTransaction(signature=SIGS[0], transaction=tx_factory(SIGS[0], TARGET, EXCHANGE, 1000))]
    context = normalize(RawWalletData(address=TARGET, transactions=transactions), labels)
    with pytest.raises(TypeError):
        context.labels[ALICE] = context.labels[EXCHANGE]
    with pytest.raises(TypeError):
        del context.labels[EXCHANGE]
    assert set(context.labels) == {EXCHANGE}


def test_labels_looked_up_once(tx_factory):
    """One lookup_many call per scan."""
    provider = MagicMock()
    provider.lookup_many.return_value = {}
    transactions = [
        RawTransaction(signature=sig, transaction=tx_factory(sig, TARGET, ALICE, 1000)) for sig in SIGS
    ]
    normalize(RawWalletData(address=TARGET, transactions=transactions), provider)
    assert provider.lookup_many.call_count == 1


def test_token_account_balances(tx_factory):
    """getTokenAccountsByOwner items become TokenAccountBalance entries; junk is skipped."""
    token_accounts = [
        {
            "pubkey": TOKEN_ACCOUNT,
            "account": {
                "data": {
                    "parsed": {
                        "info": {
                            "mint": "So11111111111111111111111111111111111111112",
                            "owner": TARGET,
                            "tokenAmount": {"amount": "1500000", "decimals": 6, "uiAmount": 1.5, "uiAmountString": "1.5"},
                        }
                    }
                }
            },
        },
        {"pubkey": 5},
    ]
    raw = RawWalletData(
        address=TARGET,
        transactions=[RawTransaction(signature=SIGS[0], transaction=tx_factory(SIGS[0], TARGET, ALICE, 1000))],
        token_accounts=token_accounts,
    )
    context = normalize(raw, None)
    assert len(context.token_accounts) == 1
    assert context.token_accounts[0].balance == 1.5


def test_transaction_and_program_targets(tx_factory):
    """Single-transaction and program snapshots normalize with the right target type."""
    tx_context = normalize(RawTransactionData(signature=SIGS[0], transaction=tx_factory(SIGS[0], TARGET, ALICE, 1000)), None)
    assert tx_context.target_type == TargetType.TRANSACTION
    assert tx_context.transaction_count == 1
    assert {TARGET, ALICE} <= tx_context.counterparties

    empty = normalize(RawTransactionData(signature=SIGS[0], transaction=None), None)
    assert empty.transaction_count == 0

    program = normalize(
        RawProgramData(
            program_id=SYSTEM_PROGRAM_ID,
            related_transactions=[RawTransaction(signature=SIGS[1], transaction=tx_factory(SIGS[1], TARGET, ALICE, 1000))],
        ),
        None,
    )
    assert program.target_type == TargetType.PROGRAM
    assert program.target == SYSTEM_PROGRAM_ID
    assert SYSTEM_PROGRAM_ID not in program.counterparties
