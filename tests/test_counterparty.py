"""
Tests for counterparty reuse and PDA reuse.
"""

from __future__ import annotations

from solana_privacy_scanner.analysis_engine.models import (
    PDAInteraction,
    ScanContext,
    Severity,
    TargetType,
    TransactionMetadata,
    Transfer,
)
from solana_privacy_scanner.heuristics.counterparty import CounterpartyReuseDetector

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
FRIEND = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
PROGRAM = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
VAULT = "VaultPdaVvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvv"


def _wallet_context(repeated: int, total: int = 20, target_type=TargetType.WALLET, pdas=()) -> ScanContext:
    """total transfers from the target: `repeated` to FRIEND, the rest to unique addresses."""
    transfers = []
    transactions = []
    for i in range(total):
        sig = f"sig{i:03d}"
        to = FRIEND if i < repeated else f"Unique{i:03d}" + "u" * 35
        transfers.append(Transfer(from_address=TARGET, to_address=to, amount=0.5, signature=sig, block_time=1_700_000_000 + i))
        transactions.append(TransactionMetadata(signature=sig, block_time=1_700_000_000 + i, fee_payer=TARGET, signers=(TARGET,)))
    return ScanContext(
        target=TARGET,
        target_type=target_type,
        transfers=tuple(transfers),
        transactions=tuple(transactions),
        pda_interactions=tuple(pdas),
        transaction_count=total,
    )


def test_ten_of_twenty_is_high():
    """10 of 20 transfers with one counterparty -> top band."""
    signals = CounterpartyReuseDetector().evaluate(_wallet_context(10))
    assert len(signals) == 1
    signal = signals[0]
    assert signal.id == "counterparty-reuse"
    assert signal.severity == Severity.HIGH
    assert signal.evidence[0].data == {"address": FRIEND, "transfers": 10, "sent": 10, "received": 0}


def test_three_of_twenty_is_low():
    """3 transfers with one counterparty falls in the 2-4 band."""
    signals = CounterpartyReuseDetector().evaluate(_wallet_context(3))
    assert [s.severity for s in signals] == [Severity.LOW]


def test_five_is_medium():
    signals = CounterpartyReuseDetector().evaluate(_wallet_context(5))
    assert signals[0].severity == Severity.MEDIUM


def test_all_unique_no_signal():
    assert CounterpartyReuseDetector().evaluate(_wallet_context(1)) == []


def test_wallet_scans_only():
    """Transaction and program scans are not checked."""
    assert CounterpartyReuseDetector().evaluate(_wallet_context(10, target_type=TargetType.PROGRAM)) == []


def test_pda_reuse():
    """The same PDA in several transactions raises pda-reuse."""
    pdas = [PDAInteraction(pda=VAULT, program_id=PROGRAM, signature=f"sig{i:03d}") for i in range(3)]
    signals = CounterpartyReuseDetector().evaluate(_wallet_context(1, pdas=pdas))
    assert [s.id for s in signals] == ["pda-reuse"]
    assert signals[0].severity == Severity.LOW
    assert signals[0].evidence[0].data == {"address": VAULT, "programId": PROGRAM, "transactions": 3}
