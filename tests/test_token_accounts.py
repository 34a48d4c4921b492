"""
Tests for token account heuristics: ATA creator linkage, creation bursts,
rent refund clustering, and short-lived token accounts.
"""

from __future__ import annotations

from solana_privacy_scanner.analysis_engine.models import (
    ScanContext,
    Severity,
    TargetType,
    TokenAccountEvent,
    TokenAccountEventType,
    TransactionMetadata,
)
from solana_privacy_scanner.heuristics.ata_linkage import AtaLinkageDetector
from solana_privacy_scanner.heuristics.token_lifecycle import TokenLifecycleDetector

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
FUNDER = "FunderFfffffffffffffffffffffffffffffffffff"
SINK = "RefundSinkSssssssssssssssssssssssssssssssss"
T0 = 1_700_000_000


def _owner(i: int) -> str:
    return f"Owner{i}" + "o" * 38


def _account(i: int) -> str:
    return f"TokenAcct{i}" + "t" * 34


def _create(i: int, owner: str, funder: str, block_time: int) -> TokenAccountEvent:
    return TokenAccountEvent(
        type=TokenAccountEventType.CREATE,
        token_account=_account(i),
        owner=owner,
        funder=funder,
        signature=f"create{i}",
        block_time=block_time,
    )


def _close(i: int, owner: str, destination: str, block_time: int, refund: float = 0.00203928) -> TokenAccountEvent:
    return TokenAccountEvent(
        type=TokenAccountEventType.CLOSE,
        token_account=_account(i),
        owner=owner,
        refund_destination=destination,
        rent_refund=refund,
        signature=f"close{i}",
        block_time=block_time,
    )


def _context(events) -> ScanContext:
    sigs = sorted({e.signature for e in events})
    txs = tuple(TransactionMetadata(signature=s, block_time=T0, fee_payer=TARGET, signers=(TARGET,)) for s in sigs)
    return ScanContext(
        target=TARGET,
        target_type=TargetType.WALLET,
        transactions=txs,
        token_account_events=tuple(events),
        transaction_count=len(txs),
    )


def test_ata_creator_linkage_three_owners():
    """One funder creating accounts for three owners -> HIGH; spread out, so no burst."""
    events = [_create(i, _owner(i), FUNDER, T0 + i * 3600) for i in range(3)]
    signals = AtaLinkageDetector().evaluate(_context(events))
    assert [s.id for s in signals] == ["ata-creator-linkage"]
    assert signals[0].severity == Severity.HIGH
    assert signals[0].evidence[0].data["owners"] == sorted(_owner(i) for i in range(3))


def test_ata_self_funded_no_linkage():
    """Owners funding their own accounts are not linked."""
    events = [_create(i, _owner(i), _owner(i), T0 + i * 3600) for i in range(3)]
    assert AtaLinkageDetector().evaluate(_context(events)) == []


def test_ata_funding_burst():
    """Three creations within ten minutes -> burst."""
    events = [_create(i, TARGET, TARGET, T0 + i * 60) for i in range(3)]
    signals = AtaLinkageDetector().evaluate(_context(events))
    assert [s.id for s in signals] == ["ata-funding-burst"]
    assert signals[0].evidence[0].data == {"count": 3, "start": T0, "end": T0 + 120}


def test_rent_refund_clustering_medium():
    """Two closed accounts refunding to one destination -> MEDIUM."""
    events = [_close(i, TARGET, SINK, T0 + i) for i in range(2)]
    signals = TokenLifecycleDetector().evaluate(_context(events))
    assert [(s.id, s.severity) for s in signals] == [("rent-refund-clustering", Severity.MEDIUM)]
    assert signals[0].evidence[0].data["refundedSol"] == 0.00407856


def test_rent_refund_clustering_high():
    """Four accounts from two other owners refunding to one destination -> HIGH."""
    events = [_close(i, _owner(i % 2), SINK, T0 + i) for i in range(4)]
    signals = TokenLifecycleDetector().evaluate(_context(events))
    assert signals[0].severity == Severity.HIGH
    assert signals[0].evidence[0].data["owners"] == [_owner(0), _owner(1)]


def test_short_lived_token_accounts():
    """Created and closed within an hour, twice -> LOW; refunds to the owner still cluster."""
    events = [_create(0, TARGET, TARGET, T0), _close(0, TARGET, TARGET, T0 + 600)]
    events += [_create(1, TARGET, TARGET, T0 + 7200), _close(1, TARGET, TARGET, T0 + 7500)]
    signals = TokenLifecycleDetector().evaluate(_context(events))
    assert [s.id for s in signals] == ["rent-refund-clustering", "token-account-short-lived"]
    assert [e.data["lifetimeSeconds"] for e in signals[1].evidence] == [600, 300]
