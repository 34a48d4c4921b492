"""
Tests for the collectors: raw snapshots from a (mocked) RPC client.

RPC failures must degrade to missing data, never raise.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

from solana_privacy_scanner.core.exceptions import RpcError
from solana_privacy_scanner.solana_listener import (
    collect_program_data,
    collect_transaction_data,
    collect_wallet_data,
)
from solana_privacy_scanner.solana_listener.models import RawTransaction, SignatureInfo

ADDRESS = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
PROGRAM = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
TX = {"blockTime": 1_700_000_000, "transaction": {"message": {}}, "meta": {}}


def _mock_client() -> MagicMock:
    client = MagicMock()
    client.get_signatures_for_address = AsyncMock(
        return_value=[SignatureInfo("sig1", 1, None, 1_700_000_000, None), SignatureInfo("sig2", 2, None, None, None)]
    )
    client.get_transactions = AsyncMock(
        return_value=[
            RawTransaction(signature="sig1", transaction=TX, block_time=1_700_000_000),
            RawTransaction.absent("sig2", None, "transaction not found"),
        ]
    )
    client.get_token_accounts_by_owner = AsyncMock(return_value=[{"pubkey": "acct"}])
    client.get_transaction = AsyncMock(return_value=TX)
    client.get_program_accounts = AsyncMock(return_value=[{"pubkey": "p1"}])
    return client


def test_collect_wallet_data():
    """Signatures, their transactions (absent kept), and token accounts."""
    client = _mock_client()
    raw = asyncio.run(collect_wallet_data(client, ADDRESS, max_signatures=2))
    client.get_signatures_for_address.assert_awaited_once_with(ADDRESS, limit=2)
    assert raw.address == ADDRESS
    assert [s.signature for s in raw.signatures] == ["sig1", "sig2"]
    assert raw.transactions[1].is_absent
    assert raw.token_accounts == [{"pubkey": "acct"}]


def test_collect_wallet_signature_failure_is_empty():
    client = _mock_client()
    client.get_signatures_for_address.side_effect = RpcError("down")
    raw = asyncio.run(collect_wallet_data(client, ADDRESS))
    assert raw.signatures == []
    assert raw.transactions == []
    client.get_transactions.assert_not_awaited()


def test_collect_wallet_token_account_failure_keeps_history():
    client = _mock_client()
    client.get_token_accounts_by_owner.side_effect = RpcError("down")
    raw = asyncio.run(collect_wallet_data(client, ADDRESS))
    assert raw.token_accounts == []
    assert len(raw.transactions) == 2


def test_collect_wallet_without_token_accounts():
    client = _mock_client()
    asyncio.run(collect_wallet_data(client, ADDRESS, include_token_accounts=False))
    client.get_token_accounts_by_owner.assert_not_awaited()


def test_collect_transaction_data():
    client = _mock_client()
    raw = asyncio.run(collect_transaction_data(client, "sig1"))
    assert raw.transaction == TX
    assert raw.block_time == 1_700_000_000


def test_collect_transaction_failure_and_not_found():
    client = _mock_client()
    client.get_transaction.side_effect = RpcError("down")
    assert asyncio.run(collect_transaction_data(client, "sig1")).transaction is None

    client = _mock_client()
    client.get_transaction.return_value = None
    assert asyncio.run(collect_transaction_data(client, "sig1")).transaction is None


def test_collect_program_data():
    """Program accounts plus recent program transactions; account failure keeps transactions."""
    client = _mock_client()
    raw = asyncio.run(collect_program_data(client, PROGRAM, max_accounts=5, max_transactions=2))
    client.get_program_accounts.assert_awaited_once_with(PROGRAM, limit=5)
    assert raw.program_id == PROGRAM
    assert raw.accounts == [{"pubkey": "p1"}]
    assert len(raw.related_transactions) == 2

    client = _mock_client()
    client.get_program_accounts.side_effect = RpcError("down")
    raw = asyncio.run(collect_program_data(client, PROGRAM))
    assert raw.accounts == []
    assert len(raw.related_transactions) == 2
