"""
Collectors: fetch one raw snapshot per scan target.

RPC failures never abort a scan. A failed signature listing yields an empty
snapshot, a failed transaction fetch yields an absent RawTransaction, and a
failed auxiliary call (token accounts, program accounts) yields an empty list.
"""

from __future__ import annotations

from solana_privacy_scanner.core.exceptions import RpcError
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.solana_listener.models import (
    RawProgramData,
    RawTransactionData,
    RawWalletData,
)
from solana_privacy_scanner.solana_listener.rpc_client import SolanaRpcClient

logger = get_logger(__name__)


async def collect_wallet_data(
    client: SolanaRpcClient,
    address: str,
    max_signatures: int = 100,
    include_token_accounts: bool = True,
) -> RawWalletData:
    """Recent signatures, their transactions, and (optionally) token accounts for a wallet."""
    try:
        signatures = await client.get_signatures_for_address(address, limit=max_signatures)
    except RpcError as e:
        logger.warning("collector_signatures_failed", address=address, error=str(e))
        return RawWalletData(address=address)

    transactions = await client.get_transactions(signatures)

    token_accounts: list[dict] = []
    if include_token_accounts:
        try:
            token_accounts = await client.get_token_accounts_by_owner(address)
        except RpcError as e:
            logger.warning("collector_token_accounts_failed", address=address, error=str(e))

    absent = sum(1 for t in transactions if t.is_absent)
    logger.info(
        "collector_wallet_collected",
        address=address,
        signature_count=len(signatures),
        absent_count=absent,
        token_account_count=len(token_accounts),
    )
    return RawWalletData(
        address=address,
        signatures=signatures,
        transactions=transactions,
        token_accounts=token_accounts,
    )


async def collect_transaction_data(client: SolanaRpcClient, signature: str) -> RawTransactionData:
    try:
        tx = await client.get_transaction(signature)
    except RpcError as e:
        logger.warning("collector_transaction_failed", signature=signature, error=str(e))
        return RawTransactionData(signature=signature, transaction=None)
    if tx is None:
        logger.warning("collector_transaction_not_found", signature=signature)
        return RawTransactionData(signature=signature, transaction=None)
    bt = tx.get("blockTime")
    return RawTransactionData(
        signature=signature,
        transaction=tx,
        block_time=bt if isinstance(bt, int) else None,
    )


async def collect_program_data(
    client: SolanaRpcClient,
    program_id: str,
    max_accounts: int = 100,
    max_transactions: int = 50,
) -> RawProgramData:
    """
    Sample a program's activity: owned accounts plus recent transactions
    that reference the program id.
    """
    try:
        accounts = await client.get_program_accounts(program_id, limit=max_accounts)
    except RpcError as e:
        logger.warning("collector_program_accounts_failed", program_id=program_id, error=str(e))
        accounts = []

    try:
        signatures = await client.get_signatures_for_address(program_id, limit=max_transactions)
    except RpcError as e:
        logger.warning("collector_signatures_failed", address=program_id, error=str(e))
        signatures = []

    transactions = await client.get_transactions(signatures)
    logger.info(
        "collector_program_collected",
        program_id=program_id,
        account_count=len(accounts),
        transaction_count=len(transactions),
    )
    return RawProgramData(program_id=program_id, accounts=accounts, related_transactions=transactions)
