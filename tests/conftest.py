"""
Pytest fixtures for scanner tests: label providers, raw getTransaction
payload builders, and an isolated environment (no .env, no real RPC URL).
"""

from __future__ import annotations

import json

import pytest

from solana_privacy_scanner.analysis_engine.models import Label, LabelType
from solana_privacy_scanner.labels import StaticLabelProvider
from solana_privacy_scanner.normalizer.programs import MEMO_PROGRAM_ID, SYSTEM_PROGRAM_ID

EXCHANGE_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
BRIDGE_ADDRESS = "wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb"


def build_transfer_tx(
    signature: str,
    source: str,
    destination: str,
    lamports: int,
    block_time: int | None = 1_700_000_000,
    *,
    fee_payer: str | None = None,
    memo: str | None = None,
    fee: int = 5000,
) -> dict:
    """
    jsonParsed getTransaction result with one System transfer and an optional memo.

    The fee payer defaults to the source and is the only signer besides it.
    """
    payer = fee_payer or source
    keys = [{"pubkey": payer, "signer": True, "writable": True, "source": "transaction"}]
    if source != payer:
        keys.append({"pubkey": source, "signer": True, "writable": True, "source": "transaction"})
    keys.append({"pubkey": destination, "signer": False, "writable": True, "source": "transaction"})
    keys.append({"pubkey": SYSTEM_PROGRAM_ID, "signer": False, "writable": False, "source": "transaction"})

    instructions = [
        {
            "programId": SYSTEM_PROGRAM_ID,
            "program": "system",
            "parsed": {
                "type": "transfer",
                "info": {"source": source, "destination": destination, "lamports": lamports},
            },
            "stackHeight": None,
        }
    ]
    if memo is not None:
        instructions.append({"programId": MEMO_PROGRAM_ID, "program": "spl-memo", "parsed": memo, "stackHeight": None})

    pre = [10_000_000_000] * len(keys)
    post = list(pre)
    post[0] -= fee
    post[[k["pubkey"] for k in keys].index(source)] -= lamports
    post[[k["pubkey"] for k in keys].index(destination)] += lamports
    return {
        "slot": 250_000_000,
        "blockTime": block_time,
        "transaction": {
            "signatures": [signature],
            "message": {"accountKeys": keys, "instructions": instructions, "recentBlockhash": "11111111111111111111111111111111"},
        },
        "meta": {
            "err": None,
            "fee": fee,
            "preBalances": pre,
            "postBalances": post,
            "innerInstructions": [],
            "computeUnitsConsumed": 450,
        },
    }


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep tests off real endpoints and user .env values."""
    monkeypatch.setattr("solana_privacy_scanner.config.env.load_scanner_env", lambda: None)
    for name in (
        "SOLANA_RPC_URL",
        "HELIUS_API_KEY",
        "SOLANA_NETWORK",
        "SOLANA_CLUSTER",
        "PRIVACY_SCANNER_LABELS_PATH",
        "RPC_MAX_CONCURRENCY",
        "RPC_MAX_RETRIES",
        "RPC_RETRY_DELAY_SEC",
        "RPC_TIMEOUT_SEC",
        "SCAN_MAX_SIGNATURES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SOLANA_RPC_URL", "http://rpc.test")


@pytest.fixture
def tx_factory():
    """Factory for jsonParsed transfer transactions (see build_transfer_tx)."""
    return build_transfer_tx


@pytest.fixture
def labels():
    """In-memory provider with one exchange and one bridge label."""
    return StaticLabelProvider.from_labels([
        Label(address=EXCHANGE_ADDRESS, name="Binance Hot Wallet", type=LabelType.EXCHANGE),
        Label(address=BRIDGE_ADDRESS, name="Wormhole Token Bridge", type=LabelType.BRIDGE),
    ])


@pytest.fixture
def label_file(tmp_path):
    """Label database on disk with the same two entries as the labels fixture."""
    path = tmp_path / "labels.json"
    path.write_text(
        json.dumps({
            "version": "1.0.0",
            "labels": [
                {"address": EXCHANGE_ADDRESS, "name": "Binance Hot Wallet", "type": "exchange"},
                {"address": BRIDGE_ADDRESS, "name": "Wormhole Token Bridge", "type": "bridge"},
            ],
        }),
        encoding="utf-8",
    )
    return path
