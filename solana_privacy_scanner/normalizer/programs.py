"""
Well-known Solana program ids and instruction classification.
"""

from __future__ import annotations

from typing import Any

from solana_privacy_scanner.analysis_engine.models import InstructionCategory

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
STAKE_PROGRAM_ID = "Stake11111111111111111111111111111111111111"
VOTE_PROGRAM_ID = "Vote111111111111111111111111111111111111111"
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
MEMO_V1_PROGRAM_ID = "Memo1UhkJRfHyvLMcVucJwxXeuD728EqVDDwQDxFMNo"
COMPUTE_BUDGET_PROGRAM_ID = "ComputeBudget111111111111111111111111111111"
METAPLEX_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
NAME_SERVICE_PROGRAM_ID = "namesLPneVptA9Z5rqUDD9tMTWEJwofgaYwp8cawRkX"

MEMO_PROGRAM_IDS = frozenset({MEMO_PROGRAM_ID, MEMO_V1_PROGRAM_ID})
TOKEN_PROGRAM_IDS = frozenset({TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})

# Known DEX / aggregator program IDs (Jupiter, Orca, Raydium, Meteora, Lifinity, Phoenix).
SWAP_PROGRAM_IDS = frozenset({
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
    "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB",
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
    "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
    "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo",
    "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB",
    "2wT8Yq49kHgDzXuPxZSaeLaH1qbmGXtEyPy64bL7aD3c",
    "PhoeNiXZ8ByJGLkxNfZRnkUfjvmuYqLR89jjFHGqdXY",
})

# Core runtime programs; their accounts are never treated as program-owned PDAs.
CORE_PROGRAM_IDS = frozenset({
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    ASSOCIATED_TOKEN_PROGRAM_ID,
    STAKE_PROGRAM_ID,
    VOTE_PROGRAM_ID,
    MEMO_PROGRAM_ID,
    MEMO_V1_PROGRAM_ID,
    COMPUTE_BUDGET_PROGRAM_ID,
    "SysvarRent111111111111111111111111111111111",
    "SysvarC1ock11111111111111111111111111111111",
    "Sysvar1nstructions1111111111111111111111111",
    "SysvarStakeHistory1111111111111111111111111",
    "StakeConfig11111111111111111111111111111111",
})

TOKEN_TRANSFER_TYPES = frozenset({"transfer", "transferChecked"})


def parsed_type(ix: dict[str, Any]) -> str | None:
    """Return jsonParsed instruction type (e.g. "transfer"), or None."""
    parsed = ix.get("parsed")
    if isinstance(parsed, dict):
        t = parsed.get("type")
        return t if isinstance(t, str) else None
    return None


def parsed_info(ix: dict[str, Any]) -> dict[str, Any]:
    parsed = ix.get("parsed")
    if isinstance(parsed, dict) and isinstance(parsed.get("info"), dict):
        return parsed["info"]
    return {}


def categorize_instruction(program_id: str | None, ix: dict[str, Any]) -> InstructionCategory:
    """
    Classify an instruction into the closed InstructionCategory set.

    Uses program id first, then the jsonParsed instruction type for the token
    programs. An instruction with no resolvable program id is UNKNOWN.
    """
    if not program_id:
        return InstructionCategory.UNKNOWN
    if program_id == SYSTEM_PROGRAM_ID:
        return InstructionCategory.TRANSFER
    if program_id in TOKEN_PROGRAM_IDS or program_id == ASSOCIATED_TOKEN_PROGRAM_ID:
        if parsed_type(ix) in TOKEN_TRANSFER_TYPES:
            return InstructionCategory.TRANSFER
        return InstructionCategory.TOKEN_OPERATION
    if program_id == STAKE_PROGRAM_ID:
        return InstructionCategory.STAKE
    if program_id == VOTE_PROGRAM_ID:
        return InstructionCategory.VOTE
    if program_id in SWAP_PROGRAM_IDS or "swap" in program_id.lower():
        return InstructionCategory.SWAP
    return InstructionCategory.PROGRAM_INTERACTION
