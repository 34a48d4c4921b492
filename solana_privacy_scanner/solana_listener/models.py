"""
Raw data snapshots produced by the collection layer.

These mirror RPC responses with minimal interpretation. A failed fetch is an
explicit absent value (``transaction is None`` plus ``fetch_error``), never
an exception, so the normalizer can treat it as missing data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _optional_int(value: Any) -> int | None:
    """int, or a numeric string, as int; anything else (including bool) as None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class SignatureInfo:
    """
    Transaction signature info from getSignaturesForAddress.

    Mirrors Solana RPC response fields.
    """

    signature: str
    slot: int | None
    err: Any  # None if success; dict/object from RPC if failed
    block_time: int | None  # Unix timestamp; None if not available
    memo: str | None
    confirmation_status: str | None = None  # processed | confirmed | finalized

    @classmethod
    def from_rpc_item(cls, item: Mapping[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        return cls(
            signature=str(item["signature"]),
            slot=_optional_int(item.get("slot")),
            err=item.get("err"),
            block_time=_optional_int(item.get("blockTime")),
            memo=item.get("memo"),
            confirmation_status=item.get("confirmationStatus"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "slot": self.slot,
            "err": self.err,
            "blockTime": self.block_time,
            "memo": self.memo,
            "confirmationStatus": self.confirmation_status,
        }


@dataclass(frozen=True)
class RawTransaction:
    """
    One getTransaction result, or its explicit absence.

    ``transaction`` is the full RPC result object ({"slot", "blockTime",
    "transaction": {...}, "meta": {...}}) or None when the fetch failed or the
    transaction was not found; ``fetch_error`` then says why.
    """

    signature: str
    transaction: dict[str, Any] | None
    block_time: int | None = None
    fetch_error: str | None = None

    @property
    def is_absent(self) -> bool:
        return self.transaction is None

    @classmethod
    def absent(cls, signature: str, block_time: int | None, error: str) -> "RawTransaction":
        return cls(signature=signature, transaction=None, block_time=block_time, fetch_error=error)

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "RawTransaction":
        tx = item.get("transaction")
        return cls(
            signature=str(item.get("signature") or ""),
            transaction=tx if isinstance(tx, dict) else None,
            block_time=_optional_int(item.get("blockTime")),
            fetch_error=item.get("fetchError"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "signature": self.signature,
            "transaction": self.transaction,
            "blockTime": self.block_time,
        }
        if self.fetch_error is not None:
            out["fetchError"] = self.fetch_error
        return out


def _raw_transactions(items: Any) -> list[RawTransaction]:
    if not isinstance(items, list):
        return []
    return [RawTransaction.from_dict(i) for i in items if isinstance(i, dict)]


@dataclass
class RawWalletData:
    address: str
    signatures: list[SignatureInfo] = field(default_factory=list)
    transactions: list[RawTransaction] = field(default_factory=list)
    token_accounts: list[dict[str, Any]] = field(default_factory=list)
    """getTokenAccountsByOwner (jsonParsed) result items."""

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "RawWalletData":
        sigs: list[SignatureInfo] = []
        for s in item.get("signatures") or []:
            if isinstance(s, dict) and "signature" in s:
                sigs.append(SignatureInfo.from_rpc_item(s))
        token_accounts = item.get("tokenAccounts")
        return cls(
            address=str(item.get("address") or ""),
            signatures=sigs,
            transactions=_raw_transactions(item.get("transactions")),
            token_accounts=[t for t in token_accounts if isinstance(t, dict)]
            if isinstance(token_accounts, list)
            else [],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "signatures": [s.to_dict() for s in self.signatures],
            "transactions": [t.to_dict() for t in self.transactions],
            "tokenAccounts": list(self.token_accounts),
        }


@dataclass
class RawTransactionData:
    signature: str
    transaction: dict[str, Any] | None
    block_time: int | None = None

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "RawTransactionData":
        tx = item.get("transaction")
        return cls(
            signature=str(item.get("signature") or ""),
            transaction=tx if isinstance(tx, dict) else None,
            block_time=_optional_int(item.get("blockTime")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "transaction": self.transaction,
            "blockTime": self.block_time,
        }


@dataclass
class RawProgramData:
    program_id: str
    accounts: list[dict[str, Any]] = field(default_factory=list)
    """getProgramAccounts result items ({"pubkey", "account"})."""
    related_transactions: list[RawTransaction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "RawProgramData":
        accounts = item.get("accounts")
        return cls(
            program_id=str(item.get("programId") or ""),
            accounts=[a for a in accounts if isinstance(a, dict)] if isinstance(accounts, list) else [],
            related_transactions=_raw_transactions(item.get("relatedTransactions")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "programId": self.program_id,
            "accounts": list(self.accounts),
            "relatedTransactions": [t.to_dict() for t in self.related_transactions],
        }


RawScanData = RawWalletData | RawTransactionData | RawProgramData
