"""
Async Solana JSON-RPC client used by the collectors.

Responsibilities:
- Bound in-flight requests with a semaphore (RPC_MAX_CONCURRENCY).
- Retry transport failures, HTTP 429 and 5xx with exponential backoff.
- Raise RpcError for JSON-RPC error responses and exhausted retries.
- Convert per-transaction failures into explicit absent RawTransactions.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

import httpx

from solana_privacy_scanner.config import env
from solana_privacy_scanner.core.exceptions import RpcError
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.normalizer.programs import TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID
from solana_privacy_scanner.solana_listener.models import RawTransaction, SignatureInfo

logger = get_logger(__name__)

# JSON-RPC request id counter
_request_id = 0


def _next_id() -> int:
    global _request_id
    _request_id += 1
    return _request_id


def build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": _next_id(), "method": method, "params": params}


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return isinstance(error, httpx.TransportError)


class SolanaRpcClient:
    """
    JSON-RPC client over one httpx.AsyncClient.

    Use as an async context manager, or call aclose() when done. Unset
    constructor arguments fall back to config.env.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        max_concurrency: int | None = None,
        max_retries: int | None = None,
        retry_delay_sec: float | None = None,
        max_retry_delay_sec: float = 30.0,
        timeout_sec: float | None = None,
        commitment: str = "confirmed",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            rpc_url: Solana RPC HTTP endpoint; SOLANA_RPC_URL / HELIUS_API_KEY when omitted.
            max_concurrency: Max in-flight requests.
            max_retries: Retries after the first attempt.
            retry_delay_sec: Initial backoff delay; doubles per retry.
            max_retry_delay_sec: Cap for backoff delay.
            timeout_sec: HTTP timeout per request.
            commitment: Commitment level sent with every request.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        url = (rpc_url or env.get_solana_rpc_url()).strip()
        if not url:
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = url
        self._max_retries = env.get_rpc_max_retries() if max_retries is None else max(0, max_retries)
        self._retry_delay = env.get_rpc_retry_delay_sec() if retry_delay_sec is None else retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._commitment = commitment
        concurrency = env.get_rpc_max_concurrency() if max_concurrency is None else max_concurrency
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        timeout = env.get_rpc_timeout_sec() if timeout_sec is None else timeout_sec
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, body: dict[str, Any]) -> Any:
        async with self._semaphore:
            resp = await self._client.post(self._rpc_url, json=body)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            err = data["error"] if isinstance(data["error"], dict) else {"message": data["error"]}
            raise RpcError(
                f"Solana RPC error: {err.get('message', err)} (code={err.get('code')})",
                code=err.get("code"),
            )
        if "result" not in data:
            raise RpcError("Solana RPC returned no result")
        return data["result"]

    async def call(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call with retry; return its result."""
        delay = self._retry_delay
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                return await self._post(build_rpc_body(method, params))
            except RpcError:
                raise
            except (httpx.HTTPError, ValueError) as e:
                if not _is_retryable(e) or attempt + 1 >= attempts:
                    logger.error(
                        "rpc_give_up",
                        method=method,
                        attempts=attempt + 1,
                        rpc_url=env.mask_rpc_url(self._rpc_url),
                        error=str(e),
                    )
                    raise RpcError(f"{method} failed after {attempt + 1} attempt(s): {e}") from e
                logger.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay_sec=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
        raise RpcError(f"{method} failed")  # unreachable with attempts >= 1

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 100,
        before: str | None = None,
    ) -> list[SignatureInfo]:
        """Newest-first signatures for an address (RPC limit 1-1000)."""
        opts: dict[str, Any] = {"limit": max(1, min(limit, 1000)), "commitment": self._commitment}
        if before is not None:
            opts["before"] = before
        result = await self.call("getSignaturesForAddress", [address, opts])
        infos: list[SignatureInfo] = []
        for item in result if isinstance(result, list) else []:
            if not isinstance(item, dict) or "signature" not in item:
                continue
            try:
                infos.append(SignatureInfo.from_rpc_item(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("rpc_signature_item_skipped", error=str(e))
        return infos

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """getTransaction (jsonParsed, v0 supported); None when not found."""
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._commitment,
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def _fetch_raw(self, signature: str, block_time: int | None) -> RawTransaction:
        try:
            tx = await self.get_transaction(signature)
        except RpcError as e:
            logger.warning("rpc_transaction_absent", signature=signature, error=str(e))
            return RawTransaction.absent(signature, block_time, str(e))
        if tx is None:
            return RawTransaction.absent(signature, block_time, "transaction not found")
        bt = tx.get("blockTime")
        return RawTransaction(
            signature=signature,
            transaction=tx,
            block_time=bt if isinstance(bt, int) else block_time,
        )

    async def get_transactions(self, signatures: Iterable[SignatureInfo | str]) -> list[RawTransaction]:
        """
        Fetch transactions concurrently (bounded by the semaphore).

        Order follows the input. Failures become absent entries; this never raises.
        """
        tasks = []
        for s in signatures:
            if isinstance(s, SignatureInfo):
                tasks.append(self._fetch_raw(s.signature, s.block_time))
            else:
                tasks.append(self._fetch_raw(s, None))
        return list(await asyncio.gather(*tasks))

    async def get_token_accounts_by_owner(self, owner: str) -> list[dict[str, Any]]:
        """jsonParsed token accounts for both token programs."""
        out: list[dict[str, Any]] = []
        for program_id in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
            result = await self.call(
                "getTokenAccountsByOwner",
                [owner, {"programId": program_id}, {"encoding": "jsonParsed", "commitment": self._commitment}],
            )
            value = result.get("value") if isinstance(result, dict) else None
            out.extend(item for item in value or [] if isinstance(item, dict))
        return out

    async def get_program_accounts(self, program_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """Accounts owned by a program, without account data, truncated to limit."""
        result = await self.call(
            "getProgramAccounts",
            [
                program_id,
                {
                    "encoding": "base64",
                    "dataSlice": {"offset": 0, "length": 0},
                    "commitment": self._commitment,
                },
            ],
        )
        items = result if isinstance(result, list) else []
        return [item for item in items if isinstance(item, dict)][: max(0, limit)]

    async def health_check(self) -> bool:
        try:
            return await self.call("getHealth", []) == "ok"
        except RpcError as e:
            logger.warning("rpc_health_check_failed", rpc_url=env.mask_rpc_url(self._rpc_url), error=str(e))
            return False
