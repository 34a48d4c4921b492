"""
FastAPI server: on-demand privacy scans over HTTP.

The label database is loaded once in the lifespan and stored on app.state;
every scan snapshots it through the normalizer. The RPC client comes from
the get_rpc_client dependency so tests can override it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from solana_privacy_scanner import __version__
from solana_privacy_scanner.analysis_engine.models import TargetType
from solana_privacy_scanner.config import get_settings
from solana_privacy_scanner.config.env import mask_rpc_url
from solana_privacy_scanner.core.exceptions import InvalidTargetError, LabelProviderError
from solana_privacy_scanner.labels import LabelProvider, StaticLabelProvider
from solana_privacy_scanner.logging import get_logger
from solana_privacy_scanner.scanner import scan, validate_target
from solana_privacy_scanner.solana_listener.rpc_client import SolanaRpcClient

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------

class ScanRequest(BaseModel):
    """POST /api/scan body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    address: str = Field(..., min_length=1, max_length=128, description="Wallet/program address or transaction signature")
    target_type: TargetType = Field(TargetType.WALLET, description="wallet | transaction | program")
    max_signatures: int = Field(50, ge=1, le=100, description="Transactions to analyze")


class HealthResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    version: str
    labels_loaded: int


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

async def get_rpc_client() -> AsyncIterator[SolanaRpcClient]:
    """Dependency: one RPC client per request, closed afterwards."""
    async with SolanaRpcClient() as client:
        yield client


def _label_count(provider: LabelProvider | None) -> int:
    try:
        return len(provider)  # type: ignore[arg-type]
    except TypeError:
        return 0


def get_label_provider(request: Request) -> LabelProvider:
    provider = getattr(request.app.state, "labels", None)
    if provider is None:
        raise HTTPException(status_code=503, detail="Label database unavailable")
    return provider


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------

def create_app(labels: LabelProvider | None = None) -> FastAPI:
    """
    Build the API app.

    Args:
        labels: Label provider to serve with; loaded from config.env at startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        provider = labels
        if provider is None:
            try:
                provider = StaticLabelProvider(settings.labels_path)
            except LabelProviderError as e:
                logger.error("api_labels_unavailable", error=str(e))
        app.state.labels = provider
        logger.info(
            "api_started",
            rpc_url=mask_rpc_url(settings.rpc_url),
            labels_loaded=_label_count(provider),
        )
        yield
        logger.info("api_stopped")

    app = FastAPI(
        title="Solana Privacy Scanner API",
        description="Privacy-risk reports for Solana wallets, transactions, and programs.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
    def health(request: Request) -> HealthResponse:
        provider = getattr(request.app.state, "labels", None)
        return HealthResponse(
            status="ok" if provider is not None else "degraded",
            version=__version__,
            labels_loaded=_label_count(provider),
        )

    @app.post("/api/scan")
    async def scan_target(
        body: ScanRequest,
        provider: LabelProvider = Depends(get_label_provider),
        client: SolanaRpcClient = Depends(get_rpc_client),
    ) -> JSONResponse:
        """Scan one target and return the PrivacyReport JSON."""
        try:
            target = validate_target(body.address, body.target_type)
        except InvalidTargetError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        logger.info("api_scan_called", target=target, target_type=body.target_type.value)
        report = await scan(
            target,
            body.target_type,
            client=client,
            labels=provider,
            max_signatures=body.max_signatures,
        )
        return JSONResponse(status_code=200, content=report.to_dict())

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
        """Consistent JSON error response for HTTPException."""
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    return app


app = create_app()
