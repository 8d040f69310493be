"""
FastAPI server — transaction flow analysis API.

POST /analyze runs the engine over caller-supplied transaction records.
GET /wallet/{address}/flow fetches the wallet's recent transactions over
Solana RPC and analyzes them. Both return AnalysisResult.to_dict().
GET /wallet/{address}/fund-origins walks funding sources back several hops.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_flowtrace import __version__
from backend_flowtrace.analysis_engine import (
    FlowFilters,
    TransactionType,
    analyze,
)
from backend_flowtrace.analytics import FundOriginTracer, HeuristicClusterer, KnownEntityIdentifier
from backend_flowtrace.analytics.fund_origins import DEFAULT_ORIGIN_DEPTH, MAX_ORIGIN_DEPTH
from backend_flowtrace.core.exceptions import (
    FlowTraceError,
    InvalidAddressError,
    InvalidTransactionError,
    TransactionFetchError,
)
from backend_flowtrace.flowtrace_logging import get_logger
from backend_flowtrace.flowtrace_logging.logger import short
from backend_flowtrace.ingestion import TransactionFetcher
from backend_flowtrace.solana_listener.models import TransactionRecord
from backend_flowtrace.utils.wallet_utils import require_valid_wallet

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------


class FiltersModel(BaseModel):
    """Optional pre-analysis filters."""

    start_date: datetime | None = Field(None, description="Inclusive lower bound (ISO-8601)")
    end_date: datetime | None = Field(None, description="Inclusive upper bound (ISO-8601)")
    min_amount: float | None = Field(None, ge=0, description="Minimum estimated value (SOL)")
    max_amount: float | None = Field(None, ge=0, description="Maximum estimated value (SOL)")
    transaction_types: list[TransactionType] = Field(default_factory=list, description="Allowed types; empty = all")
    address_filter: str | None = Field(None, max_length=64, description="Case-insensitive substring of an account key")

    def to_filters(self) -> FlowFilters:
        return FlowFilters(
            start_date=self.start_date,
            end_date=self.end_date,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            transaction_types=tuple(self.transaction_types),
            address_filter=self.address_filter,
        )


class AnalyzeRequest(BaseModel):
    """POST /analyze body: target wallet plus its transaction records."""

    target: str = Field(..., min_length=1, max_length=64, description="Target wallet (base58)")
    transactions: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Records: signature, blockTime, accountKeys, instructions[{programId, accounts, data}], logMessages",
    )
    filters: FiltersModel | None = None
    target_balance: float | None = Field(None, description="Known balance of the target (SOL)")


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_fetcher() -> TransactionFetcher:
    return TransactionFetcher()


def get_entity_identifier() -> KnownEntityIdentifier:
    return KnownEntityIdentifier()


def get_clusterer() -> HeuristicClusterer:
    return HeuristicClusterer()


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend FlowTrace API",
    description="Transaction flow analysis for Solana wallets: funding sources, activity patterns, risk.",
    version=__version__,
)


def _parse_records(items: list[dict[str, Any]]) -> list[TransactionRecord]:
    return [TransactionRecord.from_dict(item) for item in items]


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check: API is up."""
    return {"status": "ok"}


@app.post("/analyze")
def analyze_transactions(
    body: AnalyzeRequest,
    entity_identifier: KnownEntityIdentifier = Depends(get_entity_identifier),
    clusterer: HeuristicClusterer = Depends(get_clusterer),
) -> dict[str, Any]:
    """
    Analyze caller-supplied transactions for `target`.

    400 on an invalid target address or a malformed record.
    """
    target = require_valid_wallet(body.target)
    records = _parse_records(body.transactions)
    logger.info("analyze_called", wallet_id=short(target), transactions=len(records))
    result = analyze(
        records,
        target,
        body.filters.to_filters() if body.filters else None,
        entity_identifier=entity_identifier,
        clusterer=clusterer,
        target_balance=body.target_balance,
    )
    return result.to_dict()


@app.get("/wallet/{address}/flow")
async def wallet_flow(
    address: str,
    limit: int | None = Query(None, ge=1, le=1000, description="Max signatures to fetch"),
    fetcher: TransactionFetcher = Depends(get_fetcher),
    entity_identifier: KnownEntityIdentifier = Depends(get_entity_identifier),
    clusterer: HeuristicClusterer = Depends(get_clusterer),
) -> dict[str, Any]:
    """
    Fetch the wallet's recent transactions over RPC and analyze them.

    400 on an invalid address, 502 when the RPC node cannot list signatures.
    """
    target = require_valid_wallet(address)
    records = await fetcher.fetch_for_address(target, limit=limit)
    result = analyze(
        records,
        target,
        entity_identifier=entity_identifier,
        clusterer=clusterer,
    )
    return result.to_dict()


@app.get("/wallet/{address}/fund-origins")
async def wallet_fund_origins(
    address: str,
    depth: int = Query(DEFAULT_ORIGIN_DEPTH, ge=1, le=MAX_ORIGIN_DEPTH, description="Funding levels to walk"),
    limit: int | None = Query(None, ge=1, le=1000, description="Max signatures to fetch per address"),
    fetcher: TransactionFetcher = Depends(get_fetcher),
) -> dict[str, Any]:
    """
    Trace where the wallet's funds came from, up to `depth` funding levels.

    400 on an invalid address, 502 when the RPC node cannot list the
    target's signatures. Deeper fetch failures only drop that branch.
    """
    target = require_valid_wallet(address)
    sources = await FundOriginTracer(fetcher, limit=limit).trace(target, depth)
    return {
        "target": target,
        "depth": depth,
        "funding_sources": [s.to_dict() for s in sources],
    }


_STATUS_BY_ERROR: dict[type[FlowTraceError], int] = {
    InvalidAddressError: 400,
    InvalidTransactionError: 400,
    TransactionFetchError: 502,
}


@app.exception_handler(FlowTraceError)
def flowtrace_exception_handler(request: Any, exc: FlowTraceError) -> JSONResponse:
    """Map domain errors to HTTP status codes with a stable error code."""
    status = _STATUS_BY_ERROR.get(type(exc), 500)
    logger.warning("api_request_failed", code=exc.code, error=exc.message, status=status)
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
