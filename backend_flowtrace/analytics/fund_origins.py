"""
Fund origin tracing: funding sources of the funding sources.

Starts from the target's direct funding sources and walks back through each
source's own funders, up to `depth` levels (direct sources are level 1).
Every origin found past level 1 is reported as an indirect FundingSource
with reduced confidence and the hop path down to the target. Addresses are
expanded at most once per trace, so funding cycles end the walk.

Each address costs one fetch; failures below the first level drop that
branch and are logged.
"""

from __future__ import annotations

from dataclasses import replace

from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.funding import trace_funding_sources
from backend_flowtrace.analysis_engine.models import FundingSource
from backend_flowtrace.analysis_engine.valuation import InstructionValueEstimator, classify_transactions
from backend_flowtrace.core.exceptions import TransactionFetchError
from backend_flowtrace.flowtrace_logging import get_logger
from backend_flowtrace.flowtrace_logging.logger import short
from backend_flowtrace.ingestion import TransactionFetcher
from backend_flowtrace.utils.wallet_utils import is_valid_wallet, require_valid_wallet

logger = get_logger(__name__)

DEFAULT_ORIGIN_DEPTH = 3
MAX_ORIGIN_DEPTH = 5
INDIRECT_CONFIDENCE_PENALTY = 20
MIN_INDIRECT_CONFIDENCE = 10


class FundOriginTracer:
    """Depth-limited walk over funding sources, one fetch per expanded address."""

    def __init__(
        self,
        fetcher: TransactionFetcher,
        *,
        estimator: InstructionValueEstimator | None = None,
        config: AnalysisConfig | None = None,
        limit: int | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._estimator = estimator
        self._config = config or DEFAULT_CONFIG
        self._limit = limit

    async def direct_sources(self, address: str) -> list[FundingSource]:
        records = await self._fetcher.fetch_for_address(address, limit=self._limit, only_new=False)
        return trace_funding_sources(classify_transactions(records, self._estimator), address, self._config)

    async def trace(self, address: str, depth: int = DEFAULT_ORIGIN_DEPTH) -> list[FundingSource]:
        """
        Direct sources of `address` followed by indirect origins, depth first.

        Args:
            address: Base58 wallet address.
            depth: Levels to walk, clamped to 1..MAX_ORIGIN_DEPTH; 1 returns
                direct sources only.

        Raises:
            InvalidAddressError: If address is not a valid Solana key.
            TransactionFetchError: If the target's own transactions cannot be listed.
        """
        target = require_valid_wallet(address)
        depth = max(1, min(depth, MAX_ORIGIN_DEPTH))
        direct = await self.direct_sources(target)
        found = list(direct)
        if depth > 1:
            expanded = {target}
            for source in direct:
                await self._expand(target, source, (target,), 1, depth, expanded, found)
        logger.info(
            "fund_origins_traced",
            wallet_id=short(target),
            depth=depth,
            direct=len(direct),
            indirect=len(found) - len(direct),
        )
        return found

    async def _expand(
        self,
        target: str,
        source: FundingSource,
        downstream: tuple[str, ...],
        level: int,
        depth: int,
        expanded: set[str],
        found: list[FundingSource],
    ) -> None:
        if level >= depth or source.address in expanded or not is_valid_wallet(source.address):
            return
        expanded.add(source.address)
        try:
            origins = await self.direct_sources(source.address)
        except TransactionFetchError as e:
            logger.warning(
                "fund_origin_fetch_failed",
                wallet_id=short(target),
                source=short(source.address),
                error=e.message,
            )
            return

        path = (source.address,) + downstream
        for origin in origins:
            if origin.address in path:
                continue
            found.append(
                replace(
                    origin,
                    is_direct=False,
                    confidence=max(MIN_INDIRECT_CONFIDENCE, origin.confidence - INDIRECT_CONFIDENCE_PENALTY),
                    path=path,
                )
            )
            await self._expand(target, origin, path, level + 1, depth, expanded, found)
