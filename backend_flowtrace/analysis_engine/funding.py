"""
Funding source tracer: who sent value to the target.

Transactions are walked in ascending time order; each incoming transaction
attributes its value to a single sender, the first non-target account in
its account list. Repeat senders accumulate amount and count, and their
confidence rises by a fixed step up to a cap.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.models import ClassifiedTransaction, FundingSource
from backend_flowtrace.flowtrace_logging import get_logger

logger = get_logger(__name__)


def time_ordered(transactions: Sequence[ClassifiedTransaction]) -> list[ClassifiedTransaction]:
    """Ascending by block time; undated transactions last, input order kept on ties."""
    return sorted(
        transactions,
        key=lambda tx: (tx.block_time is None, tx.block_time or 0),
    )


def find_counterparty(tx: ClassifiedTransaction, target: str) -> str | None:
    """First account in the transaction's account list that is not the target."""
    for key in tx.account_keys:
        if key and key != target:
            return key
    return None


@dataclass
class _SourceAccumulator:
    address: str
    first_signature: str
    first_seen: datetime | None
    last_seen: datetime | None
    total_amount: float
    transaction_count: int
    confidence: int


def trace_funding_sources(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[FundingSource]:
    """
    Build the funding-source ledger for `target`.

    Args:
        transactions: Classified transactions in any order.
        target: Address receiving funds.
        config: Confidence start / step / cap.

    Returns:
        FundingSource list sorted by total_amount descending (stable).
    """
    sources: dict[str, _SourceAccumulator] = {}
    for tx in time_ordered(transactions):
        if not tx.account_keys or not tx.is_incoming(target):
            continue
        sender = find_counterparty(tx, target)
        if sender is None:
            continue
        acc = sources.get(sender)
        if acc is None:
            sources[sender] = _SourceAccumulator(
                address=sender,
                first_signature=tx.signature,
                first_seen=tx.timestamp,
                last_seen=tx.timestamp,
                total_amount=tx.value,
                transaction_count=1,
                confidence=min(config.funding_initial_confidence, config.funding_max_confidence),
            )
            continue
        acc.total_amount += tx.value
        acc.transaction_count += 1
        if tx.timestamp is not None:
            acc.last_seen = tx.timestamp
            if acc.first_seen is None:
                acc.first_seen = tx.timestamp
        acc.confidence = min(acc.confidence + config.funding_confidence_step, config.funding_max_confidence)

    ranked = sorted(sources.values(), key=lambda a: a.total_amount, reverse=True)
    logger.debug("funding_sources_traced", wallet_id=target, sources=len(ranked))
    return [
        FundingSource(
            address=a.address,
            first_signature=a.first_signature,
            first_seen=a.first_seen,
            last_seen=a.last_seen,
            total_amount=a.total_amount,
            transaction_count=a.transaction_count,
            confidence=a.confidence,
        )
        for a in ranked
    ]
