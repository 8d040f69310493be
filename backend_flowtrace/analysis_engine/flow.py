"""
Transaction flow orchestrator.

analyze() is the engine entry point: classify and value the records, apply
filters, then run graph building, funding tracing, pattern detection, flow
totals, risk scoring, the injected collaborators and critical-path
identification, and finally the timeline and metric summaries. Pure and
re-entrant; every call returns a fresh AnalysisResult.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timezone
from typing import Sequence

from backend_flowtrace.analysis_engine.collaborators import EntityIdentifier, TransactionClusterer
from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.critical_paths import identify_critical_paths
from backend_flowtrace.analysis_engine.funding import time_ordered, trace_funding_sources
from backend_flowtrace.analysis_engine.graph import build_graph
from backend_flowtrace.analysis_engine.models import (
    AnalysisResult,
    ClassifiedTransaction,
    ClusteringResult,
    FlowFilters,
    FlowMetrics,
    TimelineBucket,
    TransactionType,
)
from backend_flowtrace.analysis_engine.patterns import detect_patterns
from backend_flowtrace.analysis_engine.scorer import score_risk
from backend_flowtrace.analysis_engine.valuation import InstructionValueEstimator, classify_transactions
from backend_flowtrace.flowtrace_logging import get_logger
from backend_flowtrace.solana_listener.models import TransactionRecord

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def apply_filters(
    transactions: Sequence[ClassifiedTransaction],
    filters: FlowFilters | None,
) -> list[ClassifiedTransaction]:
    """
    Keep transactions matching every set filter.

    Date bounds are inclusive and skip undated transactions. Amount bounds
    compare the estimated value. transaction_types is an allow-list (empty
    means all). address_filter is a case-insensitive substring match over
    account keys.
    """
    if filters is None:
        return list(transactions)
    start = _as_utc(filters.start_date) if filters.start_date else None
    end = _as_utc(filters.end_date) if filters.end_date else None
    types = set(filters.transaction_types)
    needle = (filters.address_filter or "").lower()

    out: list[ClassifiedTransaction] = []
    for tx in transactions:
        ts = tx.timestamp
        if start is not None and ts is not None and ts < start:
            continue
        if end is not None and ts is not None and ts > end:
            continue
        if filters.min_amount is not None and tx.value < filters.min_amount:
            continue
        if filters.max_amount is not None and tx.value > filters.max_amount:
            continue
        if types and tx.tx_type not in types:
            continue
        if needle and not any(needle in k.lower() for k in tx.account_keys):
            continue
        out.append(tx)
    return out


def compute_flows(transactions: Sequence[ClassifiedTransaction], target: str) -> tuple[float, float]:
    """(total_inflow, total_outflow) of estimated value for `target`."""
    inflow = 0.0
    outflow = 0.0
    for tx in transactions:
        if tx.is_incoming(target):
            inflow += tx.value
        elif tx.is_outgoing(target):
            outflow += tx.value
    return inflow, outflow


def determine_primary_activity(
    transactions: Sequence[ClassifiedTransaction],
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> TransactionType | None:
    """Most common type (first seen wins ties) when it covers the minimum share."""
    if not transactions:
        return None
    counts = Counter(tx.tx_type for tx in transactions)
    top_type, top_count = counts.most_common(1)[0]
    if top_count >= len(transactions) * config.primary_activity_min_share:
        return top_type
    return None


def build_timeline(transactions: Sequence[ClassifiedTransaction]) -> list[TimelineBucket]:
    """Per UTC day, ascending: transaction count, per-type counts and volume. Undated skipped."""
    days: dict[date, list[ClassifiedTransaction]] = {}
    for tx in time_ordered(transactions):
        if tx.timestamp is None:
            continue
        days.setdefault(tx.timestamp.date(), []).append(tx)
    buckets: list[TimelineBucket] = []
    for day in sorted(days):
        txs = days[day]
        by_type = Counter(tx.tx_type.value for tx in txs)
        buckets.append(
            TimelineBucket(
                date=day,
                total_transactions=len(txs),
                transactions_by_type=dict(by_type),
                volume=sum(tx.value for tx in txs),
            )
        )
    return buckets


def analyze(
    transactions: Sequence[TransactionRecord],
    target: str,
    filters: FlowFilters | None = None,
    *,
    entity_identifier: EntityIdentifier | None = None,
    clusterer: TransactionClusterer | None = None,
    estimator: InstructionValueEstimator | None = None,
    target_balance: float | None = None,
    config: AnalysisConfig | None = None,
    now: datetime | None = None,
) -> AnalysisResult:
    """
    Run the full flow analysis for `target`.

    Args:
        transactions: Fetched records, any order.
        target: Address under analysis (non-empty).
        filters: Optional pre-analysis filters.
        entity_identifier: Entity labelling service; skipped when None.
        clusterer: Transaction clustering service; skipped when None.
        estimator: Value / direction estimator; default decodes System Program transfers.
        target_balance: Known balance for the target node.
        config: Thresholds; DEFAULT_CONFIG when None.
        now: Analysis time, also used for undated graph timestamps.

    Returns:
        AnalysisResult. Empty (all zero) when no transaction survives filtering.

    Raises:
        ValueError: If target is empty.
    """
    target = (target or "").strip()
    if not target:
        raise ValueError("target address is required")
    config = config or DEFAULT_CONFIG
    now = now or datetime.now(timezone.utc)

    classified = apply_filters(classify_transactions(transactions, estimator), filters)
    if not classified:
        logger.info("flow_analysis_empty", wallet_id=target, input_count=len(transactions))
        return AnalysisResult(target=target, analyzed_at=now)

    graph = build_graph(classified, target, target_balance=target_balance, now=now)
    funding_sources = trace_funding_sources(classified, target, config)
    patterns = detect_patterns(classified, target, config)
    inflow, outflow = compute_flows(classified, target)
    risk_score = score_risk(funding_sources, patterns, config)

    entity_labels = entity_identifier.identify_entities(classified, target) if entity_identifier else []
    clustering = clusterer.cluster_transactions(classified, target) if clusterer else ClusteringResult()

    critical_paths = identify_critical_paths(
        classified,
        target,
        funding_sources,
        patterns,
        clustering.unusual_transactions,
        config,
    )
    metrics = FlowMetrics(
        total_transactions=len(classified),
        unique_addresses=len(graph.nodes),
        total_volume=inflow + outflow,
        risk_score=risk_score,
        unusual_transactions_count=len(clustering.unusual_transactions),
    )
    result = AnalysisResult(
        target=target,
        graph=graph,
        funding_sources=tuple(funding_sources),
        patterns=tuple(patterns),
        total_inflow=inflow,
        total_outflow=outflow,
        primary_activity=determine_primary_activity(classified, config),
        risk_score=risk_score,
        critical_paths=tuple(critical_paths),
        entity_labels=tuple(entity_labels),
        clusters=clustering.clusters,
        unusual_transactions=clustering.unusual_transactions,
        high_value_transactions=clustering.high_value_transactions,
        timeline=tuple(build_timeline(classified)),
        metrics=metrics,
        analyzed_at=now,
    )
    logger.info(
        "flow_analysis_done",
        wallet_id=target,
        transactions=len(classified),
        funding_sources=len(funding_sources),
        patterns=len(patterns),
        critical_paths=len(critical_paths),
        risk_score=risk_score,
    )
    return result
