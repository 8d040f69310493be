"""
Activity pattern detection — temporal, value repetition, frequent
counterparty and behavioral (fund dispersion, circular movement).

Each detector is a pure function over (transactions, target) returning zero
or more ActivityPattern values. detect_patterns() concatenates them in a
fixed order with no dedup or re-ranking across detectors. Evidence lists are
signatures in ascending time order, truncated to config.max_evidence.
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.funding import find_counterparty, time_ordered
from backend_flowtrace.analysis_engine.models import (
    ActivityPattern,
    Behavior,
    BehavioralDetail,
    ClassifiedTransaction,
    EndpointDetail,
    PatternKind,
    TemporalDetail,
    ValueDetail,
)
from backend_flowtrace.flowtrace_logging import get_logger

logger = get_logger(__name__)

TEMPORAL_PATTERN = "Regular Time Activity"
VALUE_PATTERN = "Repeated Transaction Amount"
ENDPOINT_PATTERN = "Frequent Counterparty"
DISPERSION_PATTERN = "Fund Dispersion Pattern"
CIRCULAR_PATTERN = "Circular Fund Movement"


def _dated(transactions: Sequence[ClassifiedTransaction]) -> list[ClassifiedTransaction]:
    return [tx for tx in time_ordered(transactions) if tx.block_time is not None]


def _signatures(txs: Sequence[ClassifiedTransaction], limit: int) -> tuple[str, ...]:
    return tuple(tx.signature for tx in txs[:limit])


def detect_temporal_pattern(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> ActivityPattern | None:
    """
    Peak UTC hour of day.

    Needs temporal_min_transactions timestamped transactions. The modal hour
    (lowest on ties) must hold temporal_min_share of them and at least
    temporal_min_count.
    """
    dated = _dated(transactions)
    if len(dated) < config.temporal_min_transactions:
        return None
    hours = Counter(tx.timestamp.hour for tx in dated)
    peak_count = max(hours.values())
    peak_hour = min(h for h, c in hours.items() if c == peak_count)
    if peak_count < len(dated) * config.temporal_min_share or peak_count < config.temporal_min_count:
        return None
    in_hour = [tx for tx in dated if tx.timestamp.hour == peak_hour]
    return ActivityPattern(
        kind=PatternKind.TEMPORAL,
        name=TEMPORAL_PATTERN,
        description=f"{peak_count} transactions consistently occur during hour {peak_hour} UTC",
        frequency=peak_count,
        risk=config.temporal_risk,
        confidence=config.temporal_confidence,
        evidence=_signatures(in_hour, config.max_evidence),
        first_seen=dated[0].timestamp,
        last_seen=dated[-1].timestamp,
        detail=TemporalDetail(hour=peak_hour),
    )


def detect_value_patterns(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[ActivityPattern]:
    """One pattern per rounded non-zero value seen at least value_min_count times."""
    buckets: dict[float, list[ClassifiedTransaction]] = {}
    for tx in time_ordered(transactions):
        value = round(tx.value, config.value_decimals)
        if value <= 0:
            continue
        buckets.setdefault(value, []).append(tx)

    patterns: list[ActivityPattern] = []
    for value, txs in buckets.items():
        if len(txs) < config.value_min_count:
            continue
        patterns.append(
            ActivityPattern(
                kind=PatternKind.VALUE,
                name=VALUE_PATTERN,
                description=f"{len(txs)} transactions with identical value of {value:g} SOL",
                frequency=len(txs),
                risk=config.value_high_risk if len(txs) > config.value_high_count else config.value_risk,
                confidence=config.value_confidence,
                evidence=_signatures(txs, config.max_evidence),
                first_seen=txs[0].timestamp,
                last_seen=txs[-1].timestamp,
                detail=ValueDetail(value=value),
            )
        )
    return patterns


def detect_endpoint_patterns(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[ActivityPattern]:
    """One pattern per counterparty seen in at least endpoint_min_count transactions."""
    buckets: dict[str, list[ClassifiedTransaction]] = {}
    for tx in time_ordered(transactions):
        counterparty = find_counterparty(tx, target)
        if counterparty is None:
            continue
        buckets.setdefault(counterparty, []).append(tx)

    patterns: list[ActivityPattern] = []
    for counterparty, txs in buckets.items():
        if len(txs) < config.endpoint_min_count:
            continue
        patterns.append(
            ActivityPattern(
                kind=PatternKind.ENDPOINT,
                name=ENDPOINT_PATTERN,
                description=f"{len(txs)} transactions with address {counterparty[:8]}...",
                frequency=len(txs),
                risk=config.endpoint_risk,
                confidence=config.endpoint_confidence,
                evidence=_signatures(txs, config.max_evidence),
                first_seen=txs[0].timestamp,
                last_seen=txs[-1].timestamp,
                detail=EndpointDetail(counterparty=counterparty),
            )
        )
    return patterns


def detect_fund_dispersion(
    dated: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> ActivityPattern | None:
    """
    Receive followed by several quick sends.

    `dated` must be time-ordered and fully timestamped. An incoming
    transaction followed within dispersion_window_sec by at least
    dispersion_min_outgoing outgoing ones is one instance; scanning resumes
    after the last outgoing transaction it consumed.
    """
    instances: list[tuple[ClassifiedTransaction, list[ClassifiedTransaction]]] = []
    i = 0
    while i < len(dated) - 1:
        receive = dated[i]
        if not receive.is_incoming(target):
            i += 1
            continue
        disperse: list[ClassifiedTransaction] = []
        last_index = i
        for j in range(i + 1, len(dated)):
            tx = dated[j]
            if tx.block_time - receive.block_time > config.dispersion_window_sec:
                break
            if tx.is_outgoing(target):
                disperse.append(tx)
                last_index = j
        if len(disperse) >= config.dispersion_min_outgoing:
            instances.append((receive, disperse))
            i = last_index + 1
        else:
            i += 1

    if len(instances) < config.dispersion_min_instances:
        return None
    evidence: list[str] = []
    for receive, disperse in instances[:2]:
        evidence.append(receive.signature)
        evidence.extend(tx.signature for tx in disperse[:2])
    return ActivityPattern(
        kind=PatternKind.BEHAVIORAL,
        name=DISPERSION_PATTERN,
        description=(
            f"{len(instances)} instances of receiving funds and quickly dispersing "
            "to multiple addresses"
        ),
        frequency=len(instances),
        risk=config.dispersion_risk,
        confidence=config.dispersion_confidence,
        evidence=tuple(evidence),
        first_seen=instances[0][0].timestamp,
        last_seen=instances[-1][1][-1].timestamp,
        detail=BehavioralDetail(behavior=Behavior.FUND_DISPERSION),
    )


def detect_circular_movement(
    dated: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> ActivityPattern | None:
    """
    Addresses the target both receives from and sends to.

    A non-target address in at least circular_min_transactions transactions,
    with at least one incoming and one outgoing among them, is a candidate.
    The pattern is keyed on the candidate with the most transactions.
    """
    by_address: dict[str, list[ClassifiedTransaction]] = {}
    for tx in dated:
        for address in dict.fromkeys(tx.account_keys):
            if address and address != target:
                by_address.setdefault(address, []).append(tx)

    candidates: list[tuple[str, list[ClassifiedTransaction]]] = []
    for address, txs in by_address.items():
        if len(txs) < config.circular_min_transactions:
            continue
        has_in = any(tx.is_incoming(target) for tx in txs)
        has_out = any(tx.is_outgoing(target) for tx in txs)
        if has_in and has_out:
            candidates.append((address, txs))

    if len(candidates) < config.circular_min_candidates:
        return None
    candidates.sort(key=lambda c: len(c[1]), reverse=True)
    _, top_txs = candidates[0]
    return ActivityPattern(
        kind=PatternKind.BEHAVIORAL,
        name=CIRCULAR_PATTERN,
        description=f"Funds repeatedly move between this wallet and {len(candidates)} other addresses",
        frequency=sum(len(txs) for _, txs in candidates),
        risk=config.circular_risk,
        confidence=config.circular_confidence,
        evidence=_signatures(top_txs, config.max_evidence),
        first_seen=top_txs[0].timestamp,
        last_seen=top_txs[-1].timestamp,
        detail=BehavioralDetail(
            behavior=Behavior.CIRCULAR_MOVEMENT,
            addresses=tuple(address for address, _ in candidates),
        ),
    )


def detect_behavioral_patterns(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[ActivityPattern]:
    """Fund dispersion then circular movement, over timestamped transactions only."""
    dated = _dated(transactions)
    if len(dated) < config.behavioral_min_transactions:
        return []
    patterns: list[ActivityPattern] = []
    dispersion = detect_fund_dispersion(dated, target, config)
    if dispersion is not None:
        patterns.append(dispersion)
    circular = detect_circular_movement(dated, target, config)
    if circular is not None:
        patterns.append(circular)
    return patterns


def detect_patterns(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[ActivityPattern]:
    """All detectors, concatenated: temporal, value, endpoint, behavioral."""
    patterns: list[ActivityPattern] = []
    temporal = detect_temporal_pattern(transactions, target, config)
    if temporal is not None:
        patterns.append(temporal)
    patterns.extend(detect_value_patterns(transactions, target, config))
    patterns.extend(detect_endpoint_patterns(transactions, target, config))
    patterns.extend(detect_behavioral_patterns(transactions, target, config))
    logger.debug(
        "activity_patterns_detected",
        wallet_id=target,
        patterns=len(patterns),
        kinds=[p.kind.value for p in patterns],
    )
    return patterns
