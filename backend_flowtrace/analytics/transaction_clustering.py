"""
Transaction clustering for FlowTrace analytics.

Groups the target's transactions by heuristics: rapid bursts, high values,
repeated identical values, the most frequent counterparty, and unusual fund
movement (receive then disperse within an hour, per UTC day). Also returns
high-value signatures and a related-wallet confidence map. Implements the
TransactionClusterer interface used by the flow orchestrator.

Cluster ids are derived from cluster content, so the same input always
yields the same ids.
"""

from __future__ import annotations

import hashlib
from collections import Counter
from datetime import date
from typing import Sequence

from backend_flowtrace.analysis_engine.funding import find_counterparty, time_ordered
from backend_flowtrace.analysis_engine.models import (
    ClassifiedTransaction,
    ClusteringResult,
    TransactionCluster,
    TransactionType,
)
from backend_flowtrace.flowtrace_logging import get_logger

logger = get_logger(__name__)

BURST_WINDOW_SEC = 5 * 60
BURST_MIN_TRANSACTIONS = 3
BURST_CONFIDENCE = 85

HIGH_VALUE_THRESHOLD = 10.0
HIGH_VALUE_CONFIDENCE = 90

REPEATED_VALUE_DECIMALS = 3
REPEATED_VALUE_MIN = 3
REPEATED_VALUE_CONFIDENCE = 75

ENTITY_MIN_INTERACTIONS = 3
ENTITY_CONFIDENCE = 80

UNUSUAL_WINDOW_SEC = 3600
UNUSUAL_MIN_DISPERSE = 3
UNUSUAL_CONFIDENCE = 70
UNUSUAL_RISK = 65

RELATED_WALLET_MIN_CONFIDENCE = 50


def _cluster_id(prefix: str, signatures: Sequence[str]) -> str:
    """Deterministic cluster id from the member signatures."""
    h = hashlib.sha256(" ".join(signatures).encode()).hexdigest()[:12]
    return f"{prefix}-{h}"


def _wallets(txs: Sequence[ClassifiedTransaction]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for tx in txs:
        for k in tx.account_keys:
            seen.setdefault(k, None)
    return tuple(seen)


def _signatures(txs: Sequence[ClassifiedTransaction]) -> tuple[str, ...]:
    return tuple(tx.signature for tx in txs)


def detect_rapid_burst(transactions: Sequence[ClassifiedTransaction]) -> TransactionCluster | None:
    """Largest run of dated transactions within BURST_WINDOW_SEC of the run's first one."""
    dated = [tx for tx in time_ordered(transactions) if tx.block_time is not None]
    if len(dated) < BURST_MIN_TRANSACTIONS:
        return None
    runs: list[list[ClassifiedTransaction]] = []
    current = [dated[0]]
    for tx in dated[1:]:
        if tx.block_time - current[0].block_time <= BURST_WINDOW_SEC:
            current.append(tx)
            continue
        if len(current) >= BURST_MIN_TRANSACTIONS:
            runs.append(current)
        current = [tx]
    if len(current) >= BURST_MIN_TRANSACTIONS:
        runs.append(current)
    if not runs:
        return None
    largest = runs[0]
    for run in runs[1:]:
        if len(run) > len(largest):
            largest = run
    sigs = _signatures(largest)
    started = largest[0].timestamp
    return TransactionCluster(
        id=_cluster_id("temporal", sigs),
        name="Rapid Transaction Burst",
        description=f"{len(largest)} transactions within 5 minutes on {started.date().isoformat()}",
        cluster_type="temporal",
        transactions=sigs,
        wallets=_wallets(largest),
        confidence=BURST_CONFIDENCE,
    )


def detect_value_clusters(transactions: Sequence[ClassifiedTransaction]) -> list[TransactionCluster]:
    """High-value cluster, then one cluster per repeated value (first occurrence order)."""
    clusters: list[TransactionCluster] = []
    high = [tx for tx in transactions if tx.value > HIGH_VALUE_THRESHOLD]
    if high:
        sigs = _signatures(high)
        clusters.append(
            TransactionCluster(
                id=_cluster_id("high-value", sigs),
                name="High Value Transactions",
                description=f"{len(high)} transactions with values exceeding {HIGH_VALUE_THRESHOLD:g} SOL",
                cluster_type="value",
                transactions=sigs,
                wallets=_wallets(high),
                confidence=HIGH_VALUE_CONFIDENCE,
            )
        )

    by_value: dict[float, list[ClassifiedTransaction]] = {}
    for tx in transactions:
        value = round(tx.value, REPEATED_VALUE_DECIMALS)
        if value > 0:
            by_value.setdefault(value, []).append(tx)
    for value, txs in by_value.items():
        if len(txs) < REPEATED_VALUE_MIN:
            continue
        sigs = _signatures(txs)
        clusters.append(
            TransactionCluster(
                id=_cluster_id(f"same-value-{value:g}", sigs),
                name="Repeated Value Pattern",
                description=f"{len(txs)} transactions with identical value of {value:g} SOL",
                cluster_type="pattern",
                transactions=sigs,
                wallets=_wallets(txs),
                confidence=REPEATED_VALUE_CONFIDENCE,
            )
        )
    return clusters


def detect_entity_cluster(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
) -> TransactionCluster | None:
    """Transactions with the most frequent counterparty, if it reaches ENTITY_MIN_INTERACTIONS."""
    by_entity: dict[str, list[ClassifiedTransaction]] = {}
    for tx in transactions:
        counterparty = find_counterparty(tx, target)
        if counterparty is not None:
            by_entity.setdefault(counterparty, []).append(tx)
    if not by_entity:
        return None
    top_entity = max(by_entity, key=lambda addr: len(by_entity[addr]))
    txs = by_entity[top_entity]
    if len(txs) < ENTITY_MIN_INTERACTIONS:
        return None
    sigs = _signatures(txs)
    return TransactionCluster(
        id=_cluster_id(f"entity-{top_entity[:8]}", sigs),
        name="Frequent Entity Interaction",
        description=f"{len(txs)} interactions with the same entity",
        cluster_type="entity",
        transactions=sigs,
        wallets=(target, top_entity),
        confidence=ENTITY_CONFIDENCE,
    )


def _receive_disperse(day_txs: Sequence[ClassifiedTransaction], target: str) -> list[ClassifiedTransaction]:
    unusual: list[ClassifiedTransaction] = []
    i = 0
    while i < len(day_txs):
        receive = day_txs[i]
        if not receive.is_incoming(target):
            i += 1
            continue
        disperse: list[ClassifiedTransaction] = []
        last_index = i
        for j in range(i + 1, len(day_txs)):
            tx = day_txs[j]
            if tx.block_time - receive.block_time > UNUSUAL_WINDOW_SEC:
                break
            if tx.is_outgoing(target):
                disperse.append(tx)
                last_index = j
        if len(disperse) >= UNUSUAL_MIN_DISPERSE:
            unusual.append(receive)
            unusual.extend(disperse)
            i = last_index + 1
        else:
            i += 1
    return unusual


def detect_unusual_activity(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
) -> TransactionCluster | None:
    """Receive followed by several quick outgoing transactions, scanned per UTC day."""
    days: dict[date, list[ClassifiedTransaction]] = {}
    for tx in time_ordered(transactions):
        if tx.timestamp is not None:
            days.setdefault(tx.timestamp.date(), []).append(tx)
    unusual: list[ClassifiedTransaction] = []
    for day in sorted(days):
        unusual.extend(_receive_disperse(days[day], target))
    if not unusual:
        return None
    sigs = _signatures(unusual)
    return TransactionCluster(
        id=_cluster_id("unusual", sigs),
        name="Unusual Fund Movement",
        description="Funds received and quickly dispersed to multiple addresses",
        cluster_type="unusual",
        transactions=sigs,
        wallets=_wallets(unusual),
        confidence=UNUSUAL_CONFIDENCE,
        risk_score=UNUSUAL_RISK,
    )


def wallet_relationship_confidence(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
) -> dict[str, int]:
    """
    0-100 relationship confidence per non-target address.

    Total appearances (4 each, max 40) + direct counterparty interactions
    (6 each, max 30) + type-pattern matches for addresses seen 3+ times
    (nft >= 2: 10, swap >= 2: 10, transfer >= 3: 15; max 30).
    """
    totals: Counter[str] = Counter()
    types: dict[str, Counter[TransactionType]] = {}
    direct: Counter[str] = Counter()
    for tx in transactions:
        for account in tx.account_keys:
            if account == target:
                continue
            totals[account] += 1
            types.setdefault(account, Counter())[tx.tx_type] += 1
        counterparty = find_counterparty(tx, target)
        if counterparty is not None:
            direct[counterparty] += 1

    scores: dict[str, int] = {}
    for account, count in totals.items():
        score = min(count * 4, 40)
        score += min(direct[account] * 6, 30)
        if count >= 3:
            type_counts = types[account]
            match = 0
            if type_counts[TransactionType.NFT] >= 2:
                match += 10
            if type_counts[TransactionType.SWAP] >= 2:
                match += 10
            if type_counts[TransactionType.TRANSFER] >= 3:
                match += 15
            score += min(match, 30)
        scores[account] = score
    return scores


class HeuristicClusterer:
    """Default TransactionClusterer."""

    def cluster_transactions(
        self,
        transactions: Sequence[ClassifiedTransaction],
        target: str,
    ) -> ClusteringResult:
        if not transactions:
            return ClusteringResult()
        clusters: list[TransactionCluster] = []
        burst = detect_rapid_burst(transactions)
        if burst is not None:
            clusters.append(burst)
        clusters.extend(detect_value_clusters(transactions))
        entity = detect_entity_cluster(transactions, target)
        if entity is not None:
            clusters.append(entity)
        unusual = detect_unusual_activity(transactions, target)
        if unusual is not None:
            clusters.append(unusual)

        high_value = tuple(tx.signature for tx in transactions if tx.value > HIGH_VALUE_THRESHOLD)
        related = {
            addr: score
            for addr, score in wallet_relationship_confidence(transactions, target).items()
            if score > RELATED_WALLET_MIN_CONFIDENCE
        }
        logger.debug(
            "transactions_clustered",
            wallet_id=target,
            clusters=len(clusters),
            unusual=len(unusual.transactions) if unusual else 0,
        )
        return ClusteringResult(
            clusters=tuple(clusters),
            unusual_transactions=unusual.transactions if unusual else (),
            high_value_transactions=high_value,
            related_wallets=related,
        )
