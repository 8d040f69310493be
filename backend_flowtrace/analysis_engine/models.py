"""
Data models for analysis engine input and output.

Every model is an immutable dataclass with a to_dict() that returns a
JSON-serializable mapping: addresses as strings, instants as ISO-8601 UTC
strings, scores as numbers. Results are recomputed on every invocation and
never updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union

from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _freeze(obj: Any, name: str) -> None:
    """Replace a mapping field of a frozen dataclass with a read-only copy."""
    object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))


class TransactionType(str, Enum):
    TRANSFER = "transfer"
    SWAP = "swap"
    NFT = "nft"
    DEFI = "defi"
    OTHER = "other"


class NodeRole(str, Enum):
    WALLET = "wallet"
    PROGRAM = "program"


@dataclass(frozen=True)
class ClassifiedTransaction:
    """
    A TransactionRecord annotated with its semantic type, estimated value
    and signed per-address balance deltas.

    Direction relative to an address follows the sign of its net delta:
    positive is incoming, negative is outgoing, zero or absent is neither.
    """

    record: TransactionRecord
    tx_type: TransactionType
    value: float
    """Estimated value moved (SOL); always >= 0."""
    deltas: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, "deltas")

    @property
    def signature(self) -> str:
        return self.record.signature

    @property
    def block_time(self) -> int | None:
        return self.record.block_time

    @property
    def timestamp(self) -> datetime | None:
        return self.record.timestamp

    @property
    def account_keys(self) -> tuple[str, ...]:
        return self.record.account_keys

    @property
    def instructions(self) -> tuple[InstructionRecord, ...]:
        return self.record.instructions

    def delta(self, address: str) -> float:
        return self.deltas.get(address, 0.0)

    def is_incoming(self, address: str) -> bool:
        return self.delta(address) > 0

    def is_outgoing(self, address: str) -> bool:
        return self.delta(address) < 0


# -----------------------------------------------------------------------------
# Interaction graph
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphNode:
    address: str
    role: NodeRole
    transaction_count: int
    last_activity: datetime
    balance: float | None = None
    """Known only for the target node."""
    is_target: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.address,
            "address": self.address,
            "type": self.role.value,
            "transaction_count": self.transaction_count,
            "last_activity": _iso(self.last_activity),
            "balance": self.balance,
            "is_target": self.is_target,
        }


@dataclass(frozen=True)
class GraphEdge:
    """One edge per (transaction, account) pair; id = target|account|signature."""

    id: str
    source: str
    target: str
    tx_type: TransactionType
    signature: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.tx_type.value,
            "signature": self.signature,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class InteractionGraph:
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    def node(self, address: str) -> GraphNode | None:
        for n in self.nodes:
            if n.address == address:
                return n
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


# -----------------------------------------------------------------------------
# Funding sources
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FundingSource:
    """
    An address whose outgoing value is attributed to the target.

    Confidence starts at 60 and gains 5 per additional observation, capped
    at 100.

    Direct sources sent to the target themselves. Indirect ones (from fund
    origin tracing) funded an intermediate; `path` lists the hops from the
    intermediate that received their value down to the target.
    """

    address: str
    first_signature: str
    first_seen: datetime | None
    last_seen: datetime | None
    total_amount: float
    transaction_count: int
    confidence: int
    is_direct: bool = True
    path: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "initial_transaction_signature": self.first_signature,
            "first_seen": _iso(self.first_seen),
            "last_seen": _iso(self.last_seen),
            "total_amount": self.total_amount,
            "frequency": self.transaction_count,
            "confidence": self.confidence,
            "is_direct": self.is_direct,
            "path": list(self.path),
        }


# -----------------------------------------------------------------------------
# Activity patterns (tagged union: shared envelope + kind-specific detail)
# -----------------------------------------------------------------------------


class PatternKind(str, Enum):
    TEMPORAL = "temporal"
    VALUE = "value"
    ENDPOINT = "endpoint"
    BEHAVIORAL = "behavioral"


class Behavior(str, Enum):
    FUND_DISPERSION = "fund_dispersion"
    CIRCULAR_MOVEMENT = "circular_movement"


@dataclass(frozen=True)
class TemporalDetail:
    hour: int
    """UTC hour of day (0-23) holding the activity peak."""

    def to_dict(self) -> dict[str, Any]:
        return {"hour": self.hour}


@dataclass(frozen=True)
class ValueDetail:
    value: float
    """Repeated value, rounded."""

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value}


@dataclass(frozen=True)
class EndpointDetail:
    counterparty: str

    def to_dict(self) -> dict[str, Any]:
        return {"counterparty": self.counterparty}


@dataclass(frozen=True)
class BehavioralDetail:
    behavior: Behavior
    addresses: tuple[str, ...] = ()
    """Counterparties involved (circular candidates, ordered by activity)."""

    def to_dict(self) -> dict[str, Any]:
        return {"behavior": self.behavior.value, "addresses": list(self.addresses)}


PatternDetail = Union[TemporalDetail, ValueDetail, EndpointDetail, BehavioralDetail]


@dataclass(frozen=True)
class ActivityPattern:
    kind: PatternKind
    name: str
    description: str
    frequency: int
    risk: int
    confidence: int
    evidence: tuple[str, ...]
    first_seen: datetime | None
    last_seen: datetime | None
    detail: PatternDetail

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "description": self.description,
            "frequency": self.frequency,
            "risk": self.risk,
            "confidence": self.confidence,
            "examples": list(self.evidence),
            "first_seen": _iso(self.first_seen),
            "last_seen": _iso(self.last_seen),
            "detail": self.detail.to_dict(),
        }


@dataclass(frozen=True)
class CriticalPath:
    description: str
    evidence: tuple[str, ...]
    risk: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "edges": list(self.evidence),
            "risk": self.risk,
        }


# -----------------------------------------------------------------------------
# Collaborator outputs (entity identification, clustering)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityLabel:
    address: str
    name: str
    entity_type: str
    """exchange | dex | project | protocol | contract | other"""
    confidence: int
    description: str | None = None
    tags: tuple[str, ...] = ()
    detection_method: str = "dataset"
    """dataset | pattern | manual"""

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "type": self.entity_type,
            "confidence": self.confidence,
            "description": self.description,
            "tags": list(self.tags),
            "detection_method": self.detection_method,
        }


@dataclass(frozen=True)
class TransactionCluster:
    id: str
    name: str
    description: str
    cluster_type: str
    """temporal | pattern | value | entity | unusual"""
    transactions: tuple[str, ...]
    wallets: tuple[str, ...]
    confidence: int
    risk_score: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.cluster_type,
            "transactions": list(self.transactions),
            "wallets": list(self.wallets),
            "confidence": self.confidence,
            "risk_score": self.risk_score,
        }


@dataclass(frozen=True)
class ClusteringResult:
    clusters: tuple[TransactionCluster, ...] = ()
    unusual_transactions: tuple[str, ...] = ()
    high_value_transactions: tuple[str, ...] = ()
    related_wallets: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, "related_wallets")

    def to_dict(self) -> dict[str, Any]:
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "unusual_transactions": list(self.unusual_transactions),
            "high_value_transactions": list(self.high_value_transactions),
            "related_wallets": dict(self.related_wallets),
        }


# -----------------------------------------------------------------------------
# Filters, summaries and the final result
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowFilters:
    """Pre-analysis filters; None / empty means no restriction."""

    start_date: datetime | None = None
    end_date: datetime | None = None
    min_amount: float | None = None
    max_amount: float | None = None
    transaction_types: tuple[TransactionType, ...] = ()
    address_filter: str | None = None


@dataclass(frozen=True)
class TimelineBucket:
    date: date
    """UTC calendar day."""
    total_transactions: int
    transactions_by_type: Mapping[str, int] = field(hash=False)
    volume: float

    def __post_init__(self) -> None:
        _freeze(self, "transactions_by_type")

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": _iso(self.date),
            "total_transactions": self.total_transactions,
            "transactions_by_type": dict(self.transactions_by_type),
            "volume": self.volume,
        }


@dataclass(frozen=True)
class FlowMetrics:
    total_transactions: int = 0
    unique_addresses: int = 0
    total_volume: float = 0.0
    risk_score: int = 0
    unusual_transactions_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_transactions": self.total_transactions,
            "unique_addresses": self.unique_addresses,
            "total_volume": self.total_volume,
            "risk_score": self.risk_score,
            "unusual_transactions_count": self.unusual_transactions_count,
        }


@dataclass(frozen=True)
class AnalysisResult:
    target: str
    graph: InteractionGraph = field(default_factory=InteractionGraph)
    funding_sources: tuple[FundingSource, ...] = ()
    patterns: tuple[ActivityPattern, ...] = ()
    total_inflow: float = 0.0
    total_outflow: float = 0.0
    primary_activity: TransactionType | None = None
    risk_score: int = 0
    critical_paths: tuple[CriticalPath, ...] = ()
    entity_labels: tuple[EntityLabel, ...] = ()
    clusters: tuple[TransactionCluster, ...] = ()
    unusual_transactions: tuple[str, ...] = ()
    high_value_transactions: tuple[str, ...] = ()
    timeline: tuple[TimelineBucket, ...] = ()
    metrics: FlowMetrics = field(default_factory=FlowMetrics)
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return self.metrics.total_transactions == 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable report; nesting mirrors the dataclasses."""
        return {
            "target": self.target,
            "graph": self.graph.to_dict(),
            "wallet_analysis": {
                "funding_sources": [s.to_dict() for s in self.funding_sources],
                "activity_patterns": [p.to_dict() for p in self.patterns],
                "total_inflow": self.total_inflow,
                "total_outflow": self.total_outflow,
                "primary_activity": self.primary_activity.value if self.primary_activity else None,
                "risk_score": self.risk_score,
                "analysis_timestamp": _iso(self.analyzed_at),
            },
            "entity_labels": [e.to_dict() for e in self.entity_labels],
            "transaction_clusters": [c.to_dict() for c in self.clusters],
            "unusual_transactions": list(self.unusual_transactions),
            "high_value_transactions": list(self.high_value_transactions),
            "critical_paths": [c.to_dict() for c in self.critical_paths],
            "timeline_data": [b.to_dict() for b in self.timeline],
            "metrics": self.metrics.to_dict(),
        }
