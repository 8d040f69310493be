"""
Interfaces for the services the flow orchestrator calls but does not own.

Implementations are injected into analyze(); defaults live in
backend_flowtrace.analytics.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from backend_flowtrace.analysis_engine.models import (
    ClassifiedTransaction,
    ClusteringResult,
    EntityLabel,
)


@runtime_checkable
class EntityIdentifier(Protocol):
    def identify_entities(
        self,
        transactions: Sequence[ClassifiedTransaction],
        target: str,
    ) -> list[EntityLabel]:
        ...


@runtime_checkable
class TransactionClusterer(Protocol):
    def cluster_transactions(
        self,
        transactions: Sequence[ClassifiedTransaction],
        target: str,
    ) -> ClusteringResult:
        ...
