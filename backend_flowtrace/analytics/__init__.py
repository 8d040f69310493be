"""
FlowTrace analytics: default collaborators for the flow orchestrator.

Modules: entity_labeling (known-entity dataset + pattern heuristics),
transaction_clustering (burst, value, entity and unusual-movement clusters),
fund_origins (multi-hop funding-source walk over RPC).
"""

from backend_flowtrace.analytics.entity_labeling import KnownEntityIdentifier
from backend_flowtrace.analytics.fund_origins import FundOriginTracer
from backend_flowtrace.analytics.transaction_clustering import HeuristicClusterer

__all__ = [
    "KnownEntityIdentifier",
    "FundOriginTracer",
    "HeuristicClusterer",
]
