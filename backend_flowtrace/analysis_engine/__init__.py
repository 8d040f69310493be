"""
Analysis engine package — transaction flow analysis for a target wallet.

Consumes TransactionRecord lists, classifies and values them, and produces
an interaction graph, funding sources, activity patterns, a risk score and
critical paths.
"""

from backend_flowtrace.analysis_engine.classifier import classify
from backend_flowtrace.analysis_engine.collaborators import EntityIdentifier, TransactionClusterer
from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.critical_paths import identify_critical_paths
from backend_flowtrace.analysis_engine.flow import (
    analyze,
    apply_filters,
    build_timeline,
    compute_flows,
    determine_primary_activity,
)
from backend_flowtrace.analysis_engine.funding import find_counterparty, trace_funding_sources
from backend_flowtrace.analysis_engine.graph import build_graph
from backend_flowtrace.analysis_engine.models import (
    ActivityPattern,
    AnalysisResult,
    ClassifiedTransaction,
    ClusteringResult,
    CriticalPath,
    EntityLabel,
    FlowFilters,
    FundingSource,
    GraphEdge,
    GraphNode,
    InteractionGraph,
    PatternKind,
    TransactionCluster,
    TransactionType,
)
from backend_flowtrace.analysis_engine.patterns import detect_patterns
from backend_flowtrace.analysis_engine.scorer import score_risk
from backend_flowtrace.analysis_engine.valuation import (
    InstructionValueEstimator,
    TransferLeg,
    classify_transactions,
    estimate_value,
)

__all__ = [
    "classify",
    "EntityIdentifier",
    "TransactionClusterer",
    "DEFAULT_CONFIG",
    "AnalysisConfig",
    "identify_critical_paths",
    "analyze",
    "apply_filters",
    "build_timeline",
    "compute_flows",
    "determine_primary_activity",
    "find_counterparty",
    "trace_funding_sources",
    "build_graph",
    "ActivityPattern",
    "AnalysisResult",
    "ClassifiedTransaction",
    "ClusteringResult",
    "CriticalPath",
    "EntityLabel",
    "FlowFilters",
    "FundingSource",
    "GraphEdge",
    "GraphNode",
    "InteractionGraph",
    "PatternKind",
    "TransactionCluster",
    "TransactionType",
    "detect_patterns",
    "score_risk",
    "InstructionValueEstimator",
    "TransferLeg",
    "classify_transactions",
    "estimate_value",
]
