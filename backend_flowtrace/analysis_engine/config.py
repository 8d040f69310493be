"""
Thresholds for the transaction flow analysis engine.

Defaults are the production rule set; tests and callers may pass a tuned
AnalysisConfig to any stage. Counts are transactions, windows are seconds,
amounts are SOL.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AnalysisConfig:
    """Configurable thresholds and fixed scores for every analysis stage."""

    # Funding sources: confidence on first sighting, bump per repeat, cap.
    funding_initial_confidence: int = 60
    funding_confidence_step: int = 5
    funding_max_confidence: int = 100

    # Temporal: modal UTC hour must hold this share and count of dated txs.
    temporal_min_transactions: int = 5
    temporal_min_share: float = 0.3
    temporal_min_count: int = 3
    temporal_risk: int = 20
    temporal_confidence: int = 70

    # Value repetition: identical rounded value seen at least this often.
    value_decimals: int = 3
    value_min_count: int = 3
    value_high_count: int = 10
    value_risk: int = 20
    value_high_risk: int = 40
    value_confidence: int = 75

    # Frequent counterparty.
    endpoint_min_count: int = 5
    endpoint_risk: int = 30
    endpoint_confidence: int = 80

    # Behavioral detectors run only with this many dated txs.
    behavioral_min_transactions: int = 5

    # Fund dispersion: receive followed by N outgoing within the window.
    dispersion_window_sec: int = 3600
    dispersion_min_outgoing: int = 3
    dispersion_min_instances: int = 2
    dispersion_risk: int = 70
    dispersion_confidence: int = 85

    # Circular movement.
    circular_min_transactions: int = 2
    circular_min_candidates: int = 2
    circular_risk: int = 60
    circular_confidence: int = 75

    # Examples kept per pattern.
    max_evidence: int = 5

    # Risk aggregation.
    risk_base: int = 20
    risk_no_sources_bonus: int = 10
    risk_many_sources_threshold: int = 10
    risk_many_sources_bonus: int = 15
    risk_pattern_cap: float = 50.0

    # Critical paths.
    high_value_threshold: float = 50.0
    high_value_top_n: int = 3
    high_value_risk: int = 30
    unusual_max_evidence: int = 10
    unusual_risk: int = 70
    mixing_min_pattern_risk: int = 60
    mixing_risk: int = 80

    # Primary activity: most common type must cover this share.
    primary_activity_min_share: float = 0.4


DEFAULT_CONFIG = AnalysisConfig()
