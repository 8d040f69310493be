"""
Risk score aggregation — funding-source count plus pattern risk.

Score = base, adjusted for the number of funding sources, plus the mean
confidence-weighted pattern risk (capped). Fully explainable; no ML.
"""

from __future__ import annotations

import math
from typing import Sequence

from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.models import ActivityPattern, FundingSource


def pattern_risk(patterns: Sequence[ActivityPattern], config: AnalysisConfig = DEFAULT_CONFIG) -> float:
    """Mean of risk * confidence / 100 over patterns, capped; 0.0 with no patterns."""
    if not patterns:
        return 0.0
    weighted = sum(p.risk * p.confidence / 100 for p in patterns)
    return min(weighted / len(patterns), config.risk_pattern_cap)


def score_risk(
    funding_sources: Sequence[FundingSource],
    patterns: Sequence[ActivityPattern],
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> int:
    """
    Compute the overall 0-100 risk score.

    Args:
        funding_sources: Traced funding sources.
        patterns: Detected activity patterns.
        config: Base score, source adjustments and pattern cap.

    Returns:
        Integer score in [0, 100], halves rounded up.
    """
    score = float(config.risk_base)
    if not funding_sources:
        score += config.risk_no_sources_bonus
    elif len(funding_sources) > config.risk_many_sources_threshold:
        score += config.risk_many_sources_bonus
    score += pattern_risk(patterns, config)
    return max(0, min(100, int(math.floor(score + 0.5))))
