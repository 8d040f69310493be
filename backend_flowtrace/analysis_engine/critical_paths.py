"""
Critical paths: short risk narratives pointing at transactions worth review.

Rules run in a fixed order (high-value funding, unusual transactions,
mixing) and each contributes at most one path. No re-sorting.
"""

from __future__ import annotations

from typing import Sequence

from backend_flowtrace.analysis_engine.config import DEFAULT_CONFIG, AnalysisConfig
from backend_flowtrace.analysis_engine.models import (
    ActivityPattern,
    ClassifiedTransaction,
    CriticalPath,
    FundingSource,
    PatternKind,
)
from backend_flowtrace.analysis_engine.patterns import DISPERSION_PATTERN


def _high_value_path(
    transactions: Sequence[ClassifiedTransaction],
    funding_sources: Sequence[FundingSource],
    config: AnalysisConfig,
) -> CriticalPath | None:
    high_value = [s for s in funding_sources if s.total_amount > config.high_value_threshold]
    high_value = high_value[: config.high_value_top_n]
    if not high_value:
        return None
    addresses = {s.address for s in high_value}
    evidence = tuple(
        tx.signature for tx in transactions if any(k in addresses for k in tx.account_keys)
    )
    if not evidence:
        return None
    suffix = "s" if len(high_value) > 1 else ""
    return CriticalPath(
        description=f"High-value funding source{suffix}",
        evidence=evidence,
        risk=config.high_value_risk,
    )


def _mixing_path(patterns: Sequence[ActivityPattern], config: AnalysisConfig) -> CriticalPath | None:
    for p in patterns:
        if (
            p.kind == PatternKind.BEHAVIORAL
            and p.name == DISPERSION_PATTERN
            and p.risk > config.mixing_min_pattern_risk
        ):
            return CriticalPath(
                description="Potential mixing pattern detected",
                evidence=p.evidence,
                risk=config.mixing_risk,
            )
    return None


def identify_critical_paths(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    funding_sources: Sequence[FundingSource],
    patterns: Sequence[ActivityPattern],
    unusual_signatures: Sequence[str],
    config: AnalysisConfig = DEFAULT_CONFIG,
) -> list[CriticalPath]:
    """
    Build critical paths for `target`.

    1. Top funding sources above high_value_threshold: every transaction
       touching them, in input order.
    2. Unusual transactions from the clusterer: first unusual_max_evidence.
    3. First fund-dispersion pattern riskier than mixing_min_pattern_risk.
    """
    paths: list[CriticalPath] = []
    high_value = _high_value_path(transactions, funding_sources, config)
    if high_value is not None:
        paths.append(high_value)
    unusual = list(unusual_signatures)
    if unusual:
        paths.append(
            CriticalPath(
                description="Unusual transaction pattern detected",
                evidence=tuple(unusual[: config.unusual_max_evidence]),
                risk=config.unusual_risk,
            )
        )
    mixing = _mixing_path(patterns, config)
    if mixing is not None:
        paths.append(mixing)
    return paths
