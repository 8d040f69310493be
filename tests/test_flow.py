"""
Tests for the flow orchestrator: filters, summaries and the full analyze() run.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from backend_flowtrace.analysis_engine import FlowFilters, TransactionType, analyze
from backend_flowtrace.analysis_engine.classifier import TOKEN_PROGRAM_ID
from backend_flowtrace.analysis_engine.flow import (
    apply_filters,
    build_timeline,
    compute_flows,
    determine_primary_activity,
)
from backend_flowtrace.analysis_engine.models import ClusteringResult, EntityLabel
from backend_flowtrace.analysis_engine.patterns import ENDPOINT_PATTERN, TEMPORAL_PATTERN, VALUE_PATTERN
from backend_flowtrace.analysis_engine.valuation import SYSTEM_PROGRAM_ID, classify_transactions
from backend_flowtrace.analytics import HeuristicClusterer, KnownEntityIdentifier

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
ALICE = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
BOB = "So11111111111111111111111111111111111111112"
DAY = 1_704_067_200  # 2024-01-01T00:00:00Z
HOUR = 3600
NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _funding_scenario(make_transfer):
    """Six 10 SOL transfers ALICE -> TARGET at 14:00-14:20 UTC on two days."""
    times = [DAY + 14 * HOUR, DAY + 14 * HOUR + 600, DAY + 14 * HOUR + 1200]
    times += [t + 24 * HOUR for t in times]
    return [make_transfer(f"sig{i}", ALICE, TARGET, 10.0, t) for i, t in enumerate(times)]


def test_analyze_funding_scenario(make_transfer):
    result = analyze(
        _funding_scenario(make_transfer),
        TARGET,
        entity_identifier=KnownEntityIdentifier(known_entities={}),
        clusterer=HeuristicClusterer(),
        now=NOW,
    )

    assert not result.is_empty
    assert len(result.funding_sources) == 1
    source = result.funding_sources[0]
    assert source.address == ALICE
    assert source.total_amount == 60.0
    assert source.transaction_count == 6
    assert source.confidence == 85
    assert source.first_signature == "sig0"

    assert [p.name for p in result.patterns] == [TEMPORAL_PATTERN, VALUE_PATTERN, ENDPOINT_PATTERN]
    temporal, value, endpoint = result.patterns
    assert temporal.detail.hour == 14
    assert temporal.frequency == 6
    assert value.detail.value == 10.0
    assert value.frequency == 6
    assert value.risk == 20
    assert endpoint.detail.counterparty == ALICE
    assert endpoint.frequency == 6

    assert result.risk_score == 38
    assert result.total_inflow == 60.0
    assert result.total_outflow == 0.0
    assert result.primary_activity == TransactionType.OTHER

    assert len(result.graph.nodes) == 3
    assert result.graph.nodes[0].address == TARGET
    assert result.graph.nodes[0].is_target
    assert len(result.graph.edges) == 12

    assert [p.description for p in result.critical_paths] == ["High-value funding source"]
    assert result.critical_paths[0].evidence == tuple(f"sig{i}" for i in range(6))

    assert [c.cluster_type for c in result.clusters] == ["pattern", "entity"]
    assert result.unusual_transactions == ()
    assert result.high_value_transactions == ()

    assert [b.date for b in result.timeline] == [date(2024, 1, 1), date(2024, 1, 2)]
    assert all(b.total_transactions == 3 for b in result.timeline)
    assert all(b.volume == 30.0 for b in result.timeline)

    assert result.metrics.total_transactions == 6
    assert result.metrics.unique_addresses == 3
    assert result.metrics.total_volume == 60.0
    assert result.metrics.risk_score == 38
    assert result.analyzed_at == NOW


def test_analyze_is_repeatable(make_transfer):
    records = _funding_scenario(make_transfer)
    first = analyze(records, TARGET, now=NOW)
    second = analyze(records, TARGET, now=NOW)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_empty_input_returns_empty_result():
    result = analyze([], TARGET, now=NOW)
    assert result.is_empty
    assert result.risk_score == 0
    assert result.funding_sources == ()
    assert result.patterns == ()
    assert result.graph.nodes == ()
    assert result.metrics.total_volume == 0.0


def test_everything_filtered_out_returns_empty_result(make_transfer):
    records = _funding_scenario(make_transfer)
    result = analyze(records, TARGET, FlowFilters(min_amount=100.0), now=NOW)
    assert result.is_empty
    assert result.total_inflow == 0.0
    assert result.critical_paths == ()


def test_empty_target_raises():
    with pytest.raises(ValueError):
        analyze([], "  ")


def test_collaborators_merged_unmodified(make_transfer):
    label = EntityLabel(address=ALICE, name="Friend", entity_type="other", confidence=90)
    identifier = MagicMock()
    identifier.identify_entities.return_value = [label]
    clusterer = MagicMock()
    clusterer.cluster_transactions.return_value = ClusteringResult(
        unusual_transactions=("sig1", "sig2"),
        high_value_transactions=("sig0",),
    )

    result = analyze(
        _funding_scenario(make_transfer),
        TARGET,
        entity_identifier=identifier,
        clusterer=clusterer,
        now=NOW,
    )

    assert result.entity_labels == (label,)
    assert result.unusual_transactions == ("sig1", "sig2")
    assert result.high_value_transactions == ("sig0",)
    assert result.metrics.unusual_transactions_count == 2
    assert result.critical_paths[1].description == "Unusual transaction pattern detected"
    identifier.identify_entities.assert_called_once()
    args, _ = clusterer.cluster_transactions.call_args
    assert len(args[0]) == 6
    assert args[1] == TARGET


def test_collaborators_skipped_when_none(make_transfer):
    result = analyze(_funding_scenario(make_transfer), TARGET, now=NOW)
    assert result.entity_labels == ()
    assert result.clusters == ()
    assert result.metrics.unusual_transactions_count == 0


def test_date_filters_inclusive_and_naive_as_utc(make_transfer):
    txs = classify_transactions([
        make_transfer("early", ALICE, TARGET, 1.0, DAY),
        make_transfer("mid", ALICE, TARGET, 1.0, DAY + HOUR),
        make_transfer("late", ALICE, TARGET, 1.0, DAY + 2 * HOUR),
        make_transfer("undated", ALICE, TARGET, 1.0),
    ])
    filters = FlowFilters(
        start_date=datetime(2024, 1, 1, 1, 0),
        end_date=datetime(2024, 1, 1, 2, 0, tzinfo=timezone.utc),
    )
    kept = [tx.signature for tx in apply_filters(txs, filters)]
    assert kept == ["mid", "late", "undated"]


def test_amount_filters(make_transfer):
    txs = classify_transactions([
        make_transfer("small", ALICE, TARGET, 0.5, DAY),
        make_transfer("medium", ALICE, TARGET, 5.0, DAY + 1),
        make_transfer("large", ALICE, TARGET, 50.0, DAY + 2),
    ])
    kept = apply_filters(txs, FlowFilters(min_amount=1.0, max_amount=5.0))
    assert [tx.signature for tx in kept] == ["medium"]


def test_type_and_address_filters(make_transfer, make_program_call):
    records = [
        make_transfer("sol", ALICE, TARGET, 1.0, DAY),
        make_program_call("token", (TARGET, BOB, TOKEN_PROGRAM_ID), (TOKEN_PROGRAM_ID,), DAY + 1),
    ]
    txs = classify_transactions(records)

    by_type = apply_filters(txs, FlowFilters(transaction_types=(TransactionType.TRANSFER,)))
    assert [tx.signature for tx in by_type] == ["token"]

    by_address = apply_filters(txs, FlowFilters(address_filter=ALICE[:6].lower()))
    assert [tx.signature for tx in by_address] == ["sol"]

    assert apply_filters(txs, None) == txs
    assert apply_filters(txs, FlowFilters()) == txs


def test_compute_flows(make_transfer):
    txs = classify_transactions([
        make_transfer("in", ALICE, TARGET, 3.0, DAY),
        make_transfer("out", TARGET, BOB, 1.25, DAY + 1),
        make_transfer("other", ALICE, BOB, 7.0, DAY + 2),
    ])
    assert compute_flows(txs, TARGET) == (3.0, 1.25)


def test_primary_activity_needs_share(make_transfer, make_program_call):
    token = (TOKEN_PROGRAM_ID,)
    records = [make_program_call(f"t{i}", (TARGET, TOKEN_PROGRAM_ID), token, DAY + i) for i in range(2)]
    records += [make_transfer(f"s{i}", ALICE, TARGET, 1.0, DAY + 10 + i) for i in range(3)]
    txs = classify_transactions(records)
    assert determine_primary_activity(txs) == TransactionType.OTHER
    assert determine_primary_activity([]) is None

    mixed = classify_transactions([
        make_program_call("a", (TARGET, TOKEN_PROGRAM_ID), token, DAY),
        make_transfer("b", ALICE, TARGET, 1.0, DAY + 1),
        make_program_call("c", (TARGET, "StakePoo1Program"), ("StakePoo1Program",), DAY + 2),
        make_program_call("d", (TARGET, "Unknown1"), ("Unknown1",), DAY + 3),
        make_program_call("e", (TARGET, "Unknown2"), ("Unknown2",), DAY + 4),
        make_program_call("f", (TARGET, TOKEN_PROGRAM_ID), token, DAY + 5),
    ])
    # other 3/6 >= 40%
    assert determine_primary_activity(mixed) == TransactionType.OTHER


def test_primary_activity_below_share_is_none(make_transfer, make_program_call):
    txs = classify_transactions([
        make_program_call("a", (TARGET, TOKEN_PROGRAM_ID), (TOKEN_PROGRAM_ID,), DAY),
        make_program_call("b", (TARGET, "StakePoo1Program"), ("StakePoo1Program",), DAY + 1),
        make_transfer("c", ALICE, TARGET, 1.0, DAY + 2),
    ])
    assert determine_primary_activity(txs) is None


def test_timeline_per_utc_day(make_transfer):
    txs = classify_transactions([
        make_transfer("d2", ALICE, TARGET, 2.0, DAY + 24 * HOUR + 5),
        make_transfer("d1a", ALICE, TARGET, 1.0, DAY + 23 * HOUR),
        make_transfer("d1b", TARGET, BOB, 0.5, DAY + 23 * HOUR + 3599),
        make_transfer("undated", ALICE, TARGET, 9.0),
    ])
    timeline = build_timeline(txs)
    assert [b.date for b in timeline] == [date(2024, 1, 1), date(2024, 1, 2)]
    assert timeline[0].total_transactions == 2
    assert timeline[0].volume == 1.5
    assert timeline[0].transactions_by_type == {"other": 2}
    assert timeline[1].to_dict()["date"] == "2024-01-02"


def test_result_to_dict_shape(make_transfer):
    report = analyze(_funding_scenario(make_transfer), TARGET, now=NOW).to_dict()
    assert set(report) == {
        "target",
        "graph",
        "wallet_analysis",
        "entity_labels",
        "transaction_clusters",
        "unusual_transactions",
        "high_value_transactions",
        "critical_paths",
        "timeline_data",
        "metrics",
    }
    assert report["wallet_analysis"]["risk_score"] == 38
    assert report["wallet_analysis"]["primary_activity"] == "other"
    assert report["wallet_analysis"]["analysis_timestamp"] == NOW.isoformat()
    assert report["graph"]["nodes"][0]["id"] == TARGET
    assert SYSTEM_PROGRAM_ID in {n["address"] for n in report["graph"]["nodes"]}


def test_default_collaborators_satisfy_protocols():
    from backend_flowtrace.analysis_engine import EntityIdentifier, TransactionClusterer

    assert isinstance(KnownEntityIdentifier(known_entities={}), EntityIdentifier)
    assert isinstance(HeuristicClusterer(), TransactionClusterer)


def test_timeline_bucket_counts_are_read_only(make_transfer):
    bucket = build_timeline(classify_transactions([make_transfer("a", ALICE, TARGET, 1.0, DAY)]))[0]
    assert hash(bucket) == hash(bucket)
    with pytest.raises(TypeError):
        bucket.transactions_by_type["swap"] = 1
