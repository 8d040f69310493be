"""
Tests for the interaction graph builder.
"""

from __future__ import annotations

from datetime import datetime, timezone

from backend_flowtrace.analysis_engine.graph import build_graph, edge_id
from backend_flowtrace.analysis_engine.models import NodeRole
from backend_flowtrace.analysis_engine.valuation import SYSTEM_PROGRAM_ID, classify_transactions
from backend_flowtrace.solana_listener.models import TransactionRecord

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
ALICE = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
BOB = "So11111111111111111111111111111111111111112"
NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_nodes_and_edges(make_transfer):
    txs = classify_transactions([
        make_transfer("s1", ALICE, TARGET, 1.0, 1_700_000_000),
        make_transfer("s2", TARGET, BOB, 1.0, 1_700_000_100),
        make_transfer("s3", ALICE, TARGET, 1.0, 1_700_000_200),
    ])
    graph = build_graph(txs, TARGET, target_balance=12.5, now=NOW)

    # target + ALICE + BOB + system program
    assert len(graph.nodes) == 4
    target = graph.nodes[0]
    assert target.address == TARGET
    assert target.is_target
    assert target.balance == 12.5
    assert target.transaction_count == 3
    assert target.last_activity == datetime.fromtimestamp(1_700_000_200, tz=timezone.utc)

    alice = graph.node(ALICE)
    assert alice.role == NodeRole.WALLET
    assert alice.transaction_count == 2
    assert alice.last_activity == datetime.fromtimestamp(1_700_000_200, tz=timezone.utc)
    assert graph.node(SYSTEM_PROGRAM_ID).role == NodeRole.PROGRAM
    assert graph.node(SYSTEM_PROGRAM_ID).transaction_count == 3

    # one edge per (transaction, non-target account): 3 txs x 2 accounts
    assert len(graph.edges) == 6
    assert all(e.source == TARGET for e in graph.edges)
    assert graph.edges[0].id == edge_id(TARGET, ALICE, "s1") == f"{TARGET}|{ALICE}|s1"
    assert len({e.id for e in graph.edges}) == len(graph.edges)


def test_duplicate_accounts_within_tx_counted_once():
    tx = TransactionRecord(signature="s1", block_time=1_700_000_000, account_keys=(ALICE, ALICE, TARGET))
    graph = build_graph(classify_transactions([tx]), TARGET, now=NOW)
    assert graph.node(ALICE).transaction_count == 1
    assert len(graph.edges) == 1


def test_undated_transactions_use_now(make_transfer):
    graph = build_graph(classify_transactions([make_transfer("s1", ALICE, TARGET, 1.0)]), TARGET, now=NOW)
    assert graph.node(ALICE).last_activity == NOW
    assert graph.nodes[0].last_activity == NOW
    assert all(e.timestamp == NOW for e in graph.edges)


def test_transactions_without_account_keys_are_skipped():
    tx = TransactionRecord(signature="empty", block_time=1_700_000_000)
    graph = build_graph(classify_transactions([tx]), TARGET, now=NOW)
    assert len(graph.nodes) == 1
    assert graph.edges == ()
    assert graph.nodes[0].transaction_count == 0


def test_graph_to_dict(make_transfer):
    graph = build_graph(classify_transactions([make_transfer("s1", ALICE, TARGET, 1.0, 1_700_000_000)]), TARGET, now=NOW)
    data = graph.to_dict()
    assert data["nodes"][0]["is_target"] is True
    assert data["edges"][0]["signature"] == "s1"
    assert data["edges"][0]["timestamp"].startswith("2023-11-14")
