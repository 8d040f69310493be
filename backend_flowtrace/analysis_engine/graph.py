"""
Interaction graph: target-anchored nodes and edges from transactions.

Nodes are the target plus every other account seen in a transaction's
account list. Edges go target -> account, one per (transaction, distinct
account). Counts and last-activity are accumulated per call; the returned
graph is immutable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from backend_flowtrace.analysis_engine.models import (
    ClassifiedTransaction,
    GraphEdge,
    GraphNode,
    InteractionGraph,
    NodeRole,
)
from backend_flowtrace.flowtrace_logging import get_logger

logger = get_logger(__name__)


def edge_id(target: str, account: str, signature: str) -> str:
    return f"{target}|{account}|{signature}"


def _distinct(keys: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for k in keys:
        if k and k not in seen:
            seen.add(k)
            out.append(k)
    return out


def build_graph(
    transactions: Sequence[ClassifiedTransaction],
    target: str,
    *,
    target_balance: float | None = None,
    now: datetime | None = None,
) -> InteractionGraph:
    """
    Build the interaction graph for `target`.

    For each transaction with a non-empty account list, each distinct
    account other than the target becomes a node on first sight (role
    program when it is a program id of that transaction, else wallet) and
    gets one edge. Repeated sightings increment transaction_count and move
    last_activity forward. Undated transactions use `now`.

    Args:
        transactions: Classified transactions (order preserved for edges).
        target: Address the graph is anchored at.
        target_balance: Known balance of the target, if any.
        now: Timestamp for undated transactions; defaults to current UTC time.

    Returns:
        InteractionGraph with the target node first.
    """
    now = now or datetime.now(timezone.utc)
    target_count = 0
    target_last: datetime | None = None
    # address -> [role, transaction_count, last_activity]
    nodes: dict[str, list] = {}
    edges: list[GraphEdge] = []

    for tx in transactions:
        keys = _distinct(tx.account_keys)
        if not keys:
            continue
        ts = tx.timestamp or now
        if target in keys:
            target_count += 1
            if tx.timestamp is not None and (target_last is None or tx.timestamp > target_last):
                target_last = tx.timestamp
        programs = set(tx.record.program_ids)
        for account in keys:
            if account == target:
                continue
            entry = nodes.get(account)
            if entry is None:
                role = NodeRole.PROGRAM if account in programs else NodeRole.WALLET
                nodes[account] = [role, 1, ts]
            else:
                entry[1] += 1
                if ts > entry[2]:
                    entry[2] = ts
            edges.append(
                GraphEdge(
                    id=edge_id(target, account, tx.signature),
                    source=target,
                    target=account,
                    tx_type=tx.tx_type,
                    signature=tx.signature,
                    timestamp=ts,
                )
            )

    target_node = GraphNode(
        address=target,
        role=NodeRole.WALLET,
        transaction_count=target_count,
        last_activity=target_last or now,
        balance=target_balance,
        is_target=True,
    )
    other_nodes = [
        GraphNode(address=addr, role=role, transaction_count=count, last_activity=last)
        for addr, (role, count, last) in nodes.items()
    ]
    logger.debug(
        "interaction_graph_built",
        wallet_id=target,
        nodes=len(other_nodes) + 1,
        edges=len(edges),
    )
    return InteractionGraph(nodes=(target_node, *other_nodes), edges=tuple(edges))
