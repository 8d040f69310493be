"""
Entity labelling for FlowTrace analytics.

Labels counterparties of the target wallet: first against a known-entity
dataset (known_entities.json, overridable via KNOWN_ENTITIES_PATH), then by
transaction-pattern heuristics for unknown addresses with enough activity
(likely exchange, DEX contract, generic program). Implements the
EntityIdentifier interface used by the flow orchestrator.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Sequence

from backend_flowtrace.analysis_engine.classifier import TOKEN_PROGRAM_ID
from backend_flowtrace.analysis_engine.models import ClassifiedTransaction, EntityLabel
from backend_flowtrace.flowtrace_logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENTITIES_PATH = Path(__file__).resolve().parent / "known_entities.json"

MIN_TRANSACTIONS_FOR_PATTERN = 3
PATTERN_SCORE_THRESHOLD = 70
CONTRACT_CONFIDENCE = 80

# (more than N transactions, score)
VOLUME_TIERS = ((50, 20), (20, 10), (10, 5))
# (more than N distinct counterparties, score)
COUNTERPARTY_TIERS = ((10, 25), (5, 15))

DEX_PROGRAM_INVOKED_SCORE = 40
DEX_TOKEN_SWAP_SCORE = 30
DEX_LOG_KEYWORD_SCORE = 30
DEX_LOG_KEYWORDS = ("swap", "pool", "amm", "dex", "exchange", "liquidity")


def _load_known_entities() -> dict[str, EntityLabel]:
    """Load the known-entity dataset keyed by address. Returns empty dict on failure."""
    path_str = os.getenv("KNOWN_ENTITIES_PATH", "").strip() or str(DEFAULT_ENTITIES_PATH)
    path = Path(path_str)
    if not path.is_file():
        logger.debug("entity_dataset_missing", path=path_str)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("entity_dataset_load_failed", path=path_str, error=str(e))
        return {}
    if not isinstance(data, list):
        return {}
    out: dict[str, EntityLabel] = {}
    for item in data:
        label = _label_from_dict(item)
        if label is not None:
            out[label.address] = label
    return out


def _label_from_dict(item: Any) -> EntityLabel | None:
    if not isinstance(item, dict):
        return None
    address = str(item.get("address") or "").strip()
    if not address:
        return None
    return EntityLabel(
        address=address,
        name=str(item.get("name") or address[:8]),
        entity_type=str(item.get("type") or "other"),
        confidence=int(item.get("confidence", 100)),
        description=item.get("description"),
        tags=tuple(item.get("tags") or ()),
        detection_method="dataset",
    )


def _tier_score(value: int, tiers: tuple[tuple[int, int], ...]) -> int:
    for bound, score in tiers:
        if value > bound:
            return score
    return 0


def exchange_score(address: str, txs: Sequence[ClassifiedTransaction]) -> int:
    """Volume plus breadth of counterparties on the receiving and sending side, capped at 100."""
    score = _tier_score(len(txs), VOLUME_TIERS)
    incoming: set[str] = set()
    outgoing: set[str] = set()
    for tx in txs:
        others = (k for k in tx.account_keys if k != address)
        if tx.is_incoming(address):
            incoming.update(others)
        elif tx.is_outgoing(address):
            outgoing.update(others)
    score += _tier_score(len(incoming), COUNTERPARTY_TIERS)
    score += _tier_score(len(outgoing), COUNTERPARTY_TIERS)
    return min(score, 100)


def _invoked_as_program(address: str, txs: Sequence[ClassifiedTransaction]) -> bool:
    return any(ix.program_id == address for tx in txs for ix in tx.instructions)


def dex_score(address: str, txs: Sequence[ClassifiedTransaction]) -> int:
    """Program invocation, multi-token-transfer transactions and DEX log keywords, capped at 100."""
    score = 0
    if _invoked_as_program(address, txs):
        score += DEX_PROGRAM_INVOKED_SCORE
    if any(sum(1 for ix in tx.instructions if ix.program_id == TOKEN_PROGRAM_ID) >= 2 for tx in txs):
        score += DEX_TOKEN_SWAP_SCORE
    if any(
        keyword in line.lower()
        for tx in txs
        for line in tx.record.log_messages
        for keyword in DEX_LOG_KEYWORDS
    ):
        score += DEX_LOG_KEYWORD_SCORE
    return min(score, 100)


class KnownEntityIdentifier:
    """Dataset lookup followed by pattern detection for unknown addresses."""

    def __init__(self, known_entities: dict[str, EntityLabel] | None = None) -> None:
        self._known = dict(known_entities) if known_entities is not None else _load_known_entities()

    def detect_entity(
        self,
        address: str,
        transactions: Sequence[ClassifiedTransaction],
    ) -> EntityLabel | None:
        txs = [tx for tx in transactions if address in tx.account_keys]
        if len(txs) < MIN_TRANSACTIONS_FOR_PATTERN:
            return None
        score = exchange_score(address, txs)
        if score > PATTERN_SCORE_THRESHOLD:
            return EntityLabel(
                address=address,
                name="Likely Exchange",
                entity_type="exchange",
                confidence=score,
                description="Detected based on transaction patterns typical of exchanges",
                tags=("exchange", "auto-detected"),
                detection_method="pattern",
            )
        score = dex_score(address, txs)
        if score > PATTERN_SCORE_THRESHOLD:
            return EntityLabel(
                address=address,
                name="DEX Contract",
                entity_type="dex",
                confidence=score,
                description="Detected based on patterns typical of decentralized exchanges",
                tags=("dex", "swap", "auto-detected"),
                detection_method="pattern",
            )
        if _invoked_as_program(address, txs):
            return EntityLabel(
                address=address,
                name="Smart Contract",
                entity_type="contract",
                confidence=CONTRACT_CONFIDENCE,
                description="Detected as a likely smart contract or program",
                tags=("program", "contract", "auto-detected"),
                detection_method="pattern",
            )
        return None

    def identify_entities(
        self,
        transactions: Sequence[ClassifiedTransaction],
        target: str,
    ) -> list[EntityLabel]:
        addresses: dict[str, None] = {}
        for tx in transactions:
            for key in tx.account_keys:
                if key and key != target:
                    addresses.setdefault(key, None)

        labels: list[EntityLabel] = []
        for address in addresses:
            known = self._known.get(address)
            if known is not None:
                labels.append(known)
                continue
            detected = self.detect_entity(address, transactions)
            if detected is not None:
                labels.append(detected)
        logger.debug("entities_identified", wallet_id=target, labels=len(labels))
        return labels
