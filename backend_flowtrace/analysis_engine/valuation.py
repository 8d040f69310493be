"""
Value estimation and direction from instruction data.

Each supported program id maps to a TransferDecoder that turns one
instruction into zero or more transfer legs (source, destination, amount).
A transaction's estimated value is the sum of its leg amounts; its balance
deltas are the per-address signed sums of those legs. Direction relative to
an address follows the sign of that address's delta.

The registry is immutable: with_decoder() returns a new estimator, so no
process-wide state is shared between invocations. Instructions from
programs without a decoder, or with undecodable data, contribute nothing.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

import base58

from backend_flowtrace.analysis_engine.classifier import classify
from backend_flowtrace.analysis_engine.models import ClassifiedTransaction
from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
# System Program instruction discriminators (u32 little-endian)
SYSTEM_TRANSFER = 2
SYSTEM_TRANSFER_WITH_SEED = 11

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass(frozen=True)
class TransferLeg:
    source: str
    destination: str
    amount: float
    """Native units (SOL)."""


TransferDecoder = Callable[[InstructionRecord], list[TransferLeg]]


def _decode_data(data: str) -> bytes | None:
    if not data:
        return None
    try:
        return base58.b58decode(data)
    except ValueError:
        return None


def decode_system_transfer(ix: InstructionRecord) -> list[TransferLeg]:
    """
    Decode System Program Transfer / TransferWithSeed.

    Layout: u32 LE discriminator, u64 LE lamports. Transfer moves
    accounts[0] -> accounts[1]; TransferWithSeed moves accounts[0] -> accounts[2].
    """
    raw = _decode_data(ix.data)
    if raw is None or len(raw) < 12:
        return []
    discriminator = int.from_bytes(raw[0:4], "little")
    lamports = int.from_bytes(raw[4:12], "little")
    if discriminator == SYSTEM_TRANSFER:
        if len(ix.accounts) < 2:
            return []
        source, destination = ix.accounts[0], ix.accounts[1]
    elif discriminator == SYSTEM_TRANSFER_WITH_SEED:
        if len(ix.accounts) < 3:
            return []
        source, destination = ix.accounts[0], ix.accounts[2]
    else:
        return []
    return [TransferLeg(source=source, destination=destination, amount=lamports / LAMPORTS_PER_SOL)]


def encode_system_transfer(lamports: int) -> str:
    """Base58 instruction data for a System Program Transfer of `lamports`."""
    raw = SYSTEM_TRANSFER.to_bytes(4, "little") + int(lamports).to_bytes(8, "little")
    return base58.b58encode(raw).decode("ascii")


DEFAULT_DECODERS: Mapping[str, TransferDecoder] = MappingProxyType({
    SYSTEM_PROGRAM_ID: decode_system_transfer,
})


def _total(legs: Sequence[TransferLeg]) -> float:
    return sum((leg.amount for leg in legs), 0.0)


def _deltas(legs: Sequence[TransferLeg]) -> dict[str, float]:
    """Per-address signed sums of legs; addresses netting to zero are dropped."""
    deltas: dict[str, float] = defaultdict(float)
    for leg in legs:
        deltas[leg.source] -= leg.amount
        deltas[leg.destination] += leg.amount
    return {addr: d for addr, d in deltas.items() if d != 0}


class InstructionValueEstimator:
    """
    Deterministic value / direction estimator backed by per-program decoders.

    Use with_decoder() to support more programs; the instance itself never
    changes after construction.
    """

    def __init__(self, decoders: Mapping[str, TransferDecoder] | None = None) -> None:
        self._decoders: Mapping[str, TransferDecoder] = MappingProxyType(
            dict(DEFAULT_DECODERS if decoders is None else decoders)
        )

    @property
    def supported_programs(self) -> frozenset[str]:
        return frozenset(self._decoders)

    def with_decoder(self, program_id: str, decoder: TransferDecoder) -> "InstructionValueEstimator":
        """Return a new estimator with `decoder` registered for `program_id`."""
        merged = dict(self._decoders)
        merged[program_id] = decoder
        return InstructionValueEstimator(merged)

    def legs(self, tx: TransactionRecord) -> list[TransferLeg]:
        out: list[TransferLeg] = []
        for ix in tx.instructions:
            decoder = self._decoders.get(ix.program_id)
            if decoder is None:
                continue
            out.extend(leg for leg in decoder(ix) if leg.amount > 0)
        return out

    def estimate_value(self, tx: TransactionRecord) -> float:
        """Total value moved by decodable transfers; 0.0 when none decode."""
        return _total(self.legs(tx))

    def balance_deltas(self, tx: TransactionRecord) -> dict[str, float]:
        """Signed net value change per address (positive = received)."""
        return _deltas(self.legs(tx))

    def classify(self, tx: TransactionRecord) -> ClassifiedTransaction:
        legs = self.legs(tx)
        return ClassifiedTransaction(
            record=tx,
            tx_type=classify(tx),
            value=_total(legs),
            deltas=_deltas(legs),
        )


DEFAULT_ESTIMATOR = InstructionValueEstimator()


def estimate_value(tx: TransactionRecord, estimator: InstructionValueEstimator | None = None) -> float:
    return (estimator or DEFAULT_ESTIMATOR).estimate_value(tx)


def classify_transactions(
    records: Iterable[TransactionRecord],
    estimator: InstructionValueEstimator | None = None,
) -> list[ClassifiedTransaction]:
    """Annotate records with type, value and deltas, preserving input order."""
    est = estimator or DEFAULT_ESTIMATOR
    return [est.classify(r) for r in records]
