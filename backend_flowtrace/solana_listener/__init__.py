"""
Solana listener package — transaction record models and RPC payload parsing.

Turns getTransaction responses into immutable TransactionRecord values that
the analysis engine consumes.
"""

from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord
from backend_flowtrace.solana_listener.parser import parse_batch, parse_transaction

__all__ = [
    "InstructionRecord",
    "TransactionRecord",
    "parse_batch",
    "parse_transaction",
]
