"""
Transaction classifier: semantic type from the programs a transaction touched.

Priority order nft > swap > transfer > defi; no match is other.
"""

from __future__ import annotations

from backend_flowtrace.analysis_engine.models import TransactionType
from backend_flowtrace.solana_listener.models import TransactionRecord

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
METAPLEX_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
RAYDIUM_AMM_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
SERUM_DEX_PROGRAM_ID = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
JUPITER_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"

NFT_PROGRAM_IDS = frozenset({METAPLEX_PROGRAM_ID})
SWAP_PROGRAM_IDS = frozenset({RAYDIUM_AMM_PROGRAM_ID, SERUM_DEX_PROGRAM_ID, JUPITER_PROGRAM_ID})
TOKEN_PROGRAM_IDS = frozenset({TOKEN_PROGRAM_ID})
DEFI_ID_MARKERS = ("pool", "stake")


def classify(tx: TransactionRecord) -> TransactionType:
    """Map a transaction to transfer / swap / nft / defi / other from its program ids."""
    program_ids = set(tx.program_ids)
    if not program_ids:
        return TransactionType.OTHER
    if program_ids & NFT_PROGRAM_IDS:
        return TransactionType.NFT
    if program_ids & SWAP_PROGRAM_IDS:
        return TransactionType.SWAP
    if program_ids & TOKEN_PROGRAM_IDS:
        return TransactionType.TRANSFER
    if any(marker in pid.lower() for pid in program_ids for marker in DEFI_ID_MARKERS):
        return TransactionType.DEFI
    return TransactionType.OTHER
