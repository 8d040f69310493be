"""
Tests for the transaction classifier (program ids -> transfer / swap / nft / defi / other).
"""

from __future__ import annotations

from backend_flowtrace.analysis_engine.classifier import (
    JUPITER_PROGRAM_ID,
    METAPLEX_PROGRAM_ID,
    RAYDIUM_AMM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    classify,
)
from backend_flowtrace.analysis_engine.models import TransactionType
from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord

WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"


def _tx(*program_ids: str) -> TransactionRecord:
    return TransactionRecord(
        signature="sig",
        account_keys=(WALLET,),
        instructions=tuple(InstructionRecord(program_id=p) for p in program_ids),
    )


def test_no_instructions_is_other():
    assert classify(_tx()) == TransactionType.OTHER


def test_unknown_program_is_other():
    assert classify(_tx("11111111111111111111111111111111")) == TransactionType.OTHER


def test_token_program_is_transfer():
    assert classify(_tx(TOKEN_PROGRAM_ID)) == TransactionType.TRANSFER


def test_swap_programs():
    assert classify(_tx(RAYDIUM_AMM_PROGRAM_ID)) == TransactionType.SWAP
    assert classify(_tx(JUPITER_PROGRAM_ID, TOKEN_PROGRAM_ID)) == TransactionType.SWAP


def test_nft_wins_over_swap_and_token():
    """Priority order: nft > swap > transfer."""
    assert classify(_tx(TOKEN_PROGRAM_ID, RAYDIUM_AMM_PROGRAM_ID, METAPLEX_PROGRAM_ID)) == TransactionType.NFT


def test_pool_or_stake_substring_is_defi_case_insensitive():
    assert classify(_tx("MyPOOLProgram1111")) == TransactionType.DEFI
    assert classify(_tx("Stake11111111111111111111111111111111111111")) == TransactionType.DEFI


def test_token_wins_over_defi_substring():
    assert classify(_tx("somepool", TOKEN_PROGRAM_ID)) == TransactionType.TRANSFER
