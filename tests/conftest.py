"""
Pytest fixtures for FlowTrace tests: transaction record builders and the API client.
"""

from __future__ import annotations

from typing import Callable

import pytest

from backend_flowtrace.analysis_engine.valuation import (
    LAMPORTS_PER_SOL,
    SYSTEM_PROGRAM_ID,
    encode_system_transfer,
)
from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord


def build_transfer(
    signature: str,
    source: str,
    destination: str,
    sol: float,
    block_time: int | None = None,
    *,
    extra_keys: tuple[str, ...] = (),
    program_in_keys: bool = True,
) -> TransactionRecord:
    """System Program transfer of `sol` from source to destination."""
    lamports = int(round(sol * LAMPORTS_PER_SOL))
    keys = (source, destination, *extra_keys)
    if program_in_keys:
        keys = keys + (SYSTEM_PROGRAM_ID,)
    return TransactionRecord(
        signature=signature,
        block_time=block_time,
        account_keys=keys,
        instructions=(
            InstructionRecord(
                program_id=SYSTEM_PROGRAM_ID,
                accounts=(source, destination),
                data=encode_system_transfer(lamports),
            ),
        ),
    )


def build_program_call(
    signature: str,
    account_keys: tuple[str, ...],
    program_ids: tuple[str, ...],
    block_time: int | None = None,
    log_messages: tuple[str, ...] = (),
) -> TransactionRecord:
    """Transaction invoking `program_ids` with opaque data (no decodable value)."""
    return TransactionRecord(
        signature=signature,
        block_time=block_time,
        account_keys=account_keys,
        instructions=tuple(InstructionRecord(program_id=p, accounts=account_keys[:1]) for p in program_ids),
        log_messages=log_messages,
    )


@pytest.fixture
def make_transfer() -> Callable[..., TransactionRecord]:
    return build_transfer


@pytest.fixture
def make_program_call() -> Callable[..., TransactionRecord]:
    return build_program_call


@pytest.fixture
def client():
    """FastAPI TestClient over the FlowTrace app; dependency overrides cleared after each test."""
    from fastapi.testclient import TestClient

    from backend_flowtrace.api_server.server import app

    yield TestClient(app)
    app.dependency_overrides.clear()
