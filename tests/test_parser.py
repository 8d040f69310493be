"""
Tests for the Solana transaction parser and TransactionRecord models.

Raw payloads follow the getTransaction json encoding: message.accountKeys,
instructions with programIdIndex / account indexes, meta.loadedAddresses,
meta.innerInstructions and meta.logMessages.
"""

from __future__ import annotations

import pytest

from backend_flowtrace.analysis_engine.valuation import SYSTEM_PROGRAM_ID, encode_system_transfer
from backend_flowtrace.core.exceptions import InvalidTransactionError
from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord
from backend_flowtrace.solana_listener.parser import parse_batch, parse_transaction

SENDER = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
LOADED = "So11111111111111111111111111111111111111112"
TOKEN = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def _raw_tx(signature: str = "sig1", **meta_extra) -> dict:
    meta = {"err": None, "logMessages": ["Program log: hello"]}
    meta.update(meta_extra)
    return {
        "slot": 123,
        "blockTime": 1_700_000_000,
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": [SENDER, TARGET, SYSTEM_PROGRAM_ID],
                "instructions": [
                    {"programIdIndex": 2, "accounts": [0, 1], "data": encode_system_transfer(1_000_000_000)},
                ],
            },
        },
        "meta": meta,
    }


def test_parse_transaction_resolves_indexes():
    rec = parse_transaction(_raw_tx())
    assert rec is not None
    assert rec.signature == "sig1"
    assert rec.block_time == 1_700_000_000
    assert rec.slot == 123
    assert rec.account_keys == (SENDER, TARGET, SYSTEM_PROGRAM_ID)
    assert len(rec.instructions) == 1
    ix = rec.instructions[0]
    assert ix.program_id == SYSTEM_PROGRAM_ID
    assert ix.accounts == (SENDER, TARGET)
    assert ix.data == encode_system_transfer(1_000_000_000)
    assert rec.log_messages == ("Program log: hello",)


def test_parse_transaction_appends_loaded_addresses():
    rec = parse_transaction(_raw_tx(loadedAddresses={"writable": [LOADED], "readonly": []}))
    assert rec.account_keys[-1] == LOADED


def test_parse_transaction_includes_inner_instructions():
    inner = [{"index": 0, "instructions": [{"programIdIndex": 3, "accounts": [1], "data": ""}]}]
    raw = _raw_tx(innerInstructions=inner, loadedAddresses={"writable": [], "readonly": [TOKEN]})
    rec = parse_transaction(raw)
    assert [ix.program_id for ix in rec.instructions] == [SYSTEM_PROGRAM_ID, TOKEN]
    assert rec.instructions[1].accounts == (TARGET,)


def test_parse_transaction_json_parsed_shape():
    raw = _raw_tx()
    raw["transaction"]["message"]["accountKeys"] = [{"pubkey": SENDER}, {"pubkey": TARGET}, {"pubkey": SYSTEM_PROGRAM_ID}]
    raw["transaction"]["message"]["instructions"] = [
        {"programId": SYSTEM_PROGRAM_ID, "accounts": [SENDER, TARGET], "data": "3Bxs4h24hBtQy9rw"},
    ]
    rec = parse_transaction(raw)
    assert rec.account_keys == (SENDER, TARGET, SYSTEM_PROGRAM_ID)
    assert rec.instructions[0].accounts == (SENDER, TARGET)


def test_parse_transaction_signature_fallback():
    raw = _raw_tx()
    raw["transaction"]["signatures"] = []
    assert parse_transaction(raw) is None
    assert parse_transaction(raw, signature="fallback").signature == "fallback"


def test_parse_transaction_missing_message_returns_none():
    assert parse_transaction({"transaction": {}}) is None
    assert parse_transaction({}) is None
    assert parse_transaction("not a dict") is None  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "field, value",
    [("blockTime", "n/a"), ("slot", [1])],
)
def test_parse_transaction_non_numeric_time_returns_none(field, value):
    raw = _raw_tx()
    raw[field] = value
    assert parse_transaction(raw) is None


def test_parse_transaction_non_object_inner_block_returns_none():
    assert parse_transaction(_raw_tx(innerInstructions=[None])) is None


def test_parse_batch_keeps_records_around_malformed_one():
    bad = _raw_tx("bad")
    bad["blockTime"] = "yesterday"
    records = parse_batch([_raw_tx("a"), bad, _raw_tx("b")])
    assert [r.signature for r in records] == ["a", "b"]


def test_parse_batch_skips_unparseable():
    records = parse_batch([_raw_tx("a"), {"transaction": None}, _raw_tx("b")])
    assert [r.signature for r in records] == ["a", "b"]


def test_record_from_dict_camel_case():
    rec = TransactionRecord.from_dict(
        {
            "signature": "s1",
            "blockTime": 1_700_000_000,
            "accountKeys": [SENDER, TARGET],
            "instructions": [{"programId": SYSTEM_PROGRAM_ID, "accounts": [SENDER, TARGET], "data": "abc"}],
            "logMessages": ["line"],
        }
    )
    assert rec.instructions == (InstructionRecord(SYSTEM_PROGRAM_ID, (SENDER, TARGET), "abc"),)
    assert rec.timestamp.year == 2023
    assert TransactionRecord.from_dict(rec.to_dict()) == rec


def test_record_from_dict_snake_case_and_undated():
    rec = TransactionRecord.from_dict({"signature": "s1", "account_keys": [SENDER], "block_time": None})
    assert rec.account_keys == (SENDER,)
    assert rec.block_time is None
    assert rec.timestamp is None


@pytest.mark.parametrize(
    "item",
    [
        {},
        {"signature": ""},
        {"signature": "s1", "blockTime": "not-a-number"},
        {"signature": "s1", "instructions": ["bad"]},
        ["not", "a", "dict"],
    ],
)
def test_record_from_dict_rejects_malformed(item):
    with pytest.raises(InvalidTransactionError):
        TransactionRecord.from_dict(item)
