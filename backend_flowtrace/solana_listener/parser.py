"""
Solana transaction parser — raw getTransaction payloads to TransactionRecord.

Resolves account keys (legacy and versioned transactions, including
meta.loadedAddresses), maps instruction programIdIndex / account indexes to
base58 addresses, and carries instruction data through untouched. Purely
structural; value and direction are derived later by the analysis engine.
"""

from __future__ import annotations

from typing import Any

from backend_flowtrace.flowtrace_logging import get_logger
from backend_flowtrace.solana_listener.models import InstructionRecord, TransactionRecord

logger = get_logger(__name__)


def _get_account_keys(
    message: dict[str, Any],
    meta: dict[str, Any] | None = None,
) -> list[str]:
    """
    Resolve accountKeys to a list of base58 strings (handles json vs jsonParsed).
    For versioned transactions, appends meta.loadedAddresses (writable + readonly).
    """
    keys = message.get("accountKeys") or message.get("staticAccountKeys") or []
    out: list[str] = []
    for k in keys:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict):
            out.append(str(k.get("pubkey") or ""))
    loaded = (meta or {}).get("loadedAddresses") or {}
    for role in ("writable", "readonly"):
        for addr in loaded.get(role) or []:
            out.append(addr if isinstance(addr, str) else str(addr.get("pubkey", "")))
    return out


def _get_program_id(account_keys: list[str], instruction: dict[str, Any]) -> str | None:
    """Resolve program id for an instruction (programId, or programIdIndex -> account key)."""
    pid = instruction.get("programId")
    if isinstance(pid, str) and pid:
        return pid
    idx = instruction.get("programIdIndex")
    if idx is None or not (0 <= idx < len(account_keys)):
        return None
    return account_keys[idx]


def _resolve_accounts(account_keys: list[str], instruction: dict[str, Any]) -> tuple[str, ...]:
    """Instruction accounts as addresses; index entries are resolved against account_keys."""
    out: list[str] = []
    for acc in instruction.get("accounts") or []:
        if isinstance(acc, str):
            out.append(acc)
        elif isinstance(acc, int) and 0 <= acc < len(account_keys):
            out.append(account_keys[acc])
    return tuple(out)


def _get_message_and_meta(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Return (transaction.message, meta) from getTransaction-style result."""
    tx_obj = raw.get("transaction")
    if not tx_obj or not isinstance(tx_obj, dict):
        return None, None
    message = tx_obj.get("message")
    if not message or not isinstance(message, dict):
        return None, None
    meta = raw.get("meta")
    if not isinstance(meta, dict):
        meta = None
    return message, meta


def _get_signature(raw: dict[str, Any], fallback: str | None) -> str | None:
    sigs = (raw.get("transaction") or {}).get("signatures") or []
    if sigs and isinstance(sigs[0], str):
        return sigs[0]
    return fallback


def parse_transaction(raw: dict[str, Any], signature: str | None = None) -> TransactionRecord | None:
    """
    Parse a single raw getTransaction-style result into a TransactionRecord.

    Top-level instructions come first, followed by inner (CPI) instructions
    in block order. Returns None if the payload cannot be parsed (missing
    message, no signature, wrongly typed fields such as a non-numeric
    blockTime or a non-object inner instruction block).
    """
    if not isinstance(raw, dict):
        return None
    message, meta = _get_message_and_meta(raw)
    if not message:
        return None
    sig = _get_signature(raw, signature)
    if not sig:
        return None

    try:
        return _build_record(message, meta, sig, raw)
    except (AttributeError, TypeError, ValueError) as e:
        logger.debug("parser_tx_malformed", signature=sig[:16], error=str(e))
        return None


def _build_record(
    message: dict[str, Any],
    meta: dict[str, Any] | None,
    sig: str,
    raw: dict[str, Any],
) -> TransactionRecord:
    """Raises AttributeError / TypeError / ValueError on wrongly typed fields."""
    account_keys = _get_account_keys(message, meta)
    raw_instructions = list(message.get("instructions") or [])
    for inner_block in (meta or {}).get("innerInstructions") or []:
        raw_instructions.extend(inner_block.get("instructions") or [])

    instructions: list[InstructionRecord] = []
    for ix in raw_instructions:
        if not isinstance(ix, dict):
            continue
        program_id = _get_program_id(account_keys, ix)
        if program_id is None:
            continue
        data = ix.get("data")
        instructions.append(
            InstructionRecord(
                program_id=program_id,
                accounts=_resolve_accounts(account_keys, ix),
                data=data if isinstance(data, str) else "",
            )
        )

    block_time = raw.get("blockTime")
    slot = raw.get("slot")
    return TransactionRecord(
        signature=sig,
        block_time=int(block_time) if block_time is not None else None,
        account_keys=tuple(k for k in account_keys if k),
        instructions=tuple(instructions),
        log_messages=tuple((meta or {}).get("logMessages") or ()),
        slot=int(slot) if slot is not None else None,
    )


def parse_batch(raw_list: list[dict[str, Any]]) -> list[TransactionRecord]:
    """
    Parse a list of raw getTransaction-style results.

    Skips unparseable items; returned list may be shorter than input.
    """
    records: list[TransactionRecord] = []
    for raw in raw_list:
        rec = parse_transaction(raw)
        if rec is None:
            logger.debug("parser_tx_skipped")
            continue
        records.append(rec)
    return records
