"""
Data models for transaction records handed to the analysis engine.

A TransactionRecord is the unit of work produced by the fetch layer: the
signature, optional block time, the ordered account list, the ordered
instruction list (program id, accounts, opaque base58 data) and optional
log lines. Records are immutable; analysis stages never modify them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from backend_flowtrace.core.exceptions import InvalidTransactionError


@dataclass(frozen=True)
class InstructionRecord:
    """Single instruction with resolved program id and account addresses."""

    program_id: str
    accounts: tuple[str, ...] = ()
    data: str = ""
    """Opaque instruction data (base58, as served by RPC json encoding)."""

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "InstructionRecord":
        """Build from {programId, accounts, data} (camelCase or snake_case)."""
        if not isinstance(item, dict):
            raise InvalidTransactionError("Instruction must be an object")
        program_id = item.get("programId", item.get("program_id")) or ""
        accounts = item.get("accounts") or []
        return cls(
            program_id=str(program_id),
            accounts=tuple(str(a) for a in accounts),
            data=str(item.get("data") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "programId": self.program_id,
            "accounts": list(self.accounts),
            "data": self.data,
        }


@dataclass(frozen=True)
class TransactionRecord:
    """
    Fetched Solana transaction detail.

    Signature is unique within one analysis run. Records with no block_time
    are treated as unordered and sort after dated ones.
    """

    signature: str
    block_time: int | None = None
    """Unix timestamp (seconds); None if not available."""
    account_keys: tuple[str, ...] = ()
    instructions: tuple[InstructionRecord, ...] = ()
    log_messages: tuple[str, ...] = ()
    slot: int | None = None

    @property
    def timestamp(self) -> datetime | None:
        """Block time as an aware UTC datetime; None when undated."""
        if self.block_time is None:
            return None
        return datetime.fromtimestamp(self.block_time, tz=timezone.utc)

    @property
    def program_ids(self) -> tuple[str, ...]:
        return tuple(ix.program_id for ix in self.instructions)

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "TransactionRecord":
        """
        Build from the fetch-layer JSON shape.

        Accepts camelCase (signature, blockTime, accountKeys, instructions,
        logMessages) or snake_case keys. Raises InvalidTransactionError when
        the signature is missing.
        """
        if not isinstance(item, dict):
            raise InvalidTransactionError("Transaction record must be an object")
        signature = str(item.get("signature") or "").strip()
        if not signature:
            raise InvalidTransactionError("Transaction record is missing a signature")
        block_time = item.get("blockTime", item.get("block_time"))
        slot = item.get("slot")
        keys = item.get("accountKeys", item.get("account_keys")) or []
        instructions = item.get("instructions") or []
        logs = item.get("logMessages", item.get("log_messages")) or []
        try:
            return cls(
                signature=signature,
                block_time=int(block_time) if block_time is not None else None,
                account_keys=tuple(str(k) for k in keys if k),
                instructions=tuple(InstructionRecord.from_dict(ix) for ix in instructions),
                log_messages=tuple(str(line) for line in logs),
                slot=int(slot) if slot is not None else None,
            )
        except (TypeError, ValueError) as e:
            raise InvalidTransactionError(f"Malformed transaction {signature}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON shape accepted by from_dict."""
        return {
            "signature": self.signature,
            "blockTime": self.block_time,
            "slot": self.slot,
            "accountKeys": list(self.account_keys),
            "instructions": [ix.to_dict() for ix in self.instructions],
            "logMessages": list(self.log_messages),
        }
