"""Wallet address validation."""

from __future__ import annotations

from solders.pubkey import Pubkey

from backend_flowtrace.core.exceptions import InvalidAddressError


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a valid Solana wallet (Pubkey) address."""
    try:
        Pubkey.from_string(w.strip())
        return True
    except Exception:
        return False


def require_valid_wallet(w: str | None) -> str:
    """Return the stripped address or raise InvalidAddressError."""
    addr = (w or "").strip()
    if not addr:
        raise InvalidAddressError("Wallet address must be non-empty")
    if not is_valid_wallet(addr):
        raise InvalidAddressError(f"Invalid Solana wallet address: {addr}")
    return addr
