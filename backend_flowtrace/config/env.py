"""
Environment variable loading for FlowTrace.

- SOLANA_NETWORK: devnet | mainnet (default: mainnet)
- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (used for the RPC URL when SOLANA_RPC_URL is unset)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_flowtrace/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"


def load_flowtrace_env() -> None:
    """Load .env from project root. Safe to call multiple times; missing file is ignored."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH)


def get_solana_network() -> str:
    """Return SOLANA_NETWORK from env: devnet | mainnet. Default: mainnet."""
    load_flowtrace_env()
    raw = (os.getenv("SOLANA_NETWORK") or os.getenv("SOLANA_CLUSTER") or "mainnet").strip().lower()
    if raw == "devnet":
        return "devnet"
    return "mainnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > devnet/mainnet default.
    """
    load_flowtrace_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    network = get_solana_network()
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    if key:
        if network == "devnet":
            return HELIUS_DEVNET_URL_TEMPLATE.format(key=key)
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return DEVNET_RPC_URL if network == "devnet" else MAINNET_RPC_URL


def get_int_env(name: str, default: int) -> int:
    """Read a positive int from env; fall back to default on missing or bad values."""
    load_flowtrace_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_float_env(name: str, default: float) -> float:
    """Read a positive float from env; fall back to default on missing or bad values."""
    load_flowtrace_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def mask_rpc_url(rpc: str) -> str:
    """Mask the API key in an RPC URL for logging."""
    if "api-key=" in rpc:
        return rpc.split("api-key=")[0] + "api-key=***"
    return rpc
