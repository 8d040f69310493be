"""
Application settings.

Typed view over the environment (Solana RPC URL, fetch limits, API host/port)
used by the fetch layer, the API server and the CLI tools. The analysis
engine itself takes no settings; its thresholds live in
analysis_engine.config.AnalysisConfig.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from backend_flowtrace.config.env import (
    get_float_env,
    get_int_env,
    get_solana_rpc_url,
    load_flowtrace_env,
)

DEFAULT_SIGNATURE_LIMIT = 50
DEFAULT_FETCH_CONCURRENCY = 8
DEFAULT_REQUEST_TIMEOUT_SEC = 15.0
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8000


@dataclass(frozen=True)
class Settings:
    """Service configuration resolved from env."""

    solana_rpc_url: str
    signature_limit: int = DEFAULT_SIGNATURE_LIMIT
    """Max signatures requested per address (getSignaturesForAddress limit)."""
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    """Max concurrent getTransaction requests."""
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Return the current application settings (read fresh from env on each call)."""
    load_flowtrace_env()
    return Settings(
        solana_rpc_url=get_solana_rpc_url(),
        signature_limit=get_int_env("FLOWTRACE_SIGNATURE_LIMIT", DEFAULT_SIGNATURE_LIMIT),
        fetch_concurrency=get_int_env("FLOWTRACE_FETCH_CONCURRENCY", DEFAULT_FETCH_CONCURRENCY),
        request_timeout_sec=get_float_env("FLOWTRACE_REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC),
        api_host=(os.getenv("API_HOST") or DEFAULT_API_HOST).strip(),
        api_port=get_int_env("API_PORT", DEFAULT_API_PORT),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )
