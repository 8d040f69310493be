"""
Structured logging for Backend FlowTrace.

JSON logs with timestamp, wallet_id, event_type. Use get_logger() in all
modules for aggregation-friendly output.
"""

from backend_flowtrace.flowtrace_logging.logger import bind_wallet, configure_structlog, get_logger

__all__ = ["bind_wallet", "configure_structlog", "get_logger"]
