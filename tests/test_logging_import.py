"""
Test that flowtrace_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from flowtrace_logging and use the logger."""
    from backend_flowtrace.flowtrace_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_bind_wallet_logger():
    """bind_wallet returns a logger usable with extra context."""
    from backend_flowtrace.flowtrace_logging import bind_wallet

    logger = bind_wallet("9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka")
    logger.info("test_bound_message", count=1)


def test_short_truncates_long_values():
    from backend_flowtrace.flowtrace_logging.logger import short

    assert short("abc") == "abc"
    assert short("a" * 20) == "a" * 16 + "..."
    assert short(None) == ""


def test_configure_structlog_switches_renderer():
    """Console renderer can be selected and the JSON renderer restored."""
    import structlog

    from backend_flowtrace.flowtrace_logging import configure_structlog

    try:
        configure_structlog("DEBUG", "console")
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
    finally:
        configure_structlog("INFO", "json")
    assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
