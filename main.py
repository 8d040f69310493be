"""
Main entrypoint: FlowTrace API server.

Env: SOLANA_RPC_URL (or HELIUS_API_KEY), API_HOST, API_PORT, LOG_LEVEL,
FLOWTRACE_SIGNATURE_LIMIT, FLOWTRACE_FETCH_CONCURRENCY.

Equivalent: uvicorn backend_flowtrace.api_server.app:app --host 0.0.0.0 --port 8000
"""

# Configure structured JSON logging before other imports that may log
from backend_flowtrace.flowtrace_logging import configure_structlog, get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_flowtrace.config.env import mask_rpc_url
    from backend_flowtrace.config.settings import get_settings

    settings = get_settings()
    configure_structlog(settings.log_level)

    from backend_flowtrace.api_server.app import app
    import uvicorn

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        rpc=mask_rpc_url(settings.solana_rpc_url),
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
