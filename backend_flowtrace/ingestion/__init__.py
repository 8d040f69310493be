# Transaction ingestion: JSON-RPC fetch, parse, hand records to the engine.

from backend_flowtrace.ingestion.transaction_fetcher import TransactionFetcher

__all__ = [
    "TransactionFetcher",
]
