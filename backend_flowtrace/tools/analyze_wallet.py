"""
Run transaction flow analysis for one wallet and print the JSON report.

How to run:
    From project root (with .env configured for --fetch):
        python -m backend_flowtrace.tools.analyze_wallet <WALLET> --input txs.json
        python -m backend_flowtrace.tools.analyze_wallet <WALLET> --fetch --limit 100

Input file: a JSON list of transaction records (signature, blockTime,
accountKeys, instructions[{programId, accounts, data}], logMessages), or an
object with a "transactions" list.

Required env vars (only with --fetch):
    SOLANA_RPC_URL or HELIUS_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from backend_flowtrace.analysis_engine import FlowFilters, TransactionType, analyze
from backend_flowtrace.analytics import HeuristicClusterer, KnownEntityIdentifier
from backend_flowtrace.core.exceptions import FlowTraceError, InvalidTransactionError
from backend_flowtrace.flowtrace_logging import get_logger
from backend_flowtrace.ingestion import TransactionFetcher
from backend_flowtrace.solana_listener.models import TransactionRecord
from backend_flowtrace.utils.wallet_utils import require_valid_wallet

logger = get_logger(__name__)


def load_records(path: Path) -> list[TransactionRecord]:
    """Read transaction records from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data: Any = json.load(f)
    if isinstance(data, dict):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise InvalidTransactionError(f"{path}: expected a list of transactions")
    return [TransactionRecord.from_dict(item) for item in data]


def build_filters(args: argparse.Namespace) -> FlowFilters | None:
    filters = FlowFilters(
        start_date=datetime.fromisoformat(args.start_date) if args.start_date else None,
        end_date=datetime.fromisoformat(args.end_date) if args.end_date else None,
        min_amount=args.min_amount,
        max_amount=args.max_amount,
        transaction_types=tuple(TransactionType(t) for t in args.types or ()),
        address_filter=args.address_filter,
    )
    return None if filters == FlowFilters() else filters


def run(args: argparse.Namespace) -> dict[str, Any]:
    target = require_valid_wallet(args.wallet)
    if args.fetch:
        records = asyncio.run(TransactionFetcher().fetch_for_address(target, limit=args.limit))
    else:
        records = load_records(Path(args.input))
    result = analyze(
        records,
        target,
        build_filters(args),
        entity_identifier=KnownEntityIdentifier(),
        clusterer=HeuristicClusterer(),
    )
    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Analyze a Solana wallet's transaction flow (funding sources, patterns, risk).",
    )
    parser.add_argument("wallet", help="Target wallet address (base58)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="JSON file with transaction records")
    source.add_argument("--fetch", action="store_true", help="Fetch recent transactions over Solana RPC")
    parser.add_argument("--limit", type=int, default=None, help="Max signatures to fetch (with --fetch)")
    parser.add_argument("--start-date", help="ISO-8601 lower bound")
    parser.add_argument("--end-date", help="ISO-8601 upper bound")
    parser.add_argument("--min-amount", type=float, default=None, help="Minimum estimated value (SOL)")
    parser.add_argument("--max-amount", type=float, default=None, help="Maximum estimated value (SOL)")
    parser.add_argument(
        "--types",
        nargs="*",
        choices=[t.value for t in TransactionType],
        help="Allowed transaction types",
    )
    parser.add_argument("--address-filter", default=None, help="Substring of an account key")
    parser.add_argument("--output", default=None, help="Write the report here instead of stdout")
    args = parser.parse_args(argv)
    try:
        report = run(args)
    except (FlowTraceError, OSError, ValueError) as e:
        logger.error("analyze_wallet_failed", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1
    text = json.dumps(report, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        print("OUTPUT:", args.output)
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
