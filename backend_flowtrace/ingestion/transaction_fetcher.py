"""
Solana transaction fetcher: JSON-RPC over httpx → TransactionRecord list.

getSignaturesForAddress for the wallet, then getTransaction for each
signature not yet processed by this fetcher, with at most `concurrency`
requests in flight. A transaction that fails to fetch or parse is dropped
and logged; the rest of the batch is returned. Failing to list signatures
raises TransactionFetchError.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import httpx

from backend_flowtrace.config.env import mask_rpc_url
from backend_flowtrace.config.settings import get_settings
from backend_flowtrace.core.exceptions import TransactionFetchError
from backend_flowtrace.flowtrace_logging import bind_wallet, get_logger
from backend_flowtrace.flowtrace_logging.logger import short
from backend_flowtrace.solana_listener.models import TransactionRecord
from backend_flowtrace.solana_listener.parser import parse_transaction
from backend_flowtrace.utils.wallet_utils import require_valid_wallet

logger = get_logger(__name__)


class TransactionFetcher:
    """
    Fetch and parse a wallet's recent transactions.

    The processed-signature set lives on the instance: calling
    fetch_for_address() again only returns transactions not returned before.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        concurrency: int | None = None,
        signature_limit: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._rpc_url = rpc_url or settings.solana_rpc_url
        self._concurrency = max(1, concurrency or settings.fetch_concurrency)
        self._signature_limit = signature_limit or settings.signature_limit
        self._timeout = timeout or settings.request_timeout_sec
        self._transport = transport
        self._processed: set[str] = set()
        self._ids = itertools.count(1)

    @property
    def processed_signatures(self) -> frozenset[str]:
        return frozenset(self._processed)

    def _next_id(self) -> int:
        return next(self._ids)

    async def _rpc(self, client: httpx.AsyncClient, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        resp = await client.post(self._rpc_url, json=body)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise TransactionFetchError(f"{method} returned a non-object JSON body")
        err = data.get("error")
        if err:
            raise TransactionFetchError(f"{method} RPC error: {err}")
        return data.get("result")

    async def fetch_signatures(
        self,
        client: httpx.AsyncClient,
        address: str,
        limit: int,
    ) -> list[str]:
        """Recent signatures for `address`, newest first, as returned by the node."""
        try:
            items = await self._rpc(
                client,
                "getSignaturesForAddress",
                [address, {"limit": limit, "commitment": "confirmed"}],
            )
        except TransactionFetchError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            raise TransactionFetchError(f"getSignaturesForAddress failed: {e}") from e
        if not isinstance(items, list):
            return []
        return [
            item["signature"]
            for item in items
            if isinstance(item, dict) and isinstance(item.get("signature"), str)
        ]

    async def fetch_transaction(
        self,
        client: httpx.AsyncClient,
        signature: str,
        semaphore: asyncio.Semaphore,
        wallet: str = "",
    ) -> TransactionRecord | None:
        """getTransaction + parse; None when the call fails or the payload is unusable."""
        async with semaphore:
            try:
                raw = await self._rpc(
                    client,
                    "getTransaction",
                    [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}],
                )
            except (TransactionFetchError, httpx.HTTPError, ValueError) as e:
                logger.warning(
                    "fetch_tx_failed",
                    wallet_id=short(wallet),
                    signature=short(signature),
                    error=str(e),
                )
                return None
        if raw is None:
            logger.warning("fetch_tx_missing", wallet_id=short(wallet), signature=short(signature))
            return None
        record = parse_transaction(raw, signature=signature)
        if record is None:
            logger.warning("fetch_tx_parse_skipped", wallet_id=short(wallet), signature=short(signature))
        return record

    async def fetch_for_address(
        self,
        address: str,
        limit: int | None = None,
        *,
        only_new: bool = True,
    ) -> list[TransactionRecord]:
        """
        Fetch transactions for `address`, by default only unprocessed ones.

        Args:
            address: Base58 wallet address.
            limit: Max signatures to list; defaults to the configured limit.
            only_new: Skip signatures this fetcher already returned. False
                re-fetches them, for callers that need every transaction of
                several related addresses.

        Returns:
            Parsed records in signature-list order; failed ones omitted.

        Raises:
            InvalidAddressError: If address is not a valid Solana key.
            TransactionFetchError: If the signature listing fails.
        """
        address = require_valid_wallet(address)
        log = bind_wallet(short(address), __name__)
        limit = limit or self._signature_limit
        semaphore = asyncio.Semaphore(self._concurrency)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            signatures = await self.fetch_signatures(client, address, limit)
            pending = list(dict.fromkeys(
                s for s in signatures if not only_new or s not in self._processed
            ))
            log.info(
                "fetch_signatures_listed",
                rpc=mask_rpc_url(self._rpc_url),
                listed=len(signatures),
                new_count=len(pending),
            )
            results = await asyncio.gather(
                *(self.fetch_transaction(client, sig, semaphore, address) for sig in pending)
            )

        records: list[TransactionRecord] = []
        for record in results:
            if record is None:
                continue
            self._processed.add(record.signature)
            records.append(record)
        dropped = len(pending) - len(records)
        log.info(
            "fetch_transactions_done",
            fetched=len(records),
            dropped=dropped,
        )
        return records
