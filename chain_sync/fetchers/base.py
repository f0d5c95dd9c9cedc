"""
Base Chain Fetcher - Abstract interface for per-chain activity fetchers.

All fetchers MUST:
- Bound every outbound call with a timeout
- Keep every record retrieved before a failure
- Never raise from fetch_raw_activity() - failures come back in FetchResult
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from ..config import SyncConfig, get_config
from ..exceptions import ChainSyncError, TransportError
from ..models import ChainType, FetchResult, RawActivityRecord, TrackedAsset


logger = logging.getLogger(__name__)


class BaseChainFetcher(ABC):
    """
    Abstract base class for chain activity fetchers.

    Each fetcher must:
    1. Return its chain tag from chain_type
    2. Implement _collect() - append raw records into the sink as they arrive

    Features:
    - Lazily created shared aiohttp session
    - Timeout per request (timeouts surface as TransportError)
    - JSON-RPC and REST helpers with uniform error mapping
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config or get_config()
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

        self._stats = {
            "fetches": 0,
            "failed_fetches": 0,
            "requests": 0,
            "records": 0,
        }

    @property
    @abstractmethod
    def chain_type(self) -> ChainType:
        """Return the chain tag this fetcher handles."""
        pass

    @property
    def name(self) -> str:
        return self.chain_type.value

    @abstractmethod
    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        """
        Fetch raw activity for one asset and append it to sink.

        May raise; whatever is already in sink is kept by the caller.
        """
        pass

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def fetch_raw_activity(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
    ) -> FetchResult:
        """
        Fetch raw activity records for an asset held at address.

        NEVER raises - transport failures and unexpected errors are
        returned in FetchResult.error alongside any partial records.
        """
        self._stats["fetches"] += 1
        sink: list[RawActivityRecord] = []

        try:
            await self._collect(asset, address, endpoint_url, sink)
        except ChainSyncError as e:
            self._stats["failed_fetches"] += 1
            logger.warning(
                f"[{self.name}] Fetch failed for {asset.symbol} on {asset.chain} "
                f"after {len(sink)} records: {e}"
            )
            return FetchResult(records=sink, error=str(e))
        except Exception as e:
            self._stats["failed_fetches"] += 1
            logger.warning(
                f"[{self.name}] Unexpected fetch error for {asset.symbol} on {asset.chain}: {e}"
            )
            return FetchResult(records=sink, error=f"Unexpected error: {e}")

        self._stats["records"] += len(sink)
        logger.debug(f"[{self.name}] Fetched {len(sink)} raw records for {asset.symbol}")
        return FetchResult(records=sink)

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "chain_type": self.name}

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Make an HTTP request bounded by the configured timeout."""
        self._stats["requests"] += 1
        try:
            return await asyncio.wait_for(
                self._send(method, url, params, json_body),
                timeout=self.config.request_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timeout after {self.config.request_timeout_seconds}s",
                chain=self.name,
                request_url=url,
                original_error=e,
            )

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]],
        json_body: Optional[dict[str, Any]],
    ) -> Any:
        session = await self._get_session()

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
            ) as response:
                latency_ms = (time.time() - start_time) * 1000
                logger.debug(f"[{self.name}] {method} {url} -> {response.status} ({latency_ms:.0f}ms)")

                if response.status >= 400:
                    body = await response.text()
                    raise TransportError(
                        f"HTTP {response.status}",
                        chain=self.name,
                        status_code=response.status,
                        request_url=url,
                        context={"response_body": body[:500]},
                    )

                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise TransportError(
                        "Malformed JSON response",
                        chain=self.name,
                        status_code=response.status,
                        request_url=url,
                        original_error=e,
                    )

        except aiohttp.ClientError as e:
            raise TransportError(
                f"Connection error: {e}",
                chain=self.name,
                request_url=url,
                original_error=e,
            )

    async def _rpc_call(
        self,
        url: str,
        method: str,
        params: list[Any],
    ) -> Any:
        """Make a JSON-RPC 2.0 call and return its result member."""
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        data = await self._request_json("POST", url, json_body=payload)

        if not isinstance(data, dict):
            raise TransportError(
                f"Unexpected {method} response",
                chain=self.name,
                request_url=url,
            )

        error = data.get("error")
        if error:
            message = error.get("message", "Unknown") if isinstance(error, dict) else str(error)
            raise TransportError(
                f"RPC error in {method}: {message}",
                chain=self.name,
                request_url=url,
                context={"rpc_error": error},
            )

        return data.get("result")

    async def _get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """GET a REST resource and decode its JSON body."""
        return await self._request_json("GET", url, params=params)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseChainFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(chain_type={self.name})>"
