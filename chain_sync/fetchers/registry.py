"""
Fetcher Registry - Lookup table from chain tag to fetcher.

The orchestrator selects a fetcher by the asset's chain_type; there is no
per-chain branching outside this table.
"""

import logging
from typing import Optional

import aiohttp

from ..config import SyncConfig, get_config
from ..models import ChainType
from .base import BaseChainFetcher
from .bitcoin import BitcoinFetcher
from .evm import EvmFetcher
from .solana import SolanaFetcher
from .ton import TonFetcher
from .tron import TronFetcher


logger = logging.getLogger(__name__)


FETCHER_CLASSES: dict[ChainType, type[BaseChainFetcher]] = {
    ChainType.EVM: EvmFetcher,
    ChainType.SVM: SolanaFetcher,
    ChainType.TRON: TronFetcher,
    ChainType.TON: TonFetcher,
    ChainType.BTC: BitcoinFetcher,
}


class FetcherRegistry:
    """
    Registry of chain fetchers keyed by chain tag.

    Usage:
        registry = FetcherRegistry.default()
        fetcher = registry.get("evm")
        result = await fetcher.fetch_raw_activity(asset, address, url)
        await registry.close()
    """

    def __init__(self) -> None:
        self._fetchers: dict[str, BaseChainFetcher] = {}

    @classmethod
    def default(
        cls,
        config: Optional[SyncConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "FetcherRegistry":
        """Registry with one fetcher per supported chain tag."""
        config = config or get_config()
        registry = cls()
        for fetcher_cls in FETCHER_CLASSES.values():
            registry.register(fetcher_cls(config=config, session=session))
        return registry

    def register(self, fetcher: BaseChainFetcher) -> None:
        name = fetcher.chain_type.value
        if name in self._fetchers:
            logger.warning(f"Fetcher for '{name}' already registered, replacing")
        self._fetchers[name] = fetcher

    def get(self, chain_type: str) -> Optional[BaseChainFetcher]:
        return self._fetchers.get(chain_type)

    def supported_chain_types(self) -> list[str]:
        return list(self._fetchers)

    def get_stats(self) -> dict[str, dict]:
        return {name: f.get_stats() for name, f in self._fetchers.items()}

    async def close(self) -> None:
        for fetcher in self._fetchers.values():
            await fetcher.close()

    async def __aenter__(self) -> "FetcherRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
