"""Per-chain activity fetchers."""

from .base import BaseChainFetcher
from .bitcoin import BitcoinFetcher
from .evm import TRANSFER_TOPIC, EvmFetcher
from .registry import FETCHER_CLASSES, FetcherRegistry
from .solana import SolanaFetcher
from .ton import TonFetcher
from .tron import TronFetcher

__all__ = [
    "BaseChainFetcher",
    "BitcoinFetcher",
    "EvmFetcher",
    "SolanaFetcher",
    "TonFetcher",
    "TronFetcher",
    "FETCHER_CLASSES",
    "FetcherRegistry",
    "TRANSFER_TOPIC",
]
