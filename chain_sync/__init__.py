"""
Chain Sync - Multi-chain wallet transaction reconciliation.

Pulls raw activity for a user's wallets from EVM, Solana, TRON, TON and
Bitcoin providers, normalizes it into one transaction shape, drops what is
already recorded and persists the rest. A failing provider only affects
its own assets.

Quick start:
    from chain_sync import sync_transactions

    report = await sync_transactions("user-1", "mainnet")
    print(report.to_dict())
"""

from .config import SyncConfig, get_config, set_config
from .dedup import DedupFilter, make_dedup_key
from .exceptions import (
    ChainSyncError,
    ConfigurationError,
    ParseError,
    PersistenceConflict,
    SnapshotLoadError,
    TransportError,
)
from .fetchers import BaseChainFetcher, FetcherRegistry
from .models import (
    ChainType,
    Direction,
    FetchResult,
    Network,
    NormalizedTransaction,
    RawActivityRecord,
    RpcEndpoint,
    SyncReport,
    SyncResult,
    SyncSnapshot,
    TrackedAsset,
    TxStatus,
    WalletAddress,
)
from .normalizer import TransactionNormalizer, format_units
from .orchestrator import ReconciliationOrchestrator, sync_transactions
from .repository import (
    AssetRegistry,
    RpcEndpointDirectory,
    SqlAlchemyRepository,
    TransactionStore,
    WalletAddressStore,
)

__version__ = "1.0.0"

__all__ = [
    # Config
    "SyncConfig",
    "get_config",
    "set_config",
    # Models
    "ChainType",
    "Direction",
    "TxStatus",
    "Network",
    "TrackedAsset",
    "WalletAddress",
    "RpcEndpoint",
    "RawActivityRecord",
    "NormalizedTransaction",
    "FetchResult",
    "SyncResult",
    "SyncReport",
    "SyncSnapshot",
    # Exceptions
    "ChainSyncError",
    "ConfigurationError",
    "TransportError",
    "ParseError",
    "PersistenceConflict",
    "SnapshotLoadError",
    # Pipeline
    "BaseChainFetcher",
    "FetcherRegistry",
    "TransactionNormalizer",
    "format_units",
    "DedupFilter",
    "make_dedup_key",
    "AssetRegistry",
    "WalletAddressStore",
    "RpcEndpointDirectory",
    "TransactionStore",
    "SqlAlchemyRepository",
    "ReconciliationOrchestrator",
    "sync_transactions",
]
