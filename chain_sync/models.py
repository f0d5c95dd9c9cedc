"""
Chain Sync Data Models - Canonical shapes for multi-chain reconciliation.

Snapshots (assets, wallets, endpoints) are immutable for the duration of a
run. Normalized transactions are transient: persisted when new, discarded
otherwise. Results and reports are returned to the caller and never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ChainType(Enum):
    """Protocol family of a blockchain."""
    EVM = "evm"
    SVM = "svm"
    TRON = "tron"
    TON = "ton"
    BTC = "btc"


class Direction(Enum):
    """Direction relative to the user's own wallet address."""
    SEND = "send"
    RECEIVE = "receive"


class TxStatus(Enum):
    """Settlement status of a transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Network(Enum):
    """Network mode a sync runs under."""
    MAINNET = "mainnet"
    TESTNET = "testnet"

    @classmethod
    def parse(cls, value: Any) -> "Network":
        """Only an explicit 'testnet' selects testnet."""
        if isinstance(value, Network):
            return value
        if value == "testnet":
            return cls.TESTNET
        return cls.MAINNET


@dataclass(frozen=True)
class TrackedAsset:
    """An enabled (asset, chain) pair to reconcile."""
    symbol: str
    name: str
    chain: str
    chain_type: str
    decimals: int
    is_native: bool = False
    contract_address: Optional[str] = None

    @property
    def is_token(self) -> bool:
        return not self.is_native and bool(self.contract_address)


@dataclass(frozen=True)
class WalletAddress:
    """A user's address for one chain type."""
    chain_type: str
    address: str


@dataclass(frozen=True)
class RpcEndpoint:
    """A configured RPC/REST endpoint. Lower priority number wins."""
    chain_type: str
    network: str
    url: str
    chain_name: Optional[str] = None
    priority: int = 0

    @property
    def lookup_key(self) -> str:
        if self.chain_name:
            return f"{self.chain_type}_{self.chain_name}"
        return self.chain_type


@dataclass(frozen=True)
class RawActivityRecord:
    """
    Opaque chain-specific payload returned by a fetcher.

    `direction` is set only where the query itself implies it (EVM logs
    filtered by from/to topic). `context` carries side data the payload
    lacks, e.g. the Solana signature entry (slot, blockTime).
    """
    chain_type: ChainType
    payload: Any
    direction: Optional[Direction] = None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedTransaction:
    """Canonical transaction shape shared by every chain."""
    tx_hash: str
    direction: Direction
    status: TxStatus
    asset_symbol: str
    chain: str
    amount: str
    from_address: str
    to_address: str
    block_number: Optional[int] = None
    block_timestamp: Optional[int] = None  # unix seconds
    fee: Optional[str] = None
    fee_asset: Optional[str] = None

    def to_record(self, user_id: str, chain_type: str) -> dict[str, Any]:
        """Build the persistence row for this transaction."""
        block_time = None
        if self.block_timestamp:
            # Stored naive, in UTC, like every other timestamp column
            block_time = datetime.fromtimestamp(self.block_timestamp, tz=timezone.utc).replace(tzinfo=None)
        return {
            "user_id": user_id,
            "tx_hash": self.tx_hash,
            "tx_type": self.direction.value,
            "status": self.status.value,
            "asset_symbol": self.asset_symbol,
            "chain": self.chain,
            "chain_type": chain_type,
            "amount": self.amount,
            "fee": self.fee,
            "fee_asset": self.fee_asset,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "block_number": self.block_number,
            "block_timestamp": block_time,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "type": self.direction.value,
            "status": self.status.value,
            "assetSymbol": self.asset_symbol,
            "chain": self.chain,
            "amount": self.amount,
            "from": self.from_address,
            "to": self.to_address,
            "blockNumber": self.block_number,
            "blockTimestamp": self.block_timestamp,
            "fee": self.fee,
            "feeAsset": self.fee_asset,
        }


@dataclass
class FetchResult:
    """
    Outcome of one fetcher call.

    `records` holds everything retrieved before any failure; `error` is set
    when the fetch did not complete.
    """
    records: list[RawActivityRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncResult:
    """Per-asset outcome of a sync run."""
    chain: str
    asset: str
    fetched_count: int = 0
    recorded_count: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "asset": self.asset,
            "fetched": self.fetched_count,
            "recorded": self.recorded_count,
            "errors": list(self.errors),
        }


@dataclass
class SyncReport:
    """Aggregate of all per-asset results for one invocation."""
    results: list[SyncResult] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def total_fetched(self) -> int:
        return sum(r.fetched_count for r in self.results)

    @property
    def total_recorded(self) -> int:
        return sum(r.recorded_count for r in self.results)

    @property
    def has_errors(self) -> bool:
        return any(r.errors for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "totalFetched": self.total_fetched,
            "totalRecorded": self.total_recorded,
        }
        if self.message:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class SyncSnapshot:
    """
    Read-only configuration loaded once at the start of a run.

    Passed explicitly through the pipeline; nothing here is global.
    """
    user_id: str
    network: Network
    wallets: tuple[WalletAddress, ...]
    assets: tuple[TrackedAsset, ...]
    endpoints: dict[str, str]

    @classmethod
    def build(
        cls,
        user_id: str,
        network: Network,
        wallets: list[WalletAddress],
        assets: list[TrackedAsset],
        endpoints: list[RpcEndpoint],
    ) -> "SyncSnapshot":
        """Group endpoints by lookup key, keeping the best priority per key."""
        by_key: dict[str, str] = {}
        for endpoint in sorted(endpoints, key=lambda e: e.priority):
            by_key.setdefault(endpoint.lookup_key, endpoint.url)
        return cls(
            user_id=user_id,
            network=network,
            wallets=tuple(wallets),
            assets=tuple(assets),
            endpoints=by_key,
        )

    def wallet_for(self, chain_type: str) -> Optional[WalletAddress]:
        for wallet in self.wallets:
            if wallet.chain_type == chain_type:
                return wallet
        return None

    def resolve_endpoint(self, asset: TrackedAsset) -> Optional[str]:
        """Chain-name-specific endpoint first, then the chain-type default."""
        return (
            self.endpoints.get(f"{asset.chain_type}_{asset.chain}")
            or self.endpoints.get(asset.chain_type)
        )
