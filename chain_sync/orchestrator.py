"""
Reconciliation Orchestrator - Fetch, normalize, dedup and persist per asset.

One run per (user, network). Snapshots are loaded once up front; failing to
load them is the only way a run can fail. Every per-asset problem ends up in
that asset's SyncResult.errors and the run carries on.
"""

import asyncio
import logging
from typing import Optional, Union

from sqlalchemy.orm import sessionmaker

from .config import SyncConfig, get_config
from .dedup import DedupFilter
from .exceptions import ConfigurationError, SnapshotLoadError
from .fetchers import FetcherRegistry
from .models import (
    FetchResult,
    Network,
    SyncReport,
    SyncResult,
    SyncSnapshot,
    TrackedAsset,
    WalletAddress,
)
from .normalizer import TransactionNormalizer
from .repository import (
    AssetRegistry,
    RpcEndpointDirectory,
    SqlAlchemyRepository,
    TransactionStore,
    WalletAddressStore,
)


logger = logging.getLogger(__name__)


NO_WALLETS_MESSAGE = "No wallets found"


class ReconciliationOrchestrator:
    """
    Drives the per-asset sync pipeline for one user.

    Usage:
        orchestrator = ReconciliationOrchestrator(
            assets=repo, wallets=repo, endpoints=repo, transactions=repo,
            fetchers=FetcherRegistry.default(),
        )
        report = await orchestrator.run("user-1", "mainnet")
    """

    def __init__(
        self,
        assets: AssetRegistry,
        wallets: WalletAddressStore,
        endpoints: RpcEndpointDirectory,
        transactions: TransactionStore,
        fetchers: FetcherRegistry,
        normalizer: Optional[TransactionNormalizer] = None,
        config: Optional[SyncConfig] = None,
    ) -> None:
        self.assets = assets
        self.wallets = wallets
        self.endpoints = endpoints
        self.transactions = transactions
        self.fetchers = fetchers
        self.normalizer = normalizer or TransactionNormalizer()
        self.config = config or get_config()

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def run(self, user_id: str, network: Union[Network, str, None] = None) -> SyncReport:
        """
        Sync every tracked asset the user holds a wallet for.

        Raises:
            SnapshotLoadError: wallets, assets, endpoints or existing keys
                could not be loaded
        """
        network = Network.parse(network)
        snapshot, dedup = self._load_snapshot(user_id, network)

        if not snapshot.wallets:
            logger.info(f"[sync] User {user_id} has no wallets, nothing to sync")
            return SyncReport(message=NO_WALLETS_MESSAGE)

        work: list[tuple[TrackedAsset, WalletAddress]] = []
        for asset in snapshot.assets:
            wallet = snapshot.wallet_for(asset.chain_type)
            if wallet is not None:
                work.append((asset, wallet))

        logger.info(
            f"[sync] Starting {network.value} sync for user {user_id}: "
            f"{len(work)} assets, {len(dedup)} known transactions"
        )

        if self.config.max_concurrency > 1:
            semaphore = asyncio.Semaphore(self.config.max_concurrency)

            async def bounded(asset: TrackedAsset, wallet: WalletAddress) -> SyncResult:
                async with semaphore:
                    return await self._sync_asset(snapshot, asset, wallet, dedup)

            results = list(await asyncio.gather(*(bounded(a, w) for a, w in work)))
        else:
            results = []
            for asset, wallet in work:
                results.append(await self._sync_asset(snapshot, asset, wallet, dedup))

        report = SyncReport(results=results)
        logger.info(
            f"[sync] Finished sync for user {user_id}: "
            f"fetched={report.total_fetched} recorded={report.total_recorded} "
            f"duplicates={dedup.skipped}"
        )
        return report

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    def _load_snapshot(self, user_id: str, network: Network) -> tuple[SyncSnapshot, DedupFilter]:
        try:
            wallets = self.wallets.list_wallet_addresses(user_id)
            assets = self.assets.list_tracked_assets()
            endpoints = self.endpoints.list_endpoints(network)
            existing = self.transactions.read_existing_keys(user_id)
        except Exception as e:
            logger.error(f"[sync] Failed to load snapshots for user {user_id}: {e}")
            raise SnapshotLoadError(
                f"Failed to load sync snapshot for user {user_id}",
                original_error=e,
                context={"network": network.value},
            ) from e

        snapshot = SyncSnapshot.build(user_id, network, wallets, assets, endpoints)
        return snapshot, DedupFilter(existing)

    async def _sync_asset(
        self,
        snapshot: SyncSnapshot,
        asset: TrackedAsset,
        wallet: WalletAddress,
        dedup: DedupFilter,
    ) -> SyncResult:
        result = SyncResult(chain=asset.chain, asset=asset.symbol)

        endpoint_url = snapshot.resolve_endpoint(asset)
        if not endpoint_url:
            error = ConfigurationError(f"No RPC endpoint configured for {asset.chain}", chain=asset.chain)
            logger.warning(f"[sync] {asset.symbol}: {error}")
            result.errors.append(str(error))
            return result

        fetcher = self.fetchers.get(asset.chain_type)
        if fetcher is None:
            error = ConfigurationError(f"No fetcher for chain type {asset.chain_type}", chain=asset.chain)
            logger.warning(f"[sync] {asset.symbol}: {error}")
            result.errors.append(str(error))
            return result

        try:
            fetched = await fetcher.fetch_raw_activity(asset, wallet.address, endpoint_url)
        except Exception as e:
            fetched = FetchResult(error=str(e))

        if fetched.error:
            result.errors.append(f"Fetch error: {fetched.error}")

        # No awaits below: the event loop is the only writer of the dedup set
        for raw in fetched.records:
            tx = self.normalizer.normalize(raw, asset, wallet.address)
            if tx is None:
                continue
            result.fetched_count += 1

            if dedup.is_duplicate(tx):
                continue

            try:
                inserted = self.transactions.insert_transaction(
                    tx.to_record(snapshot.user_id, asset.chain_type)
                )
            except Exception as e:
                logger.warning(f"[sync] Failed to record {asset.symbol} tx {tx.tx_hash}: {e}")
                result.errors.append(f"Failed to record tx {tx.tx_hash}: {e}")
                continue

            dedup.remember(tx)
            if inserted:
                result.recorded_count += 1

        logger.info(
            f"[sync] {asset.symbol} on {asset.chain}: "
            f"fetched={result.fetched_count} recorded={result.recorded_count} errors={len(result.errors)}"
        )
        return result


async def sync_transactions(
    user_id: str,
    network: Union[Network, str, None] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    config: Optional[SyncConfig] = None,
) -> SyncReport:
    """
    Run one sync against the SQL store with the default fetchers.

    Fetcher sessions are closed before returning.
    """
    config = config or get_config()
    repository = SqlAlchemyRepository(session_factory)

    async with FetcherRegistry.default(config=config) as fetchers:
        orchestrator = ReconciliationOrchestrator(
            assets=repository,
            wallets=repository,
            endpoints=repository,
            transactions=repository,
            fetchers=fetchers,
            config=config,
        )
        return await orchestrator.run(user_id, network)
