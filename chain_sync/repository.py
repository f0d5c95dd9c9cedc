"""
Repository Interfaces - Read-only snapshots and the transaction store.

The orchestrator only talks to these interfaces. SqlAlchemyRepository backs
all four with the relational tables in the database package.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from database import (
    get_db_session,
    get_session_factory,
    insert_transaction,
    load_rpc_endpoints,
    load_tracked_assets,
    load_wallet_addresses,
    read_existing_keys,
    transaction_scope,
)

from .models import Network, RpcEndpoint, TrackedAsset, WalletAddress


logger = logging.getLogger(__name__)


class AssetRegistry(ABC):
    """Source of enabled (asset, chain) pairs."""

    @abstractmethod
    def list_tracked_assets(self) -> list[TrackedAsset]:
        pass


class WalletAddressStore(ABC):
    """One address per (user, chain type)."""

    @abstractmethod
    def list_wallet_addresses(self, user_id: str) -> list[WalletAddress]:
        pass


class RpcEndpointDirectory(ABC):
    """Prioritized endpoints per network."""

    @abstractmethod
    def list_endpoints(self, network: Network) -> list[RpcEndpoint]:
        pass


class TransactionStore(ABC):
    """Append-only store unique on (user, tx_hash, asset_symbol)."""

    @abstractmethod
    def read_existing_keys(self, user_id: str) -> set[tuple[str, str]]:
        pass

    @abstractmethod
    def insert_transaction(self, record: dict[str, Any]) -> bool:
        """Insert-or-ignore. Returns False when the key already existed."""
        pass


class SqlAlchemyRepository(AssetRegistry, WalletAddressStore, RpcEndpointDirectory, TransactionStore):
    """
    All four collaborators over one SQLAlchemy session factory.

    Each call runs in its own transaction so a failed insert never
    affects rows recorded before it.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    # ─────────────────────────────────────────────────────────────
    # Snapshots
    # ─────────────────────────────────────────────────────────────

    def list_tracked_assets(self) -> list[TrackedAsset]:
        with get_db_session(self._session_factory) as session:
            rows = load_tracked_assets(session)
        return [
            TrackedAsset(
                symbol=row["symbol"],
                name=row["name"],
                chain=row["chain"],
                chain_type=row["chain_type"],
                decimals=row["decimals"],
                is_native=bool(row["is_native"]),
                contract_address=row["contract_address"],
            )
            for row in rows
        ]

    def list_wallet_addresses(self, user_id: str) -> list[WalletAddress]:
        with get_db_session(self._session_factory) as session:
            return [
                WalletAddress(chain_type=row.chain_type, address=row.address)
                for row in load_wallet_addresses(session, user_id)
            ]

    def list_endpoints(self, network: Network) -> list[RpcEndpoint]:
        with get_db_session(self._session_factory) as session:
            return [
                RpcEndpoint(
                    chain_type=row.chain_type,
                    network=row.network,
                    url=row.rpc_url,
                    chain_name=row.chain_name,
                    priority=row.priority,
                )
                for row in load_rpc_endpoints(session, network.value)
            ]

    # ─────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────

    def read_existing_keys(self, user_id: str) -> set[tuple[str, str]]:
        with get_db_session(self._session_factory) as session:
            return read_existing_keys(session, user_id)

    def insert_transaction(self, record: dict[str, Any]) -> bool:
        with transaction_scope(self._session_factory) as session:
            return insert_transaction(session, record)
