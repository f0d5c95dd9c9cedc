"""
Database Persistence Functions.

============================================================
SNAPSHOT READS AND TRANSACTION WRITES
============================================================

Every function:
- Runs inside a caller-provided session
- Logs structured output: "Persist table_name: inserted=N"
- Raises hard exceptions on failure

Transaction inserts are idempotent: a row that already exists
for (user_id, tx_hash, asset_symbol) is ignored, not an error.

============================================================
"""

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .engine import DatabasePersistenceError, PersistenceValidationError
from .models import (
    Asset,
    AssetChain,
    RpcEndpointRow,
    TransactionRow,
    WalletAddressRow,
    generate_uuid,
    utc_now,
)

logger = logging.getLogger(__name__)


TRANSACTION_UNIQUE_KEY = ["user_id", "tx_hash", "asset_symbol"]

REQUIRED_TRANSACTION_FIELDS = ("user_id", "tx_type", "asset_symbol", "chain", "chain_type", "amount")

MAX_PAGE_SIZE = 100

# Dialects with native INSERT ... ON CONFLICT DO NOTHING
_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def _log_persistence(table_name: str, count: int, details: str = "") -> None:
    """Log persistence result in structured format."""
    if details:
        logger.info(f"Persist {table_name}: inserted={count} ({details})")
    else:
        logger.info(f"Persist {table_name}: inserted={count}")


def _validate_transaction(record: dict[str, Any]) -> None:
    missing = [f for f in REQUIRED_TRANSACTION_FIELDS if not record.get(f)]
    if missing:
        raise PersistenceValidationError(
            f"Missing required fields: {', '.join(missing)}"
        )


# =============================================================
# 1. SNAPSHOT READS
# =============================================================

def load_tracked_assets(session: Session) -> list[dict[str, Any]]:
    """
    Load every enabled asset deployment.

    Both the asset and its chain entry must be enabled.
    """
    stmt = (
        select(
            Asset.symbol,
            Asset.name,
            AssetChain.chain,
            AssetChain.chain_type,
            AssetChain.contract_address,
            AssetChain.decimals,
            Asset.is_native,
        )
        .select_from(AssetChain)
        .join(Asset, AssetChain.asset_id == Asset.id)
        .where(Asset.is_enabled.is_(True), AssetChain.is_enabled.is_(True))
        .order_by(Asset.sort_order, Asset.symbol, AssetChain.chain)
    )
    return [dict(row._mapping) for row in session.execute(stmt)]


def load_wallet_addresses(session: Session, user_id: str) -> list[WalletAddressRow]:
    """Load a user's wallet addresses."""
    stmt = select(WalletAddressRow).where(WalletAddressRow.user_id == user_id)
    return list(session.scalars(stmt))


def load_rpc_endpoints(session: Session, network: str) -> list[RpcEndpointRow]:
    """Load enabled endpoints for a network, best priority first."""
    stmt = (
        select(RpcEndpointRow)
        .where(RpcEndpointRow.network == network, RpcEndpointRow.is_enabled.is_(True))
        .order_by(RpcEndpointRow.priority.asc())
    )
    return list(session.scalars(stmt))


def read_existing_keys(session: Session, user_id: str) -> set[tuple[str, str]]:
    """(tx_hash, asset_symbol) pairs already recorded for a user."""
    stmt = select(TransactionRow.tx_hash, TransactionRow.asset_symbol).where(
        TransactionRow.user_id == user_id,
        TransactionRow.tx_hash.is_not(None),
    )
    return {(tx_hash, symbol) for tx_hash, symbol in session.execute(stmt)}


# =============================================================
# 2. TRANSACTION WRITES
# =============================================================

def insert_transaction(session: Session, record: dict[str, Any]) -> bool:
    """
    Insert a transaction unless its unique key is already recorded.

    Args:
        session: Database session
        record: Column values (see TransactionRow)

    Returns:
        True if a row was inserted, False if it already existed

    Raises:
        PersistenceValidationError on missing required fields
        DatabasePersistenceError on any other failure
    """
    _validate_transaction(record)

    now = utc_now()
    values = {
        "id": generate_uuid(),
        "status": "pending",
        "created_at": now,
        "updated_at": now,
        **{k: v for k, v in record.items() if v is not None},
    }

    dialect = session.get_bind().dialect.name
    conflict_insert = _CONFLICT_INSERTS.get(dialect)

    try:
        if conflict_insert is not None:
            stmt = (
                conflict_insert(TransactionRow.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=TRANSACTION_UNIQUE_KEY)
            )
            inserted = session.execute(stmt).rowcount == 1
        else:
            try:
                with session.begin_nested():
                    session.add(TransactionRow(**values))
                inserted = True
            except IntegrityError:
                inserted = False

    except SQLAlchemyError as e:
        logger.error(f"Persist transactions: FAILED - {e}")
        raise DatabasePersistenceError(f"Failed to persist transaction: {e}") from e

    if inserted:
        _log_persistence("transactions", 1, f"asset={values['asset_symbol']} tx={values.get('tx_hash')}")
    else:
        logger.debug(f"Persist transactions: inserted=0 (already recorded tx={values.get('tx_hash')})")
    return inserted


def list_transactions(
    session: Session,
    user_id: str,
    limit: int = 10,
    offset: int = 0,
    chain_type: Optional[str] = None,
    chain: Optional[str] = None,
    status: Optional[str] = None,
) -> tuple[list[TransactionRow], int]:
    """
    Page through a user's history, newest first.

    Ordered by block time, falling back to when the row was recorded.

    Returns:
        (rows, total matching rows)
    """
    limit = max(0, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    filters = [TransactionRow.user_id == user_id]
    if chain_type:
        filters.append(TransactionRow.chain_type == chain_type)
    if chain:
        filters.append(TransactionRow.chain == chain)
    if status:
        filters.append(TransactionRow.status == status)

    total = session.scalar(select(func.count()).select_from(TransactionRow).where(*filters)) or 0

    stmt = (
        select(TransactionRow)
        .where(*filters)
        .order_by(
            func.coalesce(TransactionRow.block_timestamp, TransactionRow.created_at).desc(),
            TransactionRow.id,
        )
        .limit(limit)
        .offset(offset)
    )
    return list(session.scalars(stmt)), total


# =============================================================
# 3. CONFIGURATION WRITES
# =============================================================

def add_asset(
    session: Session,
    symbol: str,
    name: str,
    chain: str,
    chain_type: str,
    decimals: int = 18,
    is_native: bool = False,
    contract_address: Optional[str] = None,
    is_enabled: bool = True,
    sort_order: int = 0,
) -> Asset:
    """Add an asset and its primary chain deployment."""
    asset = Asset(
        symbol=symbol,
        name=name,
        chain=chain,
        chain_type=chain_type,
        contract_address=contract_address,
        decimals=decimals,
        is_native=is_native,
        is_enabled=is_enabled,
        sort_order=sort_order,
    )
    asset.chains.append(AssetChain(
        chain=chain,
        chain_type=chain_type,
        contract_address=contract_address,
        decimals=decimals,
    ))
    session.add(asset)
    session.flush()
    _log_persistence("assets", 1, f"symbol={symbol} chain={chain}")
    return asset


def add_asset_chain(
    session: Session,
    asset: Asset,
    chain: str,
    chain_type: str,
    contract_address: Optional[str] = None,
    decimals: int = 18,
    is_enabled: bool = True,
) -> AssetChain:
    """Add another chain deployment for an existing asset."""
    entry = AssetChain(
        asset_id=asset.id,
        chain=chain,
        chain_type=chain_type,
        contract_address=contract_address,
        decimals=decimals,
        is_enabled=is_enabled,
    )
    session.add(entry)
    session.flush()
    _log_persistence("asset_chains", 1, f"symbol={asset.symbol} chain={chain}")
    return entry


def add_wallet_address(
    session: Session,
    user_id: str,
    chain_type: str,
    address: str,
) -> WalletAddressRow:
    row = WalletAddressRow(user_id=user_id, chain_type=chain_type, address=address)
    session.add(row)
    session.flush()
    _log_persistence("wallet_addresses", 1, f"chain_type={chain_type}")
    return row


def add_rpc_endpoint(
    session: Session,
    chain_type: str,
    network: str,
    rpc_url: str,
    chain_name: Optional[str] = None,
    priority: int = 0,
    is_enabled: bool = True,
    name: Optional[str] = None,
) -> RpcEndpointRow:
    row = RpcEndpointRow(
        chain_type=chain_type,
        chain_name=chain_name,
        network=network,
        rpc_url=rpc_url,
        priority=priority,
        is_enabled=is_enabled,
        name=name,
    )
    session.add(row)
    session.flush()
    _log_persistence("rpc_endpoints", 1, f"{chain_type}/{chain_name or '*'} {network} p={priority}")
    return row
