"""
Database ORM Models - Wallet Sync Tables.

============================================================
SCHEMA
============================================================

Read by the sync engine as per-run snapshots:
- assets / asset_chains: tracked assets per chain
- wallet_addresses: one address per (user, chain_type)
- rpc_endpoints: prioritized endpoint per chain and network

Written by the sync engine:
- transactions: append-only history, unique on
  (user_id, tx_hash, asset_symbol)

============================================================
"""

from datetime import datetime
import uuid

from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Boolean,
    DateTime, JSON, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .engine import Base


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def utc_now():
    """Get current UTC timestamp."""
    return datetime.utcnow()


# =============================================================
# 1. ASSETS
# =============================================================

class Asset(Base):
    """
    An asset the wallet supports (USDC, ETH, BTC, ...).

    Chain-specific deployments live in asset_chains.
    """
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    symbol = Column(String(32), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    icon = Column(Text, nullable=True)

    # Primary chain (display only)
    chain = Column(String(50), nullable=False)
    chain_type = Column(String(20), nullable=True)
    contract_address = Column(String(128), nullable=True)
    decimals = Column(Integer, nullable=False, default=18)

    is_native = Column(Boolean, nullable=False, default=False)
    is_enabled = Column(Boolean, nullable=False, default=True, index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    chains = relationship("AssetChain", back_populates="asset", cascade="all, delete-orphan")


# =============================================================
# 2. ASSET CHAINS
# =============================================================

class AssetChain(Base):
    """
    One deployment of an asset on one chain (USDC on Base, USDC on Tron).

    Each enabled row is tracked individually by the sync engine.
    """
    __tablename__ = "asset_chains"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    asset_id = Column(String(36), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    chain = Column(String(50), nullable=False)         # 'Ethereum', 'Base', 'Tron', ...
    chain_type = Column(String(20), nullable=False)    # 'evm', 'svm', 'tron', 'ton', 'btc'
    contract_address = Column(String(128), nullable=True)
    decimals = Column(Integer, nullable=False, default=18)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    asset = relationship("Asset", back_populates="chains")

    __table_args__ = (
        UniqueConstraint("asset_id", "chain", name="uq_asset_chain"),
    )


# =============================================================
# 3. WALLET ADDRESSES
# =============================================================

class WalletAddressRow(Base):
    """A user's derived address for one chain type."""
    __tablename__ = "wallet_addresses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    chain_type = Column(String(20), nullable=False)
    address = Column(String(128), nullable=False)
    derivation_path = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "chain_type", name="uq_wallet_user_chain_type"),
    )


# =============================================================
# 4. RPC ENDPOINTS
# =============================================================

class RpcEndpointRow(Base):
    """
    Configured RPC/REST endpoint.

    chain_name NULL marks the chain-type default. Lower priority
    number wins (0 = primary).
    """
    __tablename__ = "rpc_endpoints"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    chain_type = Column(String(20), nullable=False)
    chain_name = Column(String(50), nullable=True)
    chain_id = Column(String(20), nullable=True)       # EVM chain id
    network = Column(String(10), nullable=False)       # 'mainnet' | 'testnet'
    name = Column(String(100), nullable=True)
    rpc_url = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("idx_rpc_network_priority", "network", "is_enabled", "priority"),
    )


# =============================================================
# 5. TRANSACTIONS
# =============================================================

class TransactionRow(Base):
    """
    Recorded wallet transaction.

    Amounts are decimal strings to preserve precision.
    """
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    tx_hash = Column(String(128), nullable=True, index=True)
    tx_type = Column(String(16), nullable=False)       # 'send' | 'receive'
    status = Column(String(16), nullable=False, default="pending", index=True)

    # Asset
    asset_symbol = Column(String(32), nullable=False)
    chain = Column(String(50), nullable=False)
    chain_type = Column(String(20), nullable=False, index=True)

    # Amounts
    amount = Column(String(100), nullable=False)
    amount_usd = Column(String(100), nullable=True)
    fee = Column(String(100), nullable=True)
    fee_asset = Column(String(32), nullable=True)

    # Parties
    from_address = Column(String(128), nullable=True)
    to_address = Column(String(128), nullable=True)

    description = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)

    # Timestamps
    block_number = Column(BigInteger, nullable=True)
    block_timestamp = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("user_id", "tx_hash", "asset_symbol", name="uq_tx_user_hash_asset"),
        Index("idx_transactions_user_created", "user_id", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "txHash": self.tx_hash,
            "type": self.tx_type,
            "status": self.status,
            "asset": self.asset_symbol,
            "chain": self.chain,
            "chainType": self.chain_type,
            "amount": self.amount,
            "amountUsd": self.amount_usd,
            "fee": self.fee,
            "feeAsset": self.fee_asset,
            "from": self.from_address,
            "to": self.to_address,
            "description": self.description,
            "metadata": self.extra,
            "blockNumber": self.block_number,
            "blockTimestamp": self.block_timestamp.isoformat() if self.block_timestamp else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
