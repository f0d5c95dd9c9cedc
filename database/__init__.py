"""
Database Package Initialization.

============================================================
WALLET SYNC PERSISTENCE LAYER
============================================================

Relational storage for the chain sync engine: tracked assets,
wallet addresses, RPC endpoints and transaction history.

REQUIRED:
- Every write is logged with structured format
- Every failure raises hard exceptions
- All transactions are explicit with commit/rollback
- Transaction inserts are idempotent on their unique key

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,

    # Engine creation
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    get_engine,
    reset_engine,

    # Session management
    get_session_factory,
    get_db_session,
    transaction_scope,

    # Database initialization
    REQUIRED_TABLES,
    initialize_database,
    create_all_tables,
    verify_required_tables,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
    PersistenceValidationError,
)

# ORM Models
from .models import (
    Asset,
    AssetChain,
    WalletAddressRow,
    RpcEndpointRow,
    TransactionRow,
)

# Persistence functions
from .persistence import (
    load_tracked_assets,
    load_wallet_addresses,
    load_rpc_endpoints,
    read_existing_keys,
    insert_transaction,
    list_transactions,
    add_asset,
    add_asset_chain,
    add_wallet_address,
    add_rpc_endpoint,
)


__all__ = [
    # Engine
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "reset_engine",
    "get_session_factory",
    "get_db_session",
    "transaction_scope",
    "REQUIRED_TABLES",
    "initialize_database",
    "create_all_tables",
    "verify_required_tables",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "PersistenceValidationError",
    # Models
    "Asset",
    "AssetChain",
    "WalletAddressRow",
    "RpcEndpointRow",
    "TransactionRow",
    # Persistence
    "load_tracked_assets",
    "load_wallet_addresses",
    "load_rpc_endpoints",
    "read_existing_keys",
    "insert_transaction",
    "list_transactions",
    "add_asset",
    "add_asset_chain",
    "add_wallet_address",
    "add_rpc_endpoint",
]
