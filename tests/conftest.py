"""
Shared fixtures: in-memory database and seeded configuration.
"""

import pytest

from database import (
    add_asset,
    add_rpc_endpoint,
    add_wallet_address,
    create_all_tables,
    create_database_engine,
    get_session_factory,
    transaction_scope,
)


EVM_WALLET = "0x" + "ab" * 20
BTC_WALLET = "bc1qwalletaddress"
USDC_CONTRACT = "0x" + "de" * 20


@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def seeded(session_factory):
    """USDC on Ethereum and native BTC, both with mainnet endpoints, for user-1."""
    with transaction_scope(session_factory) as session:
        add_asset(
            session, symbol="USDC", name="USD Coin", chain="Ethereum", chain_type="evm",
            decimals=6, contract_address=USDC_CONTRACT, sort_order=1,
        )
        add_asset(
            session, symbol="BTC", name="Bitcoin", chain="Bitcoin", chain_type="btc",
            decimals=8, is_native=True, sort_order=2,
        )
        add_wallet_address(session, "user-1", "evm", EVM_WALLET)
        add_wallet_address(session, "user-1", "btc", BTC_WALLET)
        add_rpc_endpoint(session, "evm", "mainnet", "https://eth.example.org")
        add_rpc_endpoint(session, "btc", "mainnet", "https://blockstream.info/api")
    return session_factory
