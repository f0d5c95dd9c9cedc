"""
Chain Sync - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for one reconciliation run.

- Loads configuration from CLI and environment
- Optionally creates the database tables
- Prints the sync report as JSON

============================================================
USAGE
============================================================
python -m chain_sync.cli --user-id alice
python -m chain_sync.cli --user-id alice --network testnet --timeout 10
python -m chain_sync.cli --user-id alice --database-url sqlite:///wallet.db --init-db

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from database import (
    DatabasePersistenceError,
    create_database_engine,
    get_session_factory,
    initialize_database,
)

from .config import SyncConfig
from .exceptions import SnapshotLoadError
from .models import Network
from .orchestrator import sync_transactions


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chain-sync",
        description="Reconcile on-chain wallet activity into the transaction history",
    )

    parser.add_argument(
        "--user-id", "-u",
        type=str,
        required=True,
        help="User whose wallets are synced",
    )
    parser.add_argument(
        "--network", "-n",
        type=str,
        choices=[n.value for n in Network],
        default=Network.MAINNET.value,
        help="Network mode (default: mainnet)",
    )

    # --------------------------------------------------------
    # Runtime Options
    # --------------------------------------------------------
    runtime_group = parser.add_argument_group("Runtime Options")

    runtime_group.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: from environment)",
    )
    runtime_group.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Assets synced in parallel (default: 1)",
    )

    # --------------------------------------------------------
    # Database Options
    # --------------------------------------------------------
    db_group = parser.add_argument_group("Database Options")

    db_group.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy URL (default: DATABASE_URL or local SQLite)",
    )
    db_group.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before syncing",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


def build_config(args: argparse.Namespace) -> SyncConfig:
    """Environment config with CLI overrides applied."""
    config = SyncConfig.from_env()
    overrides = {}
    if args.timeout is not None:
        overrides["request_timeout_seconds"] = args.timeout
    if args.concurrency is not None:
        overrides["max_concurrency"] = args.concurrency
    return replace(config, **overrides) if overrides else config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 when the run completed (even with per-asset errors), 1 otherwise
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    engine = create_database_engine(args.database_url)
    session_factory = get_session_factory(engine)

    try:
        if args.init_db:
            initialize_database(engine)

        report = asyncio.run(sync_transactions(
            args.user_id,
            args.network,
            session_factory=session_factory,
            config=config,
        ))
    except (SnapshotLoadError, DatabasePersistenceError) as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        engine.dispose()

    print(json.dumps(report.to_dict(), indent=2))
    return 0


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
