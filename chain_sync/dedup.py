"""
Dedup Filter - In-run set of already-recorded (txHash, assetSymbol) keys.

Seeded once per run from the transaction store. Keys are added as soon as a
record is persisted, so duplicates found later in the same run (e.g. a
self-transfer returned by both EVM direction queries) are dropped too.
"""

import logging
from typing import Iterable

from .models import NormalizedTransaction


logger = logging.getLogger(__name__)


def make_dedup_key(tx_hash: str, asset_symbol: str) -> str:
    """lowercase(txHash) + "_" + assetSymbol"""
    return f"{tx_hash.lower()}_{asset_symbol}"


class DedupFilter:
    """
    Set of dedup keys for one user and one run.

    Not locked: the orchestrator checks, persists and remembers a key
    without awaiting in between, so the event loop is its only writer.
    """

    def __init__(self, existing: Iterable[tuple[str, str]] = ()) -> None:
        self._keys: set[str] = {
            make_dedup_key(tx_hash, symbol)
            for tx_hash, symbol in existing
            if tx_hash
        }
        self._skipped = 0

    def is_duplicate(self, tx: NormalizedTransaction) -> bool:
        if make_dedup_key(tx.tx_hash, tx.asset_symbol) in self._keys:
            self._skipped += 1
            logger.debug(f"[dedup] Skipping known {tx.asset_symbol} tx {tx.tx_hash}")
            return True
        return False

    def remember(self, tx: NormalizedTransaction) -> None:
        self._keys.add(make_dedup_key(tx.tx_hash, tx.asset_symbol))

    @property
    def skipped(self) -> int:
        return self._skipped

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)
