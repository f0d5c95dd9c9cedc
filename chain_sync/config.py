"""
Chain Sync Configuration - Timeouts and per-chain fetch limits.

Values are loaded from CHAIN_SYNC_* environment variables when present.
Provider limits are conservative: most public RPCs cap eth_getLogs ranges
at 10,000 blocks, so the default lookback stays under that.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


ENV_PREFIX = "CHAIN_SYNC_"


@dataclass
class SyncConfig:
    """Configuration for a reconciliation run."""

    # Bounded time for every outbound call
    request_timeout_seconds: float = 15.0

    # EVM
    evm_block_lookback: int = 9000
    evm_max_logs_per_query: int = 50

    # Page sizes for the other chains
    svm_signature_limit: int = 20
    tron_page_limit: int = 20
    ton_page_limit: int = 20
    btc_tx_limit: int = 20

    # 1 = assets are processed one after another
    max_concurrency: int = 1

    user_agent: str = "ChainSync/1.0"

    def __post_init__(self) -> None:
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.evm_block_lookback < 0:
            raise ValueError("evm_block_lookback must not be negative")

    @classmethod
    def from_env(cls, env: Optional[dict[str, str]] = None) -> "SyncConfig":
        """
        Build a config from CHAIN_SYNC_<FIELD> variables.

        Unparseable values are ignored with a warning.
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        overrides: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                if f.type in (int, "int"):
                    overrides[f.name] = int(raw)
                elif f.type in (float, "float"):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{f.name.upper()}={raw!r}")

        return cls(**overrides)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Default configuration instance
_default_config: Optional[SyncConfig] = None


def get_config() -> SyncConfig:
    """Get the default configuration."""
    global _default_config
    if _default_config is None:
        _default_config = SyncConfig.from_env()
    return _default_config


def set_config(config: SyncConfig) -> None:
    """Set the default configuration."""
    global _default_config
    _default_config = config
