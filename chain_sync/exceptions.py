"""
Chain Sync Exceptions - Error taxonomy for reconciliation runs.

Per-asset errors (configuration, transport) are captured into the report and
never abort a run. Only SnapshotLoadError is fatal to an invocation.
"""

from datetime import datetime
from typing import Any, Optional


class ChainSyncError(Exception):
    """Base exception for all chain sync errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class ConfigurationError(ChainSyncError):
    """No usable endpoint or fetcher for a chain."""
    pass


class TransportError(ChainSyncError):
    """RPC/REST failure, timeout or malformed response."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, original_error, context)
        self.status_code = status_code
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "request_url": self.request_url,
        })
        return data


class ParseError(ChainSyncError):
    """Raw record has an unexpected shape."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        raw_data: Optional[Any] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, None, context)
        self.raw_data = str(raw_data)[:500] if raw_data is not None else None


class PersistenceConflict(ChainSyncError):
    """Unique key already recorded. Callers treat this as success."""
    pass


class SnapshotLoadError(ChainSyncError):
    """Initial read-only snapshots could not be loaded."""
    pass
