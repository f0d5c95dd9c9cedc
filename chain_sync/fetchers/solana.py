"""
Solana Chain Fetcher - Signatures and parsed transactions over JSON-RPC.

SPL tokens are tracked through the owner's associated token account (ATA);
native SOL through the wallet address itself. Direction is derived later
from balance deltas, so this fetcher only gathers payloads.
"""

import logging
from typing import Optional

from ..exceptions import TransportError
from ..models import ChainType, RawActivityRecord, TrackedAsset
from .base import BaseChainFetcher


logger = logging.getLogger(__name__)


class SolanaFetcher(BaseChainFetcher):
    """
    Solana fetcher: getTokenAccountsByOwner -> getSignaturesForAddress ->
    getTransaction per signature.

    Calls are sequential; each signature needs its own round trip.
    """

    @property
    def chain_type(self) -> ChainType:
        return ChainType.SVM

    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        if not asset.contract_address and not asset.is_native:
            return

        account = address
        if asset.contract_address and not asset.is_native:
            account = await self._token_account(endpoint_url, address, asset.contract_address)
            if account is None:
                logger.debug(f"[svm] No token account for {asset.symbol}, skipping")
                return

        signatures = await self._rpc_call(endpoint_url, "getSignaturesForAddress", [
            account,
            {"limit": self.config.svm_signature_limit},
        ])
        if not isinstance(signatures, list):
            raise TransportError(
                "getSignaturesForAddress returned no signature list",
                chain=self.name,
                request_url=endpoint_url,
            )

        for sig_info in signatures[: self.config.svm_signature_limit]:
            signature = sig_info.get("signature") if isinstance(sig_info, dict) else None
            if not signature:
                continue

            tx = await self._rpc_call(endpoint_url, "getTransaction", [
                signature,
                {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0},
            ])
            if not tx:
                continue

            sink.append(RawActivityRecord(
                chain_type=ChainType.SVM,
                payload=tx,
                context={"signature": sig_info},
            ))

    async def _token_account(
        self,
        endpoint_url: str,
        owner: str,
        mint: str,
    ) -> Optional[str]:
        """Resolve the owner's token account for a mint, if one exists."""
        result = await self._rpc_call(endpoint_url, "getTokenAccountsByOwner", [
            owner,
            {"mint": mint},
            {"encoding": "jsonParsed"},
        ])
        accounts = (result or {}).get("value") or []
        if not accounts:
            return None
        return accounts[0].get("pubkey")
