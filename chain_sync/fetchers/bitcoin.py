"""
Bitcoin Chain Fetcher - Esplora-style REST (/address/{address}/txs).
"""

import logging

from ..exceptions import TransportError
from ..models import ChainType, RawActivityRecord, TrackedAsset
from .base import BaseChainFetcher


logger = logging.getLogger(__name__)


class BitcoinFetcher(BaseChainFetcher):
    """
    Bitcoin fetcher for Esplora APIs (Blockstream, mempool.space).

    The first page of /txs holds mempool entries followed by the newest
    confirmed transactions.
    """

    @property
    def chain_type(self) -> ChainType:
        return ChainType.BTC

    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        url = f"{endpoint_url.rstrip('/')}/address/{address}/txs"

        txs = await self._get_json(url)
        if not isinstance(txs, list):
            raise TransportError("Unexpected Esplora response", chain=self.name, request_url=url)

        for tx in txs[: self.config.btc_tx_limit]:
            sink.append(RawActivityRecord(chain_type=ChainType.BTC, payload=tx))
