"""
TRON Chain Fetcher - TronGrid-style REST account history.

TRC20 tokens use the trc20 transfer list filtered by contract; native TRX
uses the plain transaction list (confirmed only, base58 addresses).
"""

import logging

from ..exceptions import TransportError
from ..models import ChainType, RawActivityRecord, TrackedAsset
from .base import BaseChainFetcher


logger = logging.getLogger(__name__)


class TronFetcher(BaseChainFetcher):

    @property
    def chain_type(self) -> ChainType:
        return ChainType.TRON

    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        base = endpoint_url.rstrip("/")
        limit = self.config.tron_page_limit

        if asset.contract_address:
            url = f"{base}/v1/accounts/{address}/transactions/trc20"
            params = {"contract_address": asset.contract_address, "limit": limit}
        else:
            url = f"{base}/v1/accounts/{address}/transactions"
            params = {"limit": limit, "only_confirmed": "true", "visible": "true"}

        data = await self._get_json(url, params)
        if not isinstance(data, dict):
            raise TransportError("Unexpected TRON response", chain=self.name, request_url=url)

        for tx in (data.get("data") or [])[:limit]:
            sink.append(RawActivityRecord(chain_type=ChainType.TRON, payload=tx))
