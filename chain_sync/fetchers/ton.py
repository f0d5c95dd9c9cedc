"""
TON Chain Fetcher - toncenter-style getTransactions REST call.
"""

import logging

from ..exceptions import TransportError
from ..models import ChainType, RawActivityRecord, TrackedAsset
from .base import BaseChainFetcher


logger = logging.getLogger(__name__)


class TonFetcher(BaseChainFetcher):

    @property
    def chain_type(self) -> ChainType:
        return ChainType.TON

    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        url = f"{endpoint_url.rstrip('/')}/getTransactions"
        limit = self.config.ton_page_limit

        data = await self._get_json(url, {"address": address, "limit": limit})
        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error") if isinstance(data, dict) else None
            raise TransportError(
                f"TON API error: {error or 'response not ok'}",
                chain=self.name,
                request_url=url,
            )

        for tx in (data.get("result") or [])[:limit]:
            sink.append(RawActivityRecord(chain_type=ChainType.TON, payload=tx))
