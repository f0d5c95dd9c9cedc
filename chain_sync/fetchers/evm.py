"""
EVM Chain Fetcher - ERC20 Transfer logs over JSON-RPC.

Native coin transfers are not scanned: they do not emit logs and would need
block tracing. Token activity is read with two eth_getLogs queries over a
bounded block range, one per direction.
"""

import logging

from ..exceptions import TransportError
from ..models import ChainType, Direction, RawActivityRecord, TrackedAsset
from .base import BaseChainFetcher


logger = logging.getLogger(__name__)


# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def pad_address_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


class EvmFetcher(BaseChainFetcher):
    """
    EVM fetcher using eth_blockNumber + eth_getLogs.

    Works against any EVM JSON-RPC (Ethereum, Base, BSC, ...). The lookback
    keeps the range under the 10,000 block limit common to public providers.
    """

    @property
    def chain_type(self) -> ChainType:
        return ChainType.EVM

    async def _collect(
        self,
        asset: TrackedAsset,
        address: str,
        endpoint_url: str,
        sink: list[RawActivityRecord],
    ) -> None:
        if asset.is_native or not asset.contract_address:
            logger.debug(f"[evm] Skipping native asset {asset.symbol} on {asset.chain}")
            return

        from_block = await self._from_block(endpoint_url)
        topic = pad_address_topic(address)

        queries = (
            (Direction.RECEIVE, [TRANSFER_TOPIC, None, topic]),
            (Direction.SEND, [TRANSFER_TOPIC, topic, None]),
        )

        for direction, topics in queries:
            logs = await self._rpc_call(endpoint_url, "eth_getLogs", [{
                "address": asset.contract_address,
                "fromBlock": from_block,
                "toBlock": "latest",
                "topics": topics,
            }])
            if not isinstance(logs, list):
                raise TransportError(
                    "eth_getLogs returned no log list",
                    chain=self.name,
                    request_url=endpoint_url,
                )

            for log in logs[: self.config.evm_max_logs_per_query]:
                sink.append(RawActivityRecord(
                    chain_type=ChainType.EVM,
                    payload=log,
                    direction=direction,
                ))

    async def _from_block(self, endpoint_url: str) -> str:
        """First block of the scan window, as a hex quantity."""
        result = await self._rpc_call(endpoint_url, "eth_blockNumber", [])
        try:
            current_block = int(result or "0x0", 16)
        except (TypeError, ValueError) as e:
            raise TransportError(
                f"Invalid block number: {result!r}",
                chain=self.name,
                request_url=endpoint_url,
                original_error=e,
            )
        return hex(max(0, current_block - self.config.evm_block_lookback))
