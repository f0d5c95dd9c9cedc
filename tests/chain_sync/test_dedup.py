"""
Dedup Filter Tests.
"""

from chain_sync.dedup import DedupFilter, make_dedup_key
from chain_sync.models import Direction, NormalizedTransaction, TxStatus


def make_tx(tx_hash="0xABC", symbol="USDC", direction=Direction.RECEIVE):
    return NormalizedTransaction(
        tx_hash=tx_hash,
        direction=direction,
        status=TxStatus.CONFIRMED,
        asset_symbol=symbol,
        chain="Ethereum",
        amount="1.000000",
        from_address="0xfrom",
        to_address="0xto",
    )


class TestDedupFilter:
    """Tests for DedupFilter."""

    def test_key_lowercases_hash_only(self):
        assert make_dedup_key("0xABC", "USDC") == "0xabc_USDC"

    def test_seeded_keys_are_duplicates(self):
        dedup = DedupFilter([("0xabc", "USDC")])

        assert dedup.is_duplicate(make_tx("0xABC"))
        assert dedup.skipped == 1

    def test_same_hash_other_asset_is_new(self):
        dedup = DedupFilter([("0xabc", "USDC")])

        assert not dedup.is_duplicate(make_tx("0xabc", symbol="USDT"))

    def test_remembered_within_run(self):
        dedup = DedupFilter()
        receive = make_tx(direction=Direction.RECEIVE)
        send = make_tx(direction=Direction.SEND)

        assert not dedup.is_duplicate(receive)
        dedup.remember(receive)

        assert dedup.is_duplicate(send)
        assert len(dedup) == 1
        assert "0xabc_USDC" in dedup

    def test_null_hashes_ignored_when_seeding(self):
        dedup = DedupFilter([(None, "USDC"), ("", "BTC")])

        assert len(dedup) == 0
