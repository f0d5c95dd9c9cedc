"""
Transaction Normalizer Tests.

============================================================
PURPOSE
============================================================
Raw payload -> NormalizedTransaction mapping for every chain.

TEST CATEGORIES:
- Amount scaling: exact decimal formatting
- Direction inference per chain
- Unattributable / malformed records

============================================================
"""

import pytest

from chain_sync.exceptions import ParseError
from chain_sync.models import (
    ChainType,
    Direction,
    RawActivityRecord,
    TrackedAsset,
    TxStatus,
)
from chain_sync.normalizer import TransactionNormalizer, format_units, parse_int
from chain_sync.fetchers.evm import TRANSFER_TOPIC, pad_address_topic


WALLET_EVM = "0x" + "ab" * 20
OTHER_EVM = "0x" + "cd" * 20

USDC = TrackedAsset(
    symbol="USDC", name="USD Coin", chain="Ethereum", chain_type="evm",
    decimals=6, contract_address="0x" + "de" * 20,
)
SOL = TrackedAsset(symbol="SOL", name="Solana", chain="Solana", chain_type="svm", decimals=9, is_native=True)
USDC_SOL = TrackedAsset(
    symbol="USDC", name="USD Coin", chain="Solana", chain_type="svm",
    decimals=6, contract_address="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
)
USDT_TRON = TrackedAsset(
    symbol="USDT", name="Tether", chain="Tron", chain_type="tron",
    decimals=6, contract_address="TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t",
)
TRX = TrackedAsset(symbol="TRX", name="Tron", chain="Tron", chain_type="tron", decimals=6, is_native=True)
TON = TrackedAsset(symbol="TON", name="Toncoin", chain="TON", chain_type="ton", decimals=9, is_native=True)
BTC = TrackedAsset(symbol="BTC", name="Bitcoin", chain="Bitcoin", chain_type="btc", decimals=8, is_native=True)


def evm_log(from_address, to_address, value, tx_hash="0xAAA1", **extra):
    log = {
        "address": USDC.contract_address,
        "topics": [TRANSFER_TOPIC, pad_address_topic(from_address), pad_address_topic(to_address)],
        "data": hex(value),
        "blockNumber": "0x10",
        "transactionHash": tx_hash,
    }
    log.update(extra)
    return log


def btc_tx(vin, vout, fee=0, txid="btc1", confirmed=True):
    return {
        "txid": txid,
        "vin": [{"prevout": {"scriptpubkey_address": a, "value": v}} for a, v in vin],
        "vout": [{"scriptpubkey_address": a, "value": v} for a, v in vout],
        "fee": fee,
        "status": {"confirmed": confirmed, "block_height": 800000, "block_time": 1700000000},
    }


@pytest.fixture
def normalizer():
    return TransactionNormalizer()


# ============================================================
# AMOUNT SCALING TESTS
# ============================================================

class TestFormatUnits:
    """Tests for format_units."""

    def test_usdc_one_unit(self):
        assert format_units(1_000_000, 6) == "1.000000"

    def test_zero_decimals(self):
        assert format_units(5, 0) == "5"

    def test_hex_quantity(self):
        assert format_units("0xf4240", 6) == "1.000000"

    def test_fractional(self):
        assert format_units(1, 18) == "0.000000000000000001"

    def test_negative_takes_absolute_value(self):
        assert format_units(-2_500_000, 6) == "2.500000"

    def test_uint256_max_is_exact(self):
        raw = 2 ** 256 - 1
        formatted = format_units(raw, 18)
        integer, fraction = formatted.split(".")
        assert int(integer + fraction) == raw
        assert len(fraction) == 18

    def test_parse_int_rejects_bool(self):
        with pytest.raises(ParseError):
            parse_int(True)

    def test_parse_int_empty_hex(self):
        assert parse_int("0x") == 0


# ============================================================
# EVM TESTS
# ============================================================

class TestEvmNormalization:
    """Tests for ERC20 Transfer logs."""

    def test_receive_from_query_direction(self, normalizer):
        raw = RawActivityRecord(
            chain_type=ChainType.EVM,
            payload=evm_log(OTHER_EVM, WALLET_EVM, 1_000_000),
            direction=Direction.RECEIVE,
        )

        tx = normalizer.normalize(raw, USDC, WALLET_EVM)

        assert tx is not None
        assert tx.amount == "1.000000"
        assert tx.direction == Direction.RECEIVE
        assert tx.asset_symbol == "USDC"
        assert tx.from_address == OTHER_EVM
        assert tx.to_address == WALLET_EVM
        assert tx.block_number == 16
        assert tx.status == TxStatus.CONFIRMED
        assert tx.fee_asset == "ETH"

    def test_addresses_lowercased(self, normalizer):
        raw = RawActivityRecord(
            chain_type=ChainType.EVM,
            payload=evm_log(OTHER_EVM.upper().replace("0X", "0x"), WALLET_EVM, 1),
        )

        tx = normalizer.normalize(raw, USDC, WALLET_EVM.upper().replace("0X", "0x"))

        assert tx.from_address == OTHER_EVM
        assert tx.direction == Direction.RECEIVE

    def test_send_inferred_without_query_direction(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.EVM, payload=evm_log(WALLET_EVM, OTHER_EVM, 5))

        tx = normalizer.normalize(raw, USDC, WALLET_EVM)

        assert tx.direction == Direction.SEND

    def test_removed_log_dropped(self, normalizer):
        raw = RawActivityRecord(
            chain_type=ChainType.EVM,
            payload=evm_log(OTHER_EVM, WALLET_EVM, 5, removed=True),
            direction=Direction.RECEIVE,
        )

        assert normalizer.normalize(raw, USDC, WALLET_EVM) is None

    def test_missing_hash_dropped(self, normalizer):
        log = evm_log(OTHER_EVM, WALLET_EVM, 5)
        del log["transactionHash"]
        raw = RawActivityRecord(chain_type=ChainType.EVM, payload=log, direction=Direction.RECEIVE)

        assert normalizer.normalize(raw, USDC, WALLET_EVM) is None
        assert normalizer.get_stats()["discarded"] == 1

    def test_fee_asset_follows_chain(self, normalizer):
        bsc_usdt = TrackedAsset(
            symbol="USDT", name="Tether", chain="BSC", chain_type="evm",
            decimals=18, contract_address="0x" + "55" * 20,
        )
        raw = RawActivityRecord(
            chain_type=ChainType.EVM,
            payload=evm_log(OTHER_EVM, WALLET_EVM, 10 ** 18),
            direction=Direction.RECEIVE,
        )

        tx = normalizer.normalize(raw, bsc_usdt, WALLET_EVM)

        assert tx.fee_asset == "BNB"
        assert tx.amount == "1.000000000000000000"


# ============================================================
# SOLANA TESTS
# ============================================================

SOL_WALLET = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def svm_raw(meta, account_keys=None, signature="sig1"):
    return RawActivityRecord(
        chain_type=ChainType.SVM,
        payload={
            "meta": meta,
            "transaction": {
                "signatures": [signature],
                "message": {"accountKeys": account_keys or []},
            },
        },
        context={"signature": {"signature": signature, "slot": 250, "blockTime": 1700000000}},
    )


def token_balance(owner, amount, mint=USDC_SOL.contract_address):
    return {"mint": mint, "owner": owner, "uiTokenAmount": {"amount": str(amount), "decimals": 6}}


class TestSolanaNormalization:
    """Tests for balance-delta direction inference."""

    def test_native_receive(self, normalizer):
        raw = svm_raw(
            {"preBalances": [10, 2_000_000_000], "postBalances": [5, 3_500_000_000], "fee": 5000, "err": None},
            account_keys=[{"pubkey": "payer"}, {"pubkey": SOL_WALLET}],
        )

        tx = normalizer.normalize(raw, SOL, SOL_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "1.500000000"
        assert tx.to_address == SOL_WALLET
        assert tx.from_address == "unknown"
        assert tx.fee == "0.000005000"
        assert tx.block_number == 250
        assert tx.block_timestamp == 1700000000

    def test_token_send(self, normalizer):
        raw = svm_raw({
            "preTokenBalances": [token_balance(SOL_WALLET, 5_000_000), token_balance("other", 0)],
            "postTokenBalances": [token_balance(SOL_WALLET, 3_000_000), token_balance("other", 2_000_000)],
            "fee": 5000,
        })

        tx = normalizer.normalize(raw, USDC_SOL, SOL_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "2.000000"
        assert tx.from_address == SOL_WALLET

    def test_token_first_receipt_has_no_pre_balance(self, normalizer):
        raw = svm_raw({
            "preTokenBalances": [],
            "postTokenBalances": [token_balance(SOL_WALLET, 750_000)],
        })

        tx = normalizer.normalize(raw, USDC_SOL, SOL_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "0.750000"

    def test_zero_delta_dropped(self, normalizer):
        raw = svm_raw({
            "preTokenBalances": [token_balance(SOL_WALLET, 1)],
            "postTokenBalances": [token_balance(SOL_WALLET, 1)],
        })

        assert normalizer.normalize(raw, USDC_SOL, SOL_WALLET) is None

    def test_failed_transaction_status(self, normalizer):
        raw = svm_raw(
            {"preBalances": [100], "postBalances": [95], "fee": 5, "err": {"InstructionError": [0, "Custom"]}},
            account_keys=[SOL_WALLET],
        )

        tx = normalizer.normalize(raw, SOL, SOL_WALLET)

        assert tx.status == TxStatus.FAILED
        assert tx.direction == Direction.SEND

    def test_wallet_not_in_account_keys(self, normalizer):
        raw = svm_raw({"preBalances": [1], "postBalances": [2]}, account_keys=["someone-else"])

        assert normalizer.normalize(raw, SOL, SOL_WALLET) is None


# ============================================================
# TRON TESTS
# ============================================================

TRON_WALLET = "TXYZopYRdj2D9XRtbG411XZZ3kM5VkAeBf"
TRON_OTHER = "TLa2f6VPqDgRE67v1736s7bJ8Ray5wYjU7"


class TestTronNormalization:
    """Tests for TRC20 and native TRX records."""

    def test_trc20_receive_case_insensitive(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TRON, payload={
            "transaction_id": "trc20tx",
            "token_info": {"symbol": "USDT", "decimals": 6},
            "from": TRON_OTHER,
            "to": TRON_WALLET.lower(),
            "value": "25000000",
            "block_timestamp": 1700000000123,
        })

        tx = normalizer.normalize(raw, USDT_TRON, TRON_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "25.000000"
        assert tx.block_timestamp == 1700000000
        assert tx.status == TxStatus.CONFIRMED

    def test_trc20_unrelated_dropped(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TRON, payload={
            "transaction_id": "x",
            "token_info": {},
            "from": TRON_OTHER,
            "to": "TSomeoneElse",
            "value": "1",
        })

        assert normalizer.normalize(raw, USDT_TRON, TRON_WALLET) is None

    def test_native_send(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TRON, payload={
            "txID": "trxtx",
            "blockNumber": 55,
            "block_timestamp": 1700000000000,
            "ret": [{"contractRet": "SUCCESS", "fee": 1_100_000}],
            "raw_data": {"contract": [{
                "type": "TransferContract",
                "parameter": {"value": {
                    "owner_address": TRON_WALLET,
                    "to_address": TRON_OTHER,
                    "amount": 3_000_000,
                }},
            }]},
        })

        tx = normalizer.normalize(raw, TRX, TRON_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "3.000000"
        assert tx.fee == "1.100000"
        assert tx.status == TxStatus.CONFIRMED
        assert tx.block_number == 55

    def test_native_non_transfer_dropped(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TRON, payload={
            "txID": "trigger",
            "raw_data": {"contract": [{"type": "TriggerSmartContract", "parameter": {"value": {}}}]},
        })

        assert normalizer.normalize(raw, TRX, TRON_WALLET) is None

    def test_native_reverted_is_failed(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TRON, payload={
            "txID": "reverted",
            "ret": [{"contractRet": "REVERT"}],
            "raw_data": {"contract": [{
                "type": "TransferContract",
                "parameter": {"value": {"owner_address": TRON_OTHER, "to_address": TRON_WALLET, "amount": 1}},
            }]},
        })

        tx = normalizer.normalize(raw, TRX, TRON_WALLET)

        assert tx.status == TxStatus.FAILED
        assert tx.direction == Direction.RECEIVE


# ============================================================
# TON TESTS
# ============================================================

TON_WALLET = "EQBvW8Z5huBkMJYdnfAEM5JqTNkuWX3diqYENkWsIL0XggGG"


class TestTonNormalization:
    """Tests for in/out message direction inference."""

    def test_outbound_is_send(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TON, payload={
            "transaction_id": {"hash": "tonhash1", "lt": "1"},
            "utime": 1700000000,
            "fee": "5000000",
            "in_msg": {"source": "", "value": "0"},
            "out_msgs": [{"destination": "EQdest", "value": "2500000000"}],
        })

        tx = normalizer.normalize(raw, TON, TON_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "2.500000000"
        assert tx.to_address == "EQdest"
        assert tx.from_address == TON_WALLET
        assert tx.fee == "0.005000000"

    def test_inbound_with_source_is_receive(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TON, payload={
            "transaction_id": {"hash": "tonhash2"},
            "in_msg": {"source": {"account_address": "EQsender"}, "value": "1000000000"},
            "out_msgs": [],
        })

        tx = normalizer.normalize(raw, TON, TON_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "1.000000000"
        assert tx.from_address == "EQsender"

    def test_no_messages_dropped(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.TON, payload={
            "transaction_id": {"hash": "tonhash3"},
            "in_msg": {"source": ""},
            "out_msgs": [],
        })

        assert normalizer.normalize(raw, TON, TON_WALLET) is None


# ============================================================
# BITCOIN TESTS
# ============================================================

BTC_WALLET = "bc1qwalletaddress"


class TestBitcoinNormalization:
    """Tests for owned input/output direction inference."""

    def test_inputs_only_is_send_net_of_fee(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[(BTC_WALLET, 100_000)],
            vout=[("bc1qother", 90_000)],
            fee=10_000,
        ))

        tx = normalizer.normalize(raw, BTC, BTC_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "0.00090000"
        assert tx.to_address == "bc1qother"
        assert tx.fee == "0.00010000"

    def test_outputs_only_is_receive(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[("bc1qother", 60_000)],
            vout=[(BTC_WALLET, 50_000)],
            fee=10_000,
            confirmed=False,
        ))

        tx = normalizer.normalize(raw, BTC, BTC_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "0.00050000"
        assert tx.from_address == "bc1qother"
        assert tx.status == TxStatus.PENDING

    def test_both_with_change_follows_net_sign(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[(BTC_WALLET, 100_000)],
            vout=[("bc1qother", 30_000), (BTC_WALLET, 65_000)],
            fee=5_000,
        ))

        tx = normalizer.normalize(raw, BTC, BTC_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "0.00030000"

    def test_both_with_net_negative_is_receive(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[(BTC_WALLET, 10_000), ("bc1qother", 100_000)],
            vout=[(BTC_WALLET, 100_000)],
            fee=10_000,
        ))

        tx = normalizer.normalize(raw, BTC, BTC_WALLET)

        assert tx.direction == Direction.RECEIVE
        assert tx.amount == "0.00100000"

    def test_unrelated_dropped(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[("bc1qa", 1)],
            vout=[("bc1qb", 1)],
        ))

        assert normalizer.normalize(raw, BTC, BTC_WALLET) is None

    def test_second_own_address_is_treated_as_counterparty(self, normalizer):
        """Only the chain's registered address is matched, not other user addresses."""
        second_own = "bc1qsecondaddress"
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(
            vin=[(BTC_WALLET, 100_000)],
            vout=[(second_own, 95_000)],
            fee=5_000,
        ))

        tx = normalizer.normalize(raw, BTC, BTC_WALLET)

        assert tx.direction == Direction.SEND
        assert tx.amount == "0.00095000"
        assert tx.to_address == second_own


# ============================================================
# GENERAL TESTS
# ============================================================

class TestNormalizerRobustness:
    """Tests that malformed records never raise."""

    @pytest.mark.parametrize("chain_type", list(ChainType))
    def test_garbage_payload_returns_none(self, normalizer, chain_type):
        raw = RawActivityRecord(chain_type=chain_type, payload={"unexpected": ["shape"]})
        asset = {
            ChainType.EVM: USDC,
            ChainType.SVM: SOL,
            ChainType.TRON: TRX,
            ChainType.TON: TON,
            ChainType.BTC: BTC,
        }[chain_type]

        assert normalizer.normalize(raw, asset, "addr") is None

    def test_non_dict_payload_returns_none(self, normalizer):
        raw = RawActivityRecord(chain_type=ChainType.BTC, payload="not a tx")

        assert normalizer.normalize(raw, BTC, BTC_WALLET) is None

    def test_stats_count_results(self, normalizer):
        good = RawActivityRecord(chain_type=ChainType.BTC, payload=btc_tx(vin=[], vout=[(BTC_WALLET, 1)]))
        bad = RawActivityRecord(chain_type=ChainType.BTC, payload={})

        normalizer.normalize(good, BTC, BTC_WALLET)
        normalizer.normalize(bad, BTC, BTC_WALLET)

        stats = normalizer.get_stats()
        assert stats["normalized"] == 1
        assert stats["discarded"] == 1
