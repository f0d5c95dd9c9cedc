"""
Transaction Normalizer - Raw chain payloads to NormalizedTransaction.

Direction is always relative to the user's own address on that chain:
- EVM: the log query that returned the record (to=address / from=address)
- SVM: sign of the owned balance delta (pre vs post)
- TRON: case-insensitive from/to match
- TON: outbound messages present => send, sourced inbound message => receive
- BTC: owned input value vs owned output value, net of fee

These heuristics are approximate for transactions touching several of the
user's own addresses on the same chain.

Records that cannot be attributed to the wallet normalize to None and are
dropped silently.
"""

import logging
from decimal import Decimal, localcontext
from typing import Any, Callable, Optional

from .exceptions import ParseError
from .models import (
    ChainType,
    Direction,
    NormalizedTransaction,
    RawActivityRecord,
    TrackedAsset,
    TxStatus,
)


logger = logging.getLogger(__name__)


UNKNOWN_ADDRESS = "unknown"

SOL_DECIMALS = 9
TRX_DECIMALS = 6

# Gas asset per EVM chain name; anything else pays in ETH
EVM_FEE_ASSETS: dict[str, str] = {
    "BSC": "BNB",
    "BNB Chain": "BNB",
    "Polygon": "POL",
    "Avalanche": "AVAX",
}


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def format_units(raw: Any, decimals: int) -> str:
    """
    Scale an integer amount by 10^-decimals.

    Exact for any integer size; the absolute value is taken.
        format_units(1_000_000, 6) -> "1.000000"
    """
    value = abs(parse_int(raw))
    if decimals <= 0:
        return str(value)

    with localcontext() as ctx:
        ctx.prec = len(str(value)) + decimals + 1
        scaled = Decimal(value).scaleb(-decimals)
        return f"{scaled:.{decimals}f}"


def parse_int(value: Any) -> int:
    """Parse ints, decimal strings and 0x-prefixed hex quantities."""
    if isinstance(value, bool):
        raise ParseError(f"Not an integer amount: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16) if len(text) > 2 else 0
        return int(text)
    raise ParseError(f"Not an integer amount: {value!r}")


def _require(data: dict[str, Any], key: str, chain: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ParseError(f"Missing '{key}'", chain=chain, raw_data=data)
    return value


# ─────────────────────────────────────────────────────────────
# EVM
# ─────────────────────────────────────────────────────────────

def _normalize_evm(
    raw: RawActivityRecord,
    asset: TrackedAsset,
    wallet_address: str,
) -> Optional[NormalizedTransaction]:
    log = raw.payload
    if log.get("removed"):
        return None

    topics = _require(log, "topics", "evm")
    if len(topics) < 3:
        raise ParseError("Transfer log without indexed from/to", chain="evm", raw_data=log)

    from_address = "0x" + topics[1][-40:].lower()
    to_address = "0x" + topics[2][-40:].lower()

    direction = raw.direction
    if direction is None:
        wallet = wallet_address.lower()
        if to_address == wallet:
            direction = Direction.RECEIVE
        elif from_address == wallet:
            direction = Direction.SEND
        else:
            return None

    block_number = log.get("blockNumber")

    return NormalizedTransaction(
        tx_hash=_require(log, "transactionHash", "evm"),
        direction=direction,
        status=TxStatus.CONFIRMED,
        asset_symbol=asset.symbol,
        chain=asset.chain,
        amount=format_units(log.get("data") or "0x0", asset.decimals),
        from_address=from_address,
        to_address=to_address,
        block_number=parse_int(block_number) if block_number is not None else None,
        fee_asset=EVM_FEE_ASSETS.get(asset.chain, "ETH"),
    )


# ─────────────────────────────────────────────────────────────
# Solana
# ─────────────────────────────────────────────────────────────

def _owned_token_amount(
    balances: list[dict[str, Any]],
    mint: str,
    owner: str,
) -> int:
    total = 0
    for balance in balances:
        if balance.get("mint") == mint and balance.get("owner") == owner:
            total += parse_int((balance.get("uiTokenAmount") or {}).get("amount") or 0)
    return total


def _account_index(account_keys: list[Any], address: str) -> Optional[int]:
    for index, key in enumerate(account_keys):
        pubkey = key if isinstance(key, str) else (key or {}).get("pubkey")
        if pubkey == address:
            return index
    return None


def _normalize_svm(
    raw: RawActivityRecord,
    asset: TrackedAsset,
    wallet_address: str,
) -> Optional[NormalizedTransaction]:
    tx = raw.payload
    sig_info = raw.context.get("signature") or {}
    meta = tx.get("meta") or {}
    transaction = tx.get("transaction") or {}

    signature = sig_info.get("signature") or next(iter(transaction.get("signatures") or []), None)

    if asset.is_token:
        pre = _owned_token_amount(meta.get("preTokenBalances") or [], asset.contract_address, wallet_address)
        post = _owned_token_amount(meta.get("postTokenBalances") or [], asset.contract_address, wallet_address)
    else:
        account_keys = (transaction.get("message") or {}).get("accountKeys") or []
        index = _account_index(account_keys, wallet_address)
        if index is None:
            return None
        pre = parse_int(meta["preBalances"][index])
        post = parse_int(meta["postBalances"][index])

    delta = post - pre
    if delta == 0:
        return None

    direction = Direction.RECEIVE if delta > 0 else Direction.SEND
    fee = meta.get("fee")

    return NormalizedTransaction(
        tx_hash=signature or "",
        direction=direction,
        status=TxStatus.FAILED if meta.get("err") else TxStatus.CONFIRMED,
        asset_symbol=asset.symbol,
        chain=asset.chain,
        amount=format_units(delta, asset.decimals),
        from_address=wallet_address if direction == Direction.SEND else UNKNOWN_ADDRESS,
        to_address=wallet_address if direction == Direction.RECEIVE else UNKNOWN_ADDRESS,
        block_number=sig_info.get("slot", tx.get("slot")),
        block_timestamp=sig_info.get("blockTime", tx.get("blockTime")),
        fee=format_units(fee, SOL_DECIMALS) if fee is not None else None,
        fee_asset="SOL",
    )


# ─────────────────────────────────────────────────────────────
# TRON
# ─────────────────────────────────────────────────────────────

def _match_direction(from_address: str, to_address: str, wallet_address: str) -> Optional[Direction]:
    wallet = wallet_address.lower()
    if from_address.lower() == wallet:
        return Direction.SEND
    if to_address.lower() == wallet:
        return Direction.RECEIVE
    return None


def _ms_to_seconds(value: Any) -> Optional[int]:
    return int(value) // 1000 if value else None


def _normalize_tron(
    raw: RawActivityRecord,
    asset: TrackedAsset,
    wallet_address: str,
) -> Optional[NormalizedTransaction]:
    tx = raw.payload

    # TRC20 transfer list entry
    if "token_info" in tx:
        from_address = tx.get("from") or ""
        to_address = tx.get("to") or ""
        direction = _match_direction(from_address, to_address, wallet_address)
        if direction is None:
            return None

        return NormalizedTransaction(
            tx_hash=_require(tx, "transaction_id", "tron"),
            direction=direction,
            status=TxStatus.CONFIRMED,
            asset_symbol=asset.symbol,
            chain=asset.chain,
            amount=format_units(tx.get("value") or 0, asset.decimals),
            from_address=from_address,
            to_address=to_address,
            block_timestamp=_ms_to_seconds(tx.get("block_timestamp")),
            fee_asset="TRX",
        )

    # Native TRX transaction
    contracts = (tx.get("raw_data") or {}).get("contract") or []
    if not contracts or contracts[0].get("type") != "TransferContract":
        return None

    value = (contracts[0].get("parameter") or {}).get("value") or {}
    from_address = value.get("owner_address") or ""
    to_address = value.get("to_address") or ""
    direction = _match_direction(from_address, to_address, wallet_address)
    if direction is None:
        return None

    ret = (tx.get("ret") or [{}])[0]
    fee = ret.get("fee")

    return NormalizedTransaction(
        tx_hash=_require(tx, "txID", "tron"),
        direction=direction,
        status=TxStatus.CONFIRMED if ret.get("contractRet") == "SUCCESS" else TxStatus.FAILED,
        asset_symbol=asset.symbol,
        chain=asset.chain,
        amount=format_units(value.get("amount") or 0, asset.decimals),
        from_address=from_address,
        to_address=to_address,
        block_number=tx.get("blockNumber"),
        block_timestamp=_ms_to_seconds(tx.get("block_timestamp")),
        fee=format_units(fee, TRX_DECIMALS) if fee is not None else None,
        fee_asset="TRX",
    )


# ─────────────────────────────────────────────────────────────
# TON
# ─────────────────────────────────────────────────────────────

def _ton_account(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("account_address") or UNKNOWN_ADDRESS
    return value or UNKNOWN_ADDRESS


def _normalize_ton(
    raw: RawActivityRecord,
    asset: TrackedAsset,
    wallet_address: str,
) -> Optional[NormalizedTransaction]:
    tx = raw.payload
    in_msg = tx.get("in_msg") or {}
    out_msgs = tx.get("out_msgs") or []

    if out_msgs:
        message = out_msgs[0]
        direction = Direction.SEND
        from_address = wallet_address
        to_address = _ton_account(message.get("destination"))
    elif in_msg.get("source"):
        message = in_msg
        direction = Direction.RECEIVE
        from_address = _ton_account(in_msg.get("source"))
        to_address = wallet_address
    else:
        return None

    tx_hash = (tx.get("transaction_id") or {}).get("hash") or tx.get("hash") or ""

    return NormalizedTransaction(
        tx_hash=tx_hash,
        direction=direction,
        status=TxStatus.CONFIRMED,
        asset_symbol=asset.symbol,
        chain=asset.chain,
        amount=format_units(message.get("value") or 0, asset.decimals),
        from_address=from_address,
        to_address=to_address,
        block_timestamp=tx.get("utime"),
        fee=format_units(tx.get("fee") or 0, asset.decimals),
        fee_asset="TON",
    )


# ─────────────────────────────────────────────────────────────
# Bitcoin
# ─────────────────────────────────────────────────────────────

def _normalize_btc(
    raw: RawActivityRecord,
    asset: TrackedAsset,
    wallet_address: str,
) -> Optional[NormalizedTransaction]:
    tx = raw.payload
    owned_inputs = 0
    owned_outputs = 0
    input_addresses: list[str] = []
    output_addresses: list[str] = []

    for vin in tx.get("vin") or []:
        prevout = vin.get("prevout") or {}
        address = prevout.get("scriptpubkey_address")
        if address:
            input_addresses.append(address)
            if address == wallet_address:
                owned_inputs += parse_int(prevout.get("value") or 0)

    for vout in tx.get("vout") or []:
        address = vout.get("scriptpubkey_address")
        if address:
            output_addresses.append(address)
            if address == wallet_address:
                owned_outputs += parse_int(vout.get("value") or 0)

    fee = parse_int(tx.get("fee") or 0)

    if owned_inputs and owned_outputs:
        net = owned_inputs - owned_outputs - fee
        direction = Direction.SEND if net > 0 else Direction.RECEIVE
        amount = abs(net)
    elif owned_inputs:
        direction = Direction.SEND
        amount = owned_inputs - fee
    elif owned_outputs:
        direction = Direction.RECEIVE
        amount = owned_outputs
    else:
        return None

    counterparties = [a for a in output_addresses if a != wallet_address]
    status = tx.get("status") or {}

    return NormalizedTransaction(
        tx_hash=_require(tx, "txid", "btc"),
        direction=direction,
        status=TxStatus.CONFIRMED if status.get("confirmed") else TxStatus.PENDING,
        asset_symbol=asset.symbol,
        chain=asset.chain,
        amount=format_units(amount, asset.decimals),
        from_address=input_addresses[0] if input_addresses else UNKNOWN_ADDRESS,
        to_address=(counterparties or output_addresses or [UNKNOWN_ADDRESS])[0],
        block_number=status.get("block_height"),
        block_timestamp=status.get("block_time"),
        fee=format_units(fee, asset.decimals),
        fee_asset="BTC",
    )


# ─────────────────────────────────────────────────────────────
# Normalizer
# ─────────────────────────────────────────────────────────────

Parser = Callable[[RawActivityRecord, TrackedAsset, str], Optional[NormalizedTransaction]]

PARSERS: dict[ChainType, Parser] = {
    ChainType.EVM: _normalize_evm,
    ChainType.SVM: _normalize_svm,
    ChainType.TRON: _normalize_tron,
    ChainType.TON: _normalize_ton,
    ChainType.BTC: _normalize_btc,
}


class TransactionNormalizer:
    """
    Maps raw records to NormalizedTransaction, or None.

    Never raises: malformed payloads are counted and dropped.
    """

    def __init__(self) -> None:
        self._parsers: dict[ChainType, Parser] = dict(PARSERS)
        self._stats = {
            "normalized": 0,
            "discarded": 0,
        }

    def normalize(
        self,
        raw: RawActivityRecord,
        asset: TrackedAsset,
        wallet_address: str,
    ) -> Optional[NormalizedTransaction]:
        parser = self._parsers.get(raw.chain_type)
        if parser is None:
            logger.debug(f"[normalize] No parser for {raw.chain_type}")
            self._stats["discarded"] += 1
            return None

        try:
            tx = parser(raw, asset, wallet_address)
        except Exception as e:
            logger.debug(f"[normalize] Dropping unparseable {raw.chain_type.value} record: {e}")
            self._stats["discarded"] += 1
            return None

        if tx is None or not tx.tx_hash:
            self._stats["discarded"] += 1
            return None

        self._stats["normalized"] += 1
        return tx

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
