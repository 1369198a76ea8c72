"""zkOS module decoders.

Only the on-chain envelope is decoded here. The transfer bytecode itself is
decoded later by the enrichment worker through the external decode API.
"""
from typing import Any, Dict

from . import types as t
from .types import to_int


def decode_transfer_tx(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'zk_tx_id': msg['txId'],
        'tx_byte_code': msg['txByteCode'],
        'tx_fee': to_int(msg.get('txFee')),
        'zk_oracle_address': msg.get('zkOracleAddress'),
    }


def decode_mint_burn_trading_btc(msg: Dict[str, Any]) -> Dict[str, Any]:
    mint_or_burn = msg.get('mintOrBurn', False)
    if not isinstance(mint_or_burn, bool):
        raise ValueError(f"mintOrBurn must be a boolean, got {mint_or_burn!r}")
    return {
        'mint_or_burn': mint_or_burn,
        'btc_value': to_int(msg.get('btcValue')),
        'qq_account': msg.get('qqAccount'),  # QuisQuis account, 266 hex chars
        'encrypt_scalar': msg.get('encryptScalar'),
        'twilight_address': msg.get('twilightAddress'),
    }


DECODERS = {
    t.TRANSFER_TX: decode_transfer_tx,
    t.MINT_BURN_TRADING_BTC: decode_mint_burn_trading_btc,
}
