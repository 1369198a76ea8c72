"""Forks module decoders: validator delegate keys and BTC chain tip reports."""
from typing import Any, Dict

from . import types as t
from .types import to_int


def decode_set_delegate_addresses(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'validator_address': msg['validatorAddress'],
        'btc_oracle_address': msg.get('btcOracleAddress'),
        'btc_public_key': msg.get('btcPublicKey'),
        'zk_oracle_address': msg.get('zkOracleAddress') or None,
    }


def decode_seen_btc_chain_tip(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'btc_height': to_int(msg.get('height')),
        'btc_hash': msg['hash'],
        'btc_oracle_address': msg['btcOracleAddress'],
    }


DECODERS = {
    t.SET_DELEGATE_ADDRESSES: decode_set_delegate_addresses,
    t.SEEN_BTC_CHAIN_TIP: decode_seen_btc_chain_tip,
}
