"""Volt module decoders: fragment signer applications and acceptance."""
from typing import Any, Dict

from . import types as t
from .types import to_int


def decode_signer_application(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'fragment_id': to_int(msg.get('fragmentId')),
        'application_fee': to_int(msg.get('applicationFee')),
        'fee_bips': to_int(msg.get('feeBips')),
        'btc_pub_key': msg.get('btcPubKey'),
        'signer_address': msg['signerAddress'],
    }


def decode_accept_signers(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'fragment_id': to_int(msg.get('fragmentId')),
        'signer_application_ids': [to_int(i) for i in msg.get('signerApplicationIds') or []],
        'judge_address': msg.get('judgeAddress'),
    }


DECODERS = {
    t.SIGNER_APPLICATION: decode_signer_application,
    t.ACCEPT_SIGNERS: decode_accept_signers,
}
