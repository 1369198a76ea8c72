"""Bridge module decoders.

The bridge module moves BTC in and out of Twilight: oracles confirm deposits,
users request withdrawals, and reserve judges and signers coordinate sweep
and refund transactions.
"""
from typing import Any, Dict

from . import types as t
from .types import to_int


def decode_confirm_btc_deposit(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_address': msg['reserveAddress'],
        'deposit_amount': to_int(msg.get('depositAmount')),
        'btc_height': to_int(msg.get('height')),
        'btc_hash': msg['hash'],
        'twilight_deposit_address': msg['twilightDepositAddress'],
        'oracle_address': msg.get('oracleAddress'),
    }


def decode_register_btc_deposit_address(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'btc_deposit_address': msg['btcDepositAddress'],
        'btc_satoshi_test_amount': to_int(msg.get('btcSatoshiTestAmount')),
        'twilight_staking_amount': to_int(msg.get('twilightStakingAmount')),
        'twilight_address': msg.get('twilightAddress'),
    }


def decode_register_reserve_address(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'fragment_id': to_int(msg.get('fragmentId')),
        'reserve_script': msg.get('reserveScript'),
        'reserve_address': msg.get('reserveAddress'),
        'judge_address': msg.get('judgeAddress'),
    }


def decode_bootstrap_fragment(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'judge_address': msg.get('judgeAddress'),
        'num_of_signers': to_int(msg.get('numOfSigners')),
        'threshold': to_int(msg.get('threshold')),
        'signer_application_fee': to_int(msg.get('signerApplicationFee')),
        'fragment_fee_bips': to_int(msg.get('fragmentFeeBips')),
        'arbitrary_data': msg.get('arbitraryData'),
        'validator_address': msg.get('validatorAddress'),
    }


def decode_withdraw_btc_request(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'withdraw_address': msg['withdrawAddress'],
        'reserve_id': to_int(msg.get('reserveId')),
        'withdraw_amount': to_int(msg.get('withdrawAmount')),
        'twilight_address': msg.get('twilightAddress'),
    }


def decode_sweep_proposal(msg: Dict[str, Any]) -> Dict[str, Any]:
    # The chain emits BtcBlockNumber and UnlockHeight capitalized
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'new_reserve_address': msg.get('newReserveAddress'),
        'judge_address': msg.get('judgeAddress'),
        'btc_block_number': to_int(msg.get('BtcBlockNumber')),
        'btc_relay_capacity_value': to_int(msg.get('btcRelayCapacityValue')),
        'btc_tx_hash': msg.get('btcTxHash'),
        'unlock_height': to_int(msg.get('UnlockHeight')),
        'round_id': to_int(msg.get('roundId')),
        'oracle_address': msg.get('oracleAddress'),
    }


def decode_withdraw_tx_signed(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'creator': msg.get('creator'),
        'validator_address': msg.get('validatorAddress'),
        'btc_tx_signed': msg.get('btcTxSigned'),
    }


def decode_withdraw_tx_final(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'creator': msg.get('creator'),
        'judge_address': msg.get('judgeAddress'),
        'btc_tx': msg.get('btcTx'),
    }


def decode_confirm_btc_withdraw(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'btc_tx_hash': msg.get('txHash'),
        'btc_height': to_int(msg.get('height')),
        'btc_hash': msg.get('hash'),
        'judge_address': msg.get('judgeAddress'),
    }


def decode_sign_refund(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'signer_public_key': msg.get('signerPublicKey'),
        'refund_signatures': list(msg.get('refundSignature') or []),
        'signer_address': msg['signerAddress'],
    }


def decode_broadcast_tx_sweep(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'signed_sweep_tx': msg['signedSweepTx'],
        'judge_address': msg.get('judgeAddress'),
    }


def decode_sign_sweep(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'signer_public_key': msg.get('signerPublicKey'),
        'sweep_signatures': list(msg.get('sweepSignature') or []),
        'signer_address': msg['signerAddress'],
    }


def decode_propose_refund_hash(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'refund_hash': msg.get('refundHash'),
        'judge_address': msg.get('judgeAddress'),
    }


def decode_unsigned_tx_sweep(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'tx_id': msg.get('txId'),
        'btc_unsigned_sweep_tx': msg.get('btcUnsignedSweepTx'),
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'judge_address': msg.get('judgeAddress'),
    }


def decode_unsigned_tx_refund(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'btc_unsigned_refund_tx': msg.get('btcUnsignedRefundTx'),
        'judge_address': msg.get('judgeAddress'),
    }


def decode_broadcast_tx_refund(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'signed_refund_tx': msg['signedRefundTx'],
        'judge_address': msg.get('judgeAddress'),
    }


def decode_propose_sweep_address(msg: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'btc_address': msg.get('btcAddress'),
        'btc_script': msg.get('btcScript'),
        'reserve_id': to_int(msg.get('reserveId')),
        'round_id': to_int(msg.get('roundId')),
        'judge_address': msg.get('judgeAddress'),
    }


DECODERS = {
    t.CONFIRM_BTC_DEPOSIT: decode_confirm_btc_deposit,
    t.REGISTER_BTC_DEPOSIT_ADDRESS: decode_register_btc_deposit_address,
    t.REGISTER_RESERVE_ADDRESS: decode_register_reserve_address,
    t.BOOTSTRAP_FRAGMENT: decode_bootstrap_fragment,
    t.WITHDRAW_BTC_REQUEST: decode_withdraw_btc_request,
    t.SWEEP_PROPOSAL: decode_sweep_proposal,
    t.WITHDRAW_TX_SIGNED: decode_withdraw_tx_signed,
    t.WITHDRAW_TX_FINAL: decode_withdraw_tx_final,
    t.CONFIRM_BTC_WITHDRAW: decode_confirm_btc_withdraw,
    t.SIGN_REFUND: decode_sign_refund,
    t.BROADCAST_TX_SWEEP: decode_broadcast_tx_sweep,
    t.SIGN_SWEEP: decode_sign_sweep,
    t.PROPOSE_REFUND_HASH: decode_propose_refund_hash,
    t.UNSIGNED_TX_SWEEP: decode_unsigned_tx_sweep,
    t.UNSIGNED_TX_REFUND: decode_unsigned_tx_refund,
    t.BROADCAST_TX_REFUND: decode_broadcast_tx_refund,
    t.PROPOSE_SWEEP_ADDRESS: decode_propose_sweep_address,
}
