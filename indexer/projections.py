"""Module side-table projections.

Runs after a block is committed. Every message type with a side table has a
pure row builder and a store writer; each writer is keyed so replaying a
block applies nothing twice. A failing message is logged and skipped, it
never touches the committed block.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from decoders import types as t
from .events import DEPOSIT_NEW, WITHDRAWAL_NEW

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

def _base(tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {'tx_hash': tx_hash, 'msg_index': msg_index, 'block_height': block_height}

def build_deposit_vote(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'reserve_address': data.get('reserve_address'),
        'deposit_amount': data['deposit_amount'],
        'btc_height': data['btc_height'],
        'btc_hash': data['btc_hash'],
        'twilight_deposit_address': data['twilight_deposit_address'],
        'oracle_address': data.get('oracle_address'),
    }

def build_deposit_address(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'btc_deposit_address': data['btc_deposit_address'],
        'btc_satoshi_test_amount': data['btc_satoshi_test_amount'],
        'twilight_staking_amount': data['twilight_staking_amount'],
        'twilight_address': data.get('twilight_address'),
    }

def build_withdrawal(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'withdraw_address': data['withdraw_address'],
        'reserve_id': data['reserve_id'],
        'withdraw_amount': data['withdraw_amount'],
        'twilight_address': data.get('twilight_address'),
    }

def build_sweep_proposal(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    row = _base(tx_hash, msg_index, block_height)
    for key in ('reserve_id', 'btc_block_number', 'btc_relay_capacity_value',
                'unlock_height', 'round_id'):
        row[key] = data[key]
    for key in ('new_reserve_address', 'judge_address', 'btc_tx_hash', 'oracle_address'):
        row[key] = data.get(key)
    return row

def _build_signature(field: str) -> Callable[..., Row]:
    def build(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
        return {
            **_base(tx_hash, msg_index, block_height),
            'reserve_id': data['reserve_id'],
            'round_id': data['round_id'],
            'signer_address': data['signer_address'],
            'signer_public_key': data.get('signer_public_key'),
            field: list(data[field]),
        }
    return build

build_sweep_signature = _build_signature('sweep_signatures')
build_refund_signature = _build_signature('refund_signatures')

def _build_broadcast(kind: str, field: str) -> Callable[..., Row]:
    def build(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
        return {
            **_base(tx_hash, msg_index, block_height),
            'kind': kind,
            'reserve_id': data['reserve_id'],
            'round_id': data['round_id'],
            'signed_tx': data[field],
            'judge_address': data.get('judge_address'),
        }
    return build

build_sweep_broadcast = _build_broadcast('sweep', 'signed_sweep_tx')
build_refund_broadcast = _build_broadcast('refund', 'signed_refund_tx')

def build_delegate_keys(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'validator_address': data['validator_address'],
        'btc_oracle_address': data.get('btc_oracle_address'),
        'btc_public_key': data.get('btc_public_key'),
        'zk_oracle_address': data.get('zk_oracle_address'),
    }

def build_chain_tip(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'btc_height': data['btc_height'],
        'btc_hash': data['btc_hash'],
        'btc_oracle_address': data['btc_oracle_address'],
    }

def build_fragment_signer(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'fragment_id': data['fragment_id'],
        'signer_address': data['signer_address'],
        'application_fee': data['application_fee'],
        'fee_bips': data['fee_bips'],
        'btc_pub_key': data.get('btc_pub_key'),
    }

def build_mint_burn(data: Row, tx_hash: str, msg_index: int, block_height: int) -> Row:
    return {
        **_base(tx_hash, msg_index, block_height),
        'mint_or_burn': data['mint_or_burn'],
        'btc_value': data['btc_value'],
        'qq_account': data.get('qq_account'),
        'encrypt_scalar': data.get('encrypt_scalar'),
        'twilight_address': data.get('twilight_address'),
    }

def build_zkos_transfer(data: Row, tx_hash: str) -> Row:
    """Pending enrichment row, written inside the block commit."""
    return {
        'tx_hash': tx_hash,
        'zk_tx_id': data['zk_tx_id'],
        'tx_byte_code': data['tx_byte_code'],
        'tx_fee': data['tx_fee'],
        'zk_oracle_address': data.get('zk_oracle_address'),
    }

# message type -> (row builder, store writer name, channel on first write)
PROJECTIONS: Dict[str, Tuple[Callable[..., Row], str, Optional[str]]] = {
    t.CONFIRM_BTC_DEPOSIT: (build_deposit_vote, 'apply_deposit_vote', DEPOSIT_NEW),
    t.REGISTER_BTC_DEPOSIT_ADDRESS: (build_deposit_address, 'upsert_deposit_address', None),
    t.WITHDRAW_BTC_REQUEST: (build_withdrawal, 'insert_withdrawal', WITHDRAWAL_NEW),
    t.SWEEP_PROPOSAL: (build_sweep_proposal, 'insert_sweep_proposal', None),
    t.SIGN_SWEEP: (build_sweep_signature, 'upsert_sweep_signature', None),
    t.SIGN_REFUND: (build_refund_signature, 'upsert_refund_signature', None),
    t.BROADCAST_TX_SWEEP: (build_sweep_broadcast, 'insert_broadcast', None),
    t.BROADCAST_TX_REFUND: (build_refund_broadcast, 'insert_broadcast', None),
    t.SET_DELEGATE_ADDRESSES: (build_delegate_keys, 'upsert_delegate_keys', None),
    t.SEEN_BTC_CHAIN_TIP: (build_chain_tip, 'insert_chain_tip', None),
    t.SIGNER_APPLICATION: (build_fragment_signer, 'upsert_fragment_signer', None),
    t.MINT_BURN_TRADING_BTC: (build_mint_burn, 'insert_mint_burn', None),
}

def is_first_write(result: Any) -> bool:
    """Whether a writer result means the record is new.

    Deposit votes report 'created' only for the first vote on a deposit;
    the other writers report True when their row was inserted.
    """
    if isinstance(result, str):
        return result == 'created'
    return bool(result)

async def project_transaction(store, bus, tx: Dict[str, Any], block_height: int) -> int:
    """Write the side-table rows of one committed transaction.

    Args:
        store: IndexerStore
        bus: EventBus receiving deposit and withdrawal events
        tx: Transaction record carrying its ``decoded`` messages
        block_height: Height the transaction was committed at

    Returns:
        Number of messages projected without error
    """
    projected = 0
    decoded: List[Dict[str, Any]] = tx.get('decoded', [])

    for msg_index, msg in enumerate(decoded):
        projection = PROJECTIONS.get(msg['type'])
        if projection is None:
            continue

        build, writer, channel = projection
        try:
            row = build(msg['data'], tx['hash'], msg_index, block_height)
            result = await getattr(store, writer)(row)
        except Exception as e:
            logger.warning(
                f"Skipping {msg['type_name']} projection for tx {tx['hash']} "
                f"message {msg_index}: {e!r}"
            )
            continue

        projected += 1
        if channel and is_first_write(result):
            bus.publish(channel, row)

    return projected
