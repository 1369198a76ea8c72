"""Shared fixtures: in-memory stand-ins for the store, the LCD and the lease."""
import asyncio
import copy

import pytest

from indexer.events import EventBus
from indexer.state import TaskState
from indexer.sync import SyncEngine
from lcd import LcdHttpError, NodeConnectionError

CONFIRM_DEPOSIT = '/twilightproject.nyks.bridge.MsgConfirmBtcDeposit'
TRANSFER_TX = '/twilightproject.nyks.zkos.MsgTransferTx'
WITHDRAW_REQUEST = '/twilightproject.nyks.bridge.MsgWithdrawBtcRequest'

ORACLE = 'twilight1oracleqqqqqqqqqqqqqqqqqqqqqqqqqqqq'
DEPOSITOR = 'twilight1depositorqqqqqqqqqqqqqqqqqqqqqqqqq'


def block_hash(height):
    return f"HASH{height:06d}"


def make_block(height, parent_hash=None, time='2024-05-01T12:00:00.123456789Z'):
    if parent_hash is None and height > 1:
        parent_hash = block_hash(height - 1)
    return {
        'block_id': {'hash': block_hash(height)},
        'block': {
            'header': {
                'height': str(height),
                'time': time,
                'proposer_address': 'PROPOSER1',
                'last_block_id': {'hash': parent_hash or ''},
            }
        }
    }


def make_tx(tx_hash, messages, code=0, gas_used='1000', gas_wanted='2000', events=None):
    return {
        'txhash': tx_hash,
        'code': code,
        'raw_log': 'out of gas' if code else '',
        'gas_used': gas_used,
        'gas_wanted': gas_wanted,
        'tx': {
            'body': {'messages': messages, 'memo': ''},
            'auth_info': {
                'signer_infos': [{'public_key': {'key': 'A1b2C3pubkey'}}],
                'fee': {'amount': [{'denom': 'nyks', 'amount': '100'}], 'gas_limit': gas_wanted},
            },
        },
        'events': events if events is not None else [
            {'type': 'message', 'attributes': [{'key': 'action', 'value': messages[0]['@type'] if messages else ''}]}
        ],
    }


def confirm_deposit_msg(btc_hash='btchash01', amount='150000'):
    return {
        '@type': CONFIRM_DEPOSIT,
        'reserveAddress': 'bc1qreserveaddress',
        'depositAmount': amount,
        'height': '840000',
        'hash': btc_hash,
        'twilightDepositAddress': DEPOSITOR,
        'oracleAddress': ORACLE,
    }


def transfer_msg(zk_tx_id='zk-0001'):
    return {
        '@type': TRANSFER_TX,
        'txId': zk_tx_id,
        'txByteCode': '0a0b0c0d',
        'txFee': '1',
        'zkOracleAddress': ORACLE,
    }


class FakeStore:
    """Dict-backed store with the same write semantics as IndexerStore."""

    def __init__(self):
        self.checkpoint = None
        self.blocks = {}
        self.transactions = {}
        self.events = []
        self.accounts = {}
        self.transfers = {}
        self.deposits = {}
        self.deposit_votes = set()
        self.withdrawals = {}
        self.side_rows = {}
        self.commits = 0
        self.fail_commits = 0

    async def get_checkpoint(self):
        return self.checkpoint

    async def get_block_hash(self, height):
        block = self.blocks.get(height)
        return block['hash'] if block else None

    async def commit_block(self, block, transactions, events, zkos_transfers):
        if self.fail_commits:
            self.fail_commits -= 1
            raise ConnectionError("database went away")

        height = block['height']
        self.blocks[height] = dict(block)

        new_hashes = []
        for tx in transactions:
            if tx['hash'] not in self.transactions:
                self.transactions[tx['hash']] = copy.deepcopy(tx)
                new_hashes.append(tx['hash'])

        self.events = [e for e in self.events if e['block_height'] != height]
        self.events.extend({**e, 'block_height': height} for e in events)

        for transfer in zkos_transfers:
            if not any(t['zk_tx_id'] == transfer['zk_tx_id'] for t in self.transfers.values()):
                transfer_id = len(self.transfers) + 1
                self.transfers[transfer_id] = {
                    **transfer,
                    'id': transfer_id,
                    'block_height': height,
                    'decode_status': 'pending',
                    'decode_attempts': 0,
                    'last_decode_error': None,
                    'decoded_data': None,
                    'program_type': None,
                }

        for tx in transactions:
            if tx['hash'] in new_hashes:
                for address in tx['addresses']:
                    account = self.accounts.setdefault(
                        address, {'tx_count': 0, 'first_seen': tx['block_time']}
                    )
                    account['tx_count'] += 1
                    account['last_seen'] = tx['block_time']

        if self.checkpoint is None or self.checkpoint < height:
            self.checkpoint = height
        self.commits += 1
        return new_hashes

    async def reset_checkpoint(self, height):
        removed = [h for h in self.blocks if h > height]
        for h in removed:
            del self.blocks[h]
        self.checkpoint = height
        return len(removed)

    # Enrichment queue

    async def fetch_pending_transfers(self, limit, max_attempts):
        pending = [
            dict(t) for t in sorted(self.transfers.values(), key=lambda t: t['id'])
            if t['decode_status'] == 'pending' and t['decode_attempts'] < max_attempts
        ]
        return pending[:limit]

    async def mark_transfer_decoded(self, transfer_id, decoded_data, inputs, outputs, program_type):
        record = self.transfers[transfer_id]
        if record['decode_status'] != 'pending':
            return
        record.update(
            decoded_data=decoded_data,
            inputs=inputs,
            outputs=outputs,
            program_type=program_type,
            decode_status='ok',
            decode_attempts=record['decode_attempts'] + 1,
            last_decode_error=None,
        )

    async def mark_transfer_failed(self, transfer_id, error, max_attempts):
        record = self.transfers[transfer_id]
        if record['decode_status'] != 'pending':
            return None
        record['decode_attempts'] += 1
        record['last_decode_error'] = error
        record['decode_status'] = 'failed' if record['decode_attempts'] >= max_attempts else 'pending'
        return record['decode_status']

    # Side tables

    async def apply_deposit_vote(self, row):
        vote_key = (row['tx_hash'], row['msg_index'])
        if vote_key in self.deposit_votes:
            return None
        self.deposit_votes.add(vote_key)

        key = (row['btc_hash'], row['twilight_deposit_address'])
        if key in self.deposits:
            self.deposits[key]['votes'] += 1
            return 'voted'
        self.deposits[key] = {**row, 'votes': 1}
        return 'created'

    async def insert_withdrawal(self, row):
        key = (row['tx_hash'], row['msg_index'])
        if key in self.withdrawals:
            return False
        self.withdrawals[key] = row
        return True

    def _keep(self, table, key, row):
        rows = self.side_rows.setdefault(table, {})
        inserted = key not in rows
        rows[key] = row
        return inserted

    async def upsert_deposit_address(self, row):
        return self._keep('btc_deposit_addresses', row['btc_deposit_address'], row) or True

    async def insert_sweep_proposal(self, row):
        return self._keep('sweep_proposals', (row['tx_hash'], row['msg_index']), row)

    async def upsert_sweep_signature(self, row):
        return self._keep('sweep_signatures', (row['reserve_id'], row['round_id'], row['signer_address']), row) or True

    async def upsert_refund_signature(self, row):
        return self._keep('refund_signatures', (row['reserve_id'], row['round_id'], row['signer_address']), row) or True

    async def insert_broadcast(self, row):
        return self._keep('btc_broadcasts', (row['tx_hash'], row['msg_index']), row)

    async def upsert_delegate_keys(self, row):
        return self._keep('delegate_keys', row['validator_address'], row) or True

    async def insert_chain_tip(self, row):
        return self._keep('btc_chain_tips', (row['btc_height'], row['btc_oracle_address']), row)

    async def upsert_fragment_signer(self, row):
        return self._keep('fragment_signers', (row['fragment_id'], row['signer_address']), row) or True

    async def insert_mint_burn(self, row):
        return self._keep('zkos_mint_burns', (row['tx_hash'], row['msg_index']), row)


class FakeLcd:
    """Serves a scripted chain; heights can be made to fail a number of times."""

    def __init__(self):
        self.blocks = {}
        self.txs = {}
        self.head = 0
        self.failures = {}
        self.block_requests = []

    def add_block(self, height, tx_responses=(), parent_hash=None, **kwargs):
        self.blocks[height] = make_block(height, parent_hash, **kwargs)
        self.txs[height] = list(tx_responses)
        self.head = max(self.head, height)

    def get_latest_block_height(self):
        return self.head

    def get_block(self, height):
        self.block_requests.append(height)
        if self.failures.get(height):
            self.failures[height] -= 1
            raise NodeConnectionError("Request timed out after 30 seconds", f"/blocks/{height}")
        if height not in self.blocks:
            raise LcdHttpError("height not available", 404, f"/blocks/{height}")
        return self.blocks[height]

    def get_txs_by_height(self, height):
        return list(self.txs.get(height, []))

    def close(self):
        pass


class LeaseResource:
    """A named lock shared by FakeLease instances."""

    def __init__(self):
        self.holder = None


class FakeLease:
    def __init__(self, resource):
        self.resource = resource
        self.released = False

    async def acquire(self):
        if self.resource.holder not in (None, self):
            return False
        self.resource.holder = self
        return True

    async def release(self):
        if self.resource.holder is self:
            self.resource.holder = None
            self.released = True


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def lcd():
    return FakeLcd()


@pytest.fixture
def lease_resource():
    return LeaseResource()


@pytest.fixture
def bus():
    return EventBus(asyncio.Queue())


@pytest.fixture
def make_engine(store, lcd, lease_resource, bus):
    def factory(**kwargs):
        options = dict(poll_interval=0.01, error_backoff=0.01, batch_size=10)
        options.update(kwargs)
        return SyncEngine(
            options.pop('store', store),
            options.pop('lcd', lcd),
            FakeLease(lease_resource),
            options.pop('bus', bus),
            state=options.pop('state', TaskState()),
            **options
        )
    return factory


async def run_until(engine, condition, timeout=5.0):
    """Run an engine until ``condition()`` holds, then stop it."""
    task = asyncio.create_task(engine.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while not task.done() and not condition():
        if loop.time() > deadline:
            engine.state.stop()
            await task
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)

    engine.state.stop()
    return await task
