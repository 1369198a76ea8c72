"""Tests for the zkOS enrichment worker."""
import asyncio

import pytest

from indexer.state import TaskState
from workers.decode_api import DecodeApiError
from workers.enrichment import EnrichmentWorker

DECODED = {
    'inputs': [{'account': 'qq-in'}],
    'outputs': [{'account': 'qq-out'}],
    'summary': {'program_type': 'CreateTraderOrder'},
    'tx_type': 'Script',
}

class ScriptedDecodeClient:
    """Returns or raises the scripted outcomes in order, per bytecode."""

    def __init__(self, outcomes=None, default=None):
        self.outcomes = {key: list(value) for key, value in (outcomes or {}).items()}
        self.default = default
        self.calls = []

    def decode(self, tx_byte_code):
        self.calls.append(tx_byte_code)
        queue = self.outcomes.get(tx_byte_code)
        outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

def add_transfer(store, transfer_id, tx_byte_code='00ff'):
    store.transfers[transfer_id] = {
        'id': transfer_id,
        'tx_hash': f"TX{transfer_id}",
        'zk_tx_id': f"zk-{transfer_id}",
        'tx_byte_code': tx_byte_code,
        'decode_status': 'pending',
        'decode_attempts': 0,
        'last_decode_error': None,
        'decoded_data': None,
        'program_type': None,
    }
    return store.transfers[transfer_id]

def make_worker(store, client, **kwargs):
    return EnrichmentWorker(store, client, state=TaskState(), poll_interval=0.01, **kwargs)

@pytest.mark.asyncio
async def test_successful_decode(store):
    record = add_transfer(store, 1)
    worker = make_worker(store, ScriptedDecodeClient(default=DECODED))

    assert await worker.process_batch() == 1

    assert record['decode_status'] == 'ok'
    assert record['decode_attempts'] == 1
    assert record['program_type'] == 'CreateTraderOrder'
    assert record['inputs'] == DECODED['inputs']
    assert record['outputs'] == DECODED['outputs']
    assert record['decoded_data'] == DECODED
    assert record['last_decode_error'] is None

@pytest.mark.asyncio
async def test_program_type_falls_back_to_tx_type(store):
    record = add_transfer(store, 1)
    payload = {'inputs': [], 'outputs': [], 'tx_type': 'Transfer'}
    worker = make_worker(store, ScriptedDecodeClient(default=payload))

    await worker.process_batch()

    assert record['program_type'] == 'Transfer'

@pytest.mark.asyncio
async def test_always_failing_record_fails_after_exactly_five_attempts(store):
    record = add_transfer(store, 1)
    client = ScriptedDecodeClient(default=DecodeApiError("Decode API returned HTTP 500"))
    worker = make_worker(store, client, max_attempts=5)

    for attempt in range(1, 5):
        await worker.process_batch()
        assert record['decode_status'] == 'pending'
        assert record['decode_attempts'] == attempt

    await worker.process_batch()
    assert record['decode_status'] == 'failed'
    assert record['decode_attempts'] == 5
    assert record['last_decode_error'] == "Decode API returned HTTP 500"

    # Never selected again
    await worker.process_batch()
    assert record['decode_attempts'] == 5
    assert len(client.calls) == 5

@pytest.mark.asyncio
async def test_four_failures_then_success(store):
    record = add_transfer(store, 1, '00aa')
    failures = [DecodeApiError("timeout")] * 4
    worker = make_worker(store, ScriptedDecodeClient({'00aa': failures + [DECODED]}))

    for _ in range(5):
        await worker.process_batch()

    assert record['decode_status'] == 'ok'
    assert record['decode_attempts'] == 5
    assert record['last_decode_error'] is None

@pytest.mark.asyncio
async def test_empty_or_invalid_result_counts_as_failure(store):
    empty = add_transfer(store, 1, 'empty')
    invalid = add_transfer(store, 2, 'invalid')
    client = ScriptedDecodeClient({'empty': [{}], 'invalid': [{'inputs': 'nope'}]})
    worker = make_worker(store, client)

    assert await worker.process_batch() == 0

    for record in (empty, invalid):
        assert record['decode_status'] == 'pending'
        assert record['decode_attempts'] == 1
        assert record['last_decode_error']

@pytest.mark.asyncio
async def test_one_failure_does_not_stop_the_batch(store):
    bad = add_transfer(store, 1, 'bad')
    good = add_transfer(store, 2, 'good')
    client = ScriptedDecodeClient({'bad': [DecodeApiError("boom")], 'good': [DECODED]})
    worker = make_worker(store, client)

    assert await worker.process_batch() == 1

    assert bad['decode_status'] == 'pending'
    assert good['decode_status'] == 'ok'

@pytest.mark.asyncio
async def test_batches_are_oldest_first_and_bounded(store):
    for transfer_id in range(1, 6):
        add_transfer(store, transfer_id, f"code{transfer_id}")
    client = ScriptedDecodeClient(default=DECODED)
    worker = make_worker(store, client, batch_size=3)

    await worker.process_batch()

    assert client.calls == ['code1', 'code2', 'code3']

@pytest.mark.asyncio
async def test_run_stops_cooperatively(store):
    record = add_transfer(store, 1)
    worker = make_worker(store, ScriptedDecodeClient(default=DECODED))

    task = asyncio.create_task(worker.run())
    while record['decode_status'] == 'pending':
        await asyncio.sleep(0.01)
    worker.state.stop()
    await asyncio.wait_for(task, timeout=2)

    assert worker.decoded == 1

@pytest.mark.asyncio
async def test_store_error_during_fetch_is_contained(store):
    calls = []

    async def flaky_fetch(limit, max_attempts):
        calls.append(limit)
        if len(calls) == 1:
            raise ConnectionError("pool closed")
        return []

    store.fetch_pending_transfers = flaky_fetch
    worker = make_worker(store, ScriptedDecodeClient(default=DECODED))

    task = asyncio.create_task(worker.run())
    while len(calls) < 2:
        await asyncio.sleep(0.01)
    worker.state.stop()
    await asyncio.wait_for(task, timeout=2)

@pytest.mark.asyncio
async def test_store_error_after_decode_does_not_use_an_attempt(store):
    record = add_transfer(store, 1)
    original = store.mark_transfer_decoded
    calls = []

    async def flaky_mark(*args):
        calls.append(args)
        if len(calls) == 1:
            raise ConnectionError("database went away")
        await original(*args)

    store.mark_transfer_decoded = flaky_mark
    worker = make_worker(store, ScriptedDecodeClient(default=DECODED))

    assert await worker.enrich_record(dict(record)) == 'pending'
    assert record['decode_status'] == 'pending'
    assert record['decode_attempts'] == 0
    assert record['last_decode_error'] is None

    assert await worker.process_batch() == 1
    assert record['decode_status'] == 'ok'
    assert record['decode_attempts'] == 1
