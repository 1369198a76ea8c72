"""Tests for side-table projections."""
from datetime import datetime, timezone

import pytest

from indexer.projections import PROJECTIONS, build_sweep_broadcast, project_transaction
from indexer.sync import process_transaction

from conftest import DEPOSITOR, confirm_deposit_msg, make_tx

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)

def sign_sweep_msg(signer='twilight1signerqqqqqqqqqq'):
    return {
        '@type': '/twilightproject.nyks.bridge.MsgSignSweep',
        'reserveId': '1',
        'roundId': '4',
        'signerPublicKey': '02abc',
        'sweepSignature': ['sig1', 'sig2'],
        'signerAddress': signer,
    }

def test_every_projection_targets_a_store_writer(store):
    for builder, writer, channel in PROJECTIONS.values():
        assert callable(builder)
        assert callable(getattr(store, writer))

def test_broadcast_rows_carry_kind():
    row = build_sweep_broadcast(
        {'reserve_id': 1, 'round_id': 2, 'signed_sweep_tx': '0200ff', 'judge_address': 'j'},
        'TX', 3, 10
    )
    assert row['kind'] == 'sweep'
    assert row['signed_tx'] == '0200ff'
    assert row['msg_index'] == 3

@pytest.mark.asyncio
async def test_replay_does_not_double_count(store, bus):
    tx = process_transaction(make_tx('T', [confirm_deposit_msg(), sign_sweep_msg()]), 7, NOW)

    assert await project_transaction(store, bus, tx, 7) == 2
    assert await project_transaction(store, bus, tx, 7) == 2

    assert store.deposits[('btchash01', DEPOSITOR)]['votes'] == 1
    assert len(store.side_rows['sweep_signatures']) == 1
    assert [channel for channel, _ in bus.drain()] == ['deposit:new']

@pytest.mark.asyncio
async def test_second_oracle_vote_increments_without_event(store, bus):
    first = process_transaction(make_tx('T1', [confirm_deposit_msg()]), 7, NOW)
    second = process_transaction(make_tx('T2', [confirm_deposit_msg()]), 8, NOW)

    await project_transaction(store, bus, first, 7)
    await project_transaction(store, bus, second, 8)

    assert store.deposits[('btchash01', DEPOSITOR)]['votes'] == 2
    assert [channel for channel, _ in bus.drain()] == ['deposit:new']

@pytest.mark.asyncio
async def test_failing_message_is_skipped(store, bus):
    broken = {'@type': '/twilightproject.nyks.bridge.MsgSignSweep', 'reserveId': '1'}
    tx = process_transaction(make_tx('T', [broken, confirm_deposit_msg()]), 7, NOW)

    assert await project_transaction(store, bus, tx, 7) == 1
    assert ('btchash01', DEPOSITOR) in store.deposits

@pytest.mark.asyncio
async def test_writer_error_is_contained(store, bus):
    async def explode(row):
        raise RuntimeError("constraint violation")

    store.upsert_sweep_signature = explode
    tx = process_transaction(make_tx('T', [sign_sweep_msg(), confirm_deposit_msg()]), 7, NOW)

    assert await project_transaction(store, bus, tx, 7) == 1
