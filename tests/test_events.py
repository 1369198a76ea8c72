"""Tests for the event bus and the ZMQ publisher."""
import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import zmq

from indexer.events import EventBus, ZmqPublisher, encode_event
from indexer.state import TaskState

@pytest.mark.asyncio
async def test_publish_serializes_payload(bus):
    bus.publish('block:new', {
        'height': 100,
        'timestamp': datetime(2024, 5, 1, tzinfo=timezone.utc),
        'hash': 'ABC',
    })

    channel, payload = await bus.get()

    assert channel == 'block:new'
    assert payload == {'height': '100', 'timestamp': '2024-05-01T00:00:00+00:00', 'hash': 'ABC'}

def test_publish_rejects_unknown_channel(bus):
    with pytest.raises(ValueError):
        bus.publish('block:old', {})
    assert bus.drain() == []

def test_encode_event():
    topic, body = encode_event('tx:new', {'hash': 'H', 'gas_used': '10'})

    assert topic == b'twilight:tx:new'
    assert json.loads(body) == {'hash': 'H', 'gas_used': '10'}
    assert b' ' not in body

@pytest.mark.asyncio
async def test_publisher_forwards_events_in_order(bus):
    socket = MagicMock()
    socket.send_multipart = AsyncMock()
    context = MagicMock()
    context.socket.return_value = socket
    state = TaskState()

    publisher = ZmqPublisher(bus, 'tcp://127.0.0.1:5599', context=context)
    bus.publish('block:new', {'height': 1})
    bus.publish('tx:new', {'hash': 'H'})

    task = asyncio.create_task(publisher.run(state))
    while socket.send_multipart.await_count < 2:
        await asyncio.sleep(0.01)
    state.stop()
    await asyncio.wait_for(task, timeout=3)
    publisher.close()

    context.socket.assert_called_once_with(zmq.PUB)
    socket.bind.assert_called_once_with('tcp://127.0.0.1:5599')
    frames = [c.args[0] for c in socket.send_multipart.await_args_list]
    assert frames[0][0] == b'twilight:block:new'
    assert frames[1][0] == b'twilight:tx:new'
    socket.close.assert_called_once()

@pytest.mark.asyncio
async def test_publisher_survives_send_errors(bus):
    socket = MagicMock()
    socket.send_multipart = AsyncMock(side_effect=[zmq.ZMQError(), None])
    context = MagicMock()
    context.socket.return_value = socket
    state = TaskState()

    publisher = ZmqPublisher(bus, 'tcp://127.0.0.1:5599', context=context)
    bus.publish('block:new', {'height': 1})
    bus.publish('block:new', {'height': 2})

    task = asyncio.create_task(publisher.run(state))
    while socket.send_multipart.await_count < 2:
        await asyncio.sleep(0.01)
    state.stop()
    await asyncio.wait_for(task, timeout=3)

    assert socket.send_multipart.await_count == 2
