"""Outbound event bus for real-time notifications.

The sync engine puts ``(channel, payload)`` pairs on an injected asyncio
queue. ``ZmqPublisher`` drains that queue onto a ZeroMQ PUB socket where the
fan-out layer subscribes by topic ``twilight:<channel>``.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import zmq
import zmq.asyncio

from decoders import serialize_decoded_data

logger = logging.getLogger(__name__)

BLOCK_NEW = 'block:new'
TX_NEW = 'tx:new'
DEPOSIT_NEW = 'deposit:new'
WITHDRAWAL_NEW = 'withdrawal:new'
CHANNELS = (BLOCK_NEW, TX_NEW, DEPOSIT_NEW, WITHDRAWAL_NEW)

TOPIC_PREFIX = 'twilight:'

class EventBus:
    """Publishes events onto an outbound queue.

    Payloads are serialized at publish time so consumers see integers as
    decimal strings and datetimes as ISO-8601 regardless of transport.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue = queue if queue is not None else asyncio.Queue()

    def publish(self, channel: str, payload: Dict[str, Any]) -> None:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown event channel: {channel}")
        self.queue.put_nowait((channel, serialize_decoded_data(payload)))

    async def get(self) -> Tuple[str, Dict[str, Any]]:
        return await self.queue.get()

    def drain(self) -> list:
        """Remove and return every queued event without waiting."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events

def encode_event(channel: str, payload: Dict[str, Any]) -> Tuple[bytes, bytes]:
    """Build the (topic, body) ZMQ frames for an event."""
    topic = f"{TOPIC_PREFIX}{channel}".encode()
    body = json.dumps(payload, separators=(',', ':')).encode()
    return topic, body

class ZmqPublisher:
    """Forwards bus events to a ZeroMQ PUB socket."""

    def __init__(self, bus: EventBus, endpoint: str, context: Optional[zmq.asyncio.Context] = None):
        self.bus = bus
        self.endpoint = endpoint
        self.context = context or zmq.asyncio.Context.instance()
        self.socket = None

    def bind(self) -> None:
        self.socket = self.context.socket(zmq.PUB)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.bind(self.endpoint)
        logger.info(f"Event publisher bound to {self.endpoint}")

    async def run(self, state) -> None:
        """Forward events until the task state is stopped."""
        if self.socket is None:
            self.bind()

        while state.running:
            try:
                channel, payload = await asyncio.wait_for(self.bus.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self.socket.send_multipart(encode_event(channel, payload))
            except zmq.ZMQError as e:
                logger.error(f"Failed to publish {channel} event: {e}")

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None
