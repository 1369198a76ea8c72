"""Block sync engine.

Walks the ledger forward one height at a time. Each block is fetched,
checked against the stored parent hash, decoded and committed atomically
together with the checkpoint. Side-table projections and events follow the
commit.
"""
import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from decoders import decode_message, serialize_decoded_data, to_int
from decoders import types as msg_types
from lcd import LcdError
from .events import BLOCK_NEW, TX_NEW
from .projections import build_zkos_transfer, project_transaction
from .state import SyncState, TaskState

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 10

_TIMESTAMP_RE = re.compile(
    r'^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})?$'
)

class ConsistencyError(Exception):
    """Raised when indexed history disagrees with the ledger"""
    pass

class ReorgDetectedError(ConsistencyError):
    """Raised when a block's parent hash differs from the stored parent block"""
    def __init__(self, height: int, stored_hash: str, reported_hash: str):
        self.height = height
        self.stored_hash = stored_hash
        self.reported_hash = reported_hash
        super().__init__(
            f"Block {height} links to parent {reported_hash} "
            f"but block {height - 1} is stored as {stored_hash}"
        )

def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 ledger timestamp.

    Tendermint reports nanoseconds; anything past microseconds is dropped.
    """
    match = _TIMESTAMP_RE.match(value or '')
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")

    base, fraction, offset = match.groups()
    micros = (fraction or '0')[:6].ljust(6, '0')
    if offset in (None, 'Z'):
        offset = '+00:00'
    return datetime.fromisoformat(f"{base}.{micros}{offset}")

def extract_addresses(decoded_messages: List[Dict[str, Any]], prefix: str = 'twilight') -> List[str]:
    """Collect participant addresses from decoded message data.

    A top-level string field counts when its key mentions "address" or its
    value carries the chain's address prefix. Short strings are ignored.
    """
    addresses = []
    seen = set()
    for msg in decoded_messages:
        data = msg.get('data')
        if not isinstance(data, dict):
            continue
        for key, value in data.items():
            if not isinstance(value, str) or len(value) < MIN_ADDRESS_LENGTH:
                continue
            if 'address' in key.lower() or value.startswith(prefix):
                if value not in seen:
                    seen.add(value)
                    addresses.append(value)
    return addresses

def process_transaction(
    tx_response: Dict[str, Any],
    block_height: int,
    block_time: datetime,
    address_prefix: str = 'twilight'
) -> Optional[Dict[str, Any]]:
    """Build a transaction record from an LCD tx_response.

    Returns:
        Transaction record, or None when the response carries no hash
    """
    tx_hash = tx_response.get('txhash')
    if not tx_hash:
        logger.warning(
            f"Transaction without txhash at height {block_height}, skipping "
            f"(keys: {sorted(tx_response.keys())})"
        )
        return None

    tx = tx_response.get('tx') or {}
    body = tx.get('body') or tx_response.get('body') or {}
    auth_info = tx.get('auth_info') or tx_response.get('auth_info') or {}
    if not body:
        logger.warning(f"Transaction {tx_hash} is missing its body")

    messages = body.get('messages') or []
    decoded = [decode_message(msg) for msg in messages]
    message_types = [msg['type'] for msg in decoded]

    signers = []
    for signer_info in auth_info.get('signer_infos') or []:
        key = (signer_info.get('public_key') or {}).get('key')
        if key:
            signers.append(key)

    failed = to_int(tx_response.get('code')) != 0

    return {
        'hash': tx_hash,
        'block_height': block_height,
        'block_time': block_time,
        'type': (message_types[0] if message_types else '') or 'unknown',
        'message_types': message_types,
        'messages': [
            {**msg, 'data': serialize_decoded_data(msg['data'])}
            for msg in decoded
        ],
        'decoded': decoded,
        'fee': auth_info.get('fee'),
        'gas_used': to_int(tx_response.get('gas_used')),
        'gas_wanted': to_int(tx_response.get('gas_wanted')),
        'memo': body.get('memo') or None,
        'status': 'failed' if failed else 'success',
        'error_log': tx_response.get('raw_log') if failed else None,
        'signers': signers,
        'addresses': extract_addresses(decoded, address_prefix),
    }

def extract_events(tx_response: Dict[str, Any], start_index: int = 0) -> List[Dict[str, Any]]:
    """Flatten a transaction's emitted events, numbered from ``start_index``."""
    events = []
    for offset, event in enumerate(tx_response.get('events') or []):
        attributes = {}
        for attr in event.get('attributes') or []:
            attributes[attr.get('key')] = attr.get('value')
        events.append({
            'tx_hash': tx_response.get('txhash'),
            'event_index': start_index + offset,
            'type': event.get('type', ''),
            'attributes': attributes,
        })
    return events

def transaction_payload(tx: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a transaction record for events."""
    return {key: value for key, value in tx.items() if key not in ('decoded', 'addresses')}

class SyncEngine:
    """Sequential block ingestion with reorg detection."""

    def __init__(
        self,
        store,
        lcd,
        lease,
        bus,
        state: Optional[TaskState] = None,
        start_height: int = 1,
        batch_size: int = 10,
        poll_interval: float = 2,
        error_backoff: float = 5,
        address_prefix: str = 'twilight'
    ):
        """Initialize the sync engine.

        Args:
            store: IndexerStore
            lcd: LcdClient (blocking; calls run in a worker thread)
            lease: AdvisoryLease guarding the single writer
            bus: EventBus for block and transaction events
            state: Shared stop signal
            start_height: First height to ingest on an empty database
            batch_size: Heights per outer iteration
            poll_interval: Seconds to wait when caught up with the chain head
            error_backoff: Seconds to wait after a failed block
            address_prefix: Bech32 prefix of chain addresses
        """
        self.store = store
        self.lcd = lcd
        self.lease = lease
        self.bus = bus
        self.state = state or TaskState()
        self.start_height = start_height
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.address_prefix = address_prefix

        self.sync_state = SyncState.IDLE
        self.chain_head: Optional[int] = None
        self.blocks_processed = 0

    def _set_state(self, new_state: SyncState) -> None:
        if new_state is not self.sync_state:
            logger.debug(f"Sync state {self.sync_state.value} -> {new_state.value}")
            self.sync_state = new_state

    async def _call(self, func, *args):
        return await asyncio.to_thread(func, *args)

    async def _last_indexed(self) -> int:
        checkpoint = await self.store.get_checkpoint()
        return checkpoint if checkpoint is not None else self.start_height - 1

    async def run(self) -> SyncState:
        """Acquire the lease and sync until stopped or halted.

        Returns:
            The terminal state: LEASE_DENIED, HALTED or STOPPED
        """
        if self.sync_state is not SyncState.IDLE:
            logger.warning(f"Sync engine already started (state {self.sync_state.value})")
            return self.sync_state

        self._set_state(SyncState.ACQUIRING_LEASE)
        if not await self.lease.acquire():
            logger.warning("Another indexer instance holds the lease, exiting")
            self._set_state(SyncState.LEASE_DENIED)
            return self.sync_state

        logger.info("Lease acquired, starting block sync")
        try:
            await self._sync_loop()
        except ConsistencyError as e:
            logger.error(f"Halting sync: {e}")
            self._set_state(SyncState.HALTED)
        finally:
            await self.lease.release()
            if not self.sync_state.is_terminal:
                self._set_state(SyncState.STOPPED)
            logger.info(f"Block sync finished in state {self.sync_state.value}")

        return self.sync_state

    async def _sync_loop(self) -> None:
        self._set_state(SyncState.POLLING)

        while self.state.running:
            try:
                last_indexed = await self._last_indexed()
                self.chain_head = await self._call(self.lcd.get_latest_block_height)
            except Exception as e:
                logger.error(f"Failed to read sync position: {e}")
                await self.state.wait(self.error_backoff)
                continue

            if last_indexed >= self.chain_head:
                self._set_state(SyncState.POLLING)
                logger.debug(f"Waiting for new blocks (indexed {last_indexed}, head {self.chain_head})")
                await self.state.wait(self.poll_interval)
                continue

            start = last_indexed + 1
            end = min(start + self.batch_size - 1, self.chain_head)
            logger.info(f"Processing blocks {start}-{end} (head {self.chain_head})")

            self._set_state(SyncState.INGESTING)
            for height in range(start, end + 1):
                if not self.state.running:
                    break
                try:
                    await self.ingest_block(height)
                except ConsistencyError:
                    raise
                except Exception as e:
                    logger.error(f"Failed to process block {height}: {e}")
                    await self.state.wait(self.error_backoff)
                    break

            self._set_state(SyncState.POLLING)

    async def _check_linkage(self, height: int, header: Dict[str, Any]) -> None:
        if height <= 1:
            return

        reported = (header.get('last_block_id') or {}).get('hash')
        if not reported:
            return

        stored = await self.store.get_block_hash(height - 1)
        if stored is not None and stored != reported:
            raise ReorgDetectedError(height, stored, reported)

    async def ingest_block(self, height: int) -> Dict[str, Any]:
        """Fetch, decode and commit a single block.

        Args:
            height: Block height to ingest

        Returns:
            The committed block record

        Raises:
            ReorgDetectedError: If the block does not extend the stored chain
        """
        block_info = await self._call(self.lcd.get_block, height)
        header = block_info['block']['header']
        await self._check_linkage(height, header)

        tx_responses = await self._call(self.lcd.get_txs_by_height, height)
        block_time = parse_timestamp(header['time'])

        transactions = []
        events = []
        transfers = []
        for tx_response in tx_responses:
            tx = process_transaction(tx_response, height, block_time, self.address_prefix)
            if tx is None:
                continue
            transactions.append(tx)
            events.extend(extract_events(tx_response, len(events)))

            for msg in tx['decoded']:
                if msg['type'] != msg_types.TRANSFER_TX:
                    continue
                if 'zk_tx_id' not in msg['data']:
                    logger.warning(f"Undecodable zkOS transfer in tx {tx['hash']}, not queued")
                    continue
                transfers.append(build_zkos_transfer(msg['data'], tx['hash']))

        block = {
            'height': height,
            'hash': block_info['block_id']['hash'],
            'timestamp': block_time,
            'proposer': header.get('proposer_address') or None,
            'tx_count': len(transactions),
            'gas_used': sum(tx['gas_used'] for tx in transactions),
            'gas_wanted': sum(tx['gas_wanted'] for tx in transactions),
        }

        new_hashes = await self.store.commit_block(block, transactions, events, transfers)

        for tx in transactions:
            await project_transaction(self.store, self.bus, tx, height)

        self.bus.publish(BLOCK_NEW, block)
        for tx in transactions:
            self.bus.publish(TX_NEW, transaction_payload(tx))

        self.blocks_processed += 1
        logger.info(
            f"Indexed block {height}: {len(transactions)} txs "
            f"({len(new_hashes)} new), {len(transfers)} zkOS transfers"
        )
        return block

    async def get_status(self) -> Dict[str, Any]:
        """Snapshot of sync progress."""
        last_indexed = await self._last_indexed()
        chain_head = self.chain_head
        try:
            chain_head = await self._call(self.lcd.get_latest_block_height)
        except LcdError as e:
            logger.warning(f"Could not read chain head: {e}")

        return {
            'running': self.sync_state in (SyncState.POLLING, SyncState.INGESTING),
            'state': self.sync_state.value,
            'last_indexed_height': last_indexed,
            'chain_head': chain_head,
            'blocks_remaining': max(chain_head - last_indexed, 0) if chain_head is not None else None,
        }
