"""Worker that completes zkOS transfer records through the decode API."""
import asyncio
import logging
from typing import Any, Dict, Optional

from indexer.state import TaskState
from .decode_api import DecodeApiError, DecodedZkosTransaction

logger = logging.getLogger(__name__)

class EnrichmentWorker:
    """Decodes pending zkOS transfers with bounded retries.

    A record is attempted at most ``max_attempts`` times. Success marks it
    'ok'; the last failed attempt marks it 'failed'. Records are independent,
    one failure never stops the batch.
    """

    def __init__(
        self,
        store,
        decode_client,
        state: Optional[TaskState] = None,
        batch_size: int = 20,
        poll_interval: float = 10,
        max_attempts: int = 5
    ):
        """Initialize the worker.

        Args:
            store: IndexerStore
            decode_client: ZkosDecodeClient (blocking; called in a worker thread)
            state: Shared stop signal
            batch_size: Records fetched per cycle
            poll_interval: Seconds to wait after a cycle that decoded nothing
            max_attempts: Attempts before a record is marked failed
        """
        self.store = store
        self.decode_client = decode_client
        self.state = state or TaskState()
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

        self.decoded = 0
        self.failed = 0

    async def run(self) -> None:
        logger.info("Starting zkOS enrichment worker")

        while self.state.running:
            try:
                decoded = await self.process_batch()
            except Exception as e:
                logger.error(f"Enrichment worker error: {e}")
                decoded = 0

            # Back off unless the last batch made progress
            if not decoded:
                await self.state.wait(self.poll_interval)

        logger.info(
            f"Enrichment worker stopped ({self.decoded} decoded, {self.failed} failed)"
        )

    async def process_batch(self) -> int:
        """Run one cycle over the oldest pending records.

        Returns:
            Number of records decoded successfully
        """
        pending = await self.store.fetch_pending_transfers(self.batch_size, self.max_attempts)
        if not pending:
            return 0

        logger.info(f"Enriching {len(pending)} zkOS transfers")

        decoded = 0
        for record in pending:
            if not self.state.running:
                break
            if await self.enrich_record(record) == 'ok':
                decoded += 1

        return decoded

    async def enrich_record(self, record: Dict[str, Any]) -> str:
        """Attempt to decode one record and store the outcome.

        Returns:
            'ok', 'pending' or 'failed'
        """
        try:
            payload = await asyncio.to_thread(self.decode_client.decode, record['tx_byte_code'])
            decoded = DecodedZkosTransaction.model_validate(payload)
        except (DecodeApiError, ValueError) as e:
            return await self._record_failure(record, str(e))

        try:
            await self.store.mark_transfer_decoded(
                record['id'],
                payload,
                decoded.inputs,
                decoded.outputs,
                decoded.program_type
            )
        except Exception as e:
            # Not a decode failure; the record is retried next cycle
            logger.error(f"Failed to store decoded zkOS transfer {record['zk_tx_id']}: {e}")
            return 'pending'

        self.decoded += 1
        logger.debug(f"Decoded zkOS transfer {record['zk_tx_id']} ({decoded.program_type})")
        return 'ok'

    async def _record_failure(self, record: Dict[str, Any], error: str) -> str:
        attempt = record['decode_attempts'] + 1
        try:
            status = await self.store.mark_transfer_failed(record['id'], error, self.max_attempts)
        except Exception as e:
            logger.error(f"Failed to record decode failure for {record['zk_tx_id']}: {e}")
            return 'pending'

        status = status or 'pending'
        if status == 'failed':
            self.failed += 1
            logger.warning(
                f"zkOS transfer {record['zk_tx_id']} failed after {attempt} attempts: {error}"
            )
        else:
            logger.warning(
                f"zkOS decode attempt {attempt}/{self.max_attempts} for "
                f"{record['zk_tx_id']} failed: {error}"
            )
        return status
