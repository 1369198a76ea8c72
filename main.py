import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Dict

from config import get_settings, SettingsError
from database import init_db, close as db_close
from indexer import AdvisoryLease, EventBus, IndexerStore, SyncEngine, SyncState, TaskState, ZmqPublisher
from lcd import LcdClient
from presentation import merge_program_type_counts
from workers.decode_api import ZkosDecodeClient
from workers.enrichment import EnrichmentWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Twilight ledger indexer")
    parser.add_argument('--settings', default=None,
                        help="Directory containing settings.conf (default: current directory)")
    parser.add_argument('--resync-from', type=int, default=None, metavar='HEIGHT',
                        help="Delete indexed blocks above HEIGHT and reset the checkpoint, then exit")
    parser.add_argument('--status', action='store_true',
                        help="Print sync and enrichment status, then exit")
    return parser.parse_args(argv)

def build_engine(settings: Dict[str, Any], pool, state: TaskState, bus: EventBus) -> SyncEngine:
    lcd = LcdClient(settings['lcd_url'], timeout=settings['lcd_timeout'])
    return SyncEngine(
        IndexerStore(pool),
        lcd,
        AdvisoryLease(pool, settings['advisory_lock_id']),
        bus,
        state=state,
        start_height=settings['start_height'],
        batch_size=settings['batch_size'],
        poll_interval=settings['poll_interval'],
        error_backoff=settings['error_backoff'],
        address_prefix=settings['address_prefix']
    )

def build_worker(settings: Dict[str, Any], pool, state: TaskState) -> EnrichmentWorker:
    client = ZkosDecodeClient(settings['zkos_decode_url'], timeout=settings['decode_timeout'])
    return EnrichmentWorker(
        IndexerStore(pool),
        client,
        state=state,
        batch_size=settings['enrichment_batch_size'],
        poll_interval=settings['enrichment_poll_interval'],
        max_attempts=settings['enrichment_max_attempts']
    )

async def print_status(settings: Dict[str, Any], pool) -> None:
    """Print sync progress and enrichment counts."""
    engine = build_engine(settings, pool, TaskState(), EventBus())
    store = engine.store

    status = await engine.get_status()
    counts = await store.get_enrichment_counts()
    program_types = merge_program_type_counts(await store.get_program_type_counts())

    print("\nSync")
    print("====")
    print(f"Last indexed height: {status['last_indexed_height']}")
    print(f"Chain head:          {status['chain_head']}")
    print(f"Blocks remaining:    {status['blocks_remaining']}")

    print("\nzkOS enrichment")
    print("===============")
    for decode_status in ('pending', 'ok', 'failed'):
        print(f"{decode_status:<8} {counts.get(decode_status, 0)}")

    if program_types:
        print("\nProgram types")
        print("=============")
        for label, count in program_types.items():
            print(f"{label:<32} {count}")

    engine.lcd.close()

async def resync(settings: Dict[str, Any], pool, height: int) -> int:
    """Rewind the checkpoint to ``height`` while holding the writer lease."""
    lease = AdvisoryLease(pool, settings['advisory_lock_id'])
    if not await lease.acquire():
        logger.error("An indexer is running against this database, stop it before resyncing")
        return 1

    try:
        store = IndexerStore(pool)
        checkpoint = await store.get_checkpoint()
        if checkpoint is not None and height >= checkpoint:
            logger.info(f"Checkpoint {checkpoint} is not above {height}, nothing to do")
            return 0
        removed = await store.reset_checkpoint(height)
        logger.info(f"Resync prepared: removed {removed} blocks, next block is {height + 1}")
        return 0
    finally:
        await lease.release()

async def run(settings: Dict[str, Any], pool) -> SyncState:
    """Run the sync engine, enrichment worker and event publisher until stopped."""
    state = TaskState()
    bus = EventBus()

    engine = build_engine(settings, pool, state, bus)
    worker = build_worker(settings, pool, state)
    publisher = ZmqPublisher(bus, settings['event_bus_endpoint'])

    # Register shutdown handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, state.stop)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda signum, frame: state.stop())

    publisher.bind()
    publisher_task = asyncio.create_task(publisher.run(state))
    worker_task = None

    try:
        engine_task = asyncio.create_task(engine.run())
        worker_task = asyncio.create_task(worker.run())

        final_state = await engine_task
        if final_state is not SyncState.STOPPED:
            logger.info(f"Sync engine ended in state {final_state.value}, shutting down")
        state.stop()

        await worker_task
        return final_state

    finally:
        state.stop()
        if worker_task is not None and not worker_task.done():
            worker_task.cancel()
        await asyncio.gather(publisher_task, return_exceptions=True)
        publisher.close()
        engine.lcd.close()
        worker.decode_client.close()

async def main(argv=None) -> int:
    """Main application entry point."""
    args = parse_args(argv)

    try:
        settings = get_settings(args.settings)
    except SettingsError as e:
        logger.error(str(e))
        return 2

    try:
        logger.info("Initializing database...")
        pool = await init_db(settings['db_url'])

        if args.resync_from is not None:
            return await resync(settings, pool, args.resync_from)

        if args.status:
            await print_status(settings, pool)
            return 0

        final_state = await run(settings, pool)
        return 1 if final_state is SyncState.HALTED else 0

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1

    finally:
        await db_close()

if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
