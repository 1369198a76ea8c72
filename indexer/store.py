"""Persistence store for the indexer.

All SQL the sync engine and the enrichment worker run lives here. The store
takes plain dicts built by ``indexer.sync`` and ``indexer.projections`` and
writes them through the shared asyncpg pool.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import asyncpg

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = 'last_indexed_height'

def _num(value: Any) -> Optional[Decimal]:
    """Convert a Python int to Decimal for NUMERIC columns."""
    if value is None:
        return None
    return Decimal(value)

class IndexerStore:
    """Reads and writes indexed ledger data."""

    def __init__(self, pool):
        """Initialize the store.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    # Checkpoint

    async def get_checkpoint(self) -> Optional[int]:
        """Return the last fully ingested height, or None before the first block."""
        async with self.pool.acquire() as conn:
            value = await conn.fetchval(
                'SELECT value FROM indexer_state WHERE key = $1',
                CHECKPOINT_KEY
            )
        return int(value) if value is not None else None

    async def get_block_hash(self, height: int) -> Optional[str]:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                'SELECT hash FROM blocks WHERE height = $1',
                height
            )

    # Block commit

    async def commit_block(
        self,
        block: Dict[str, Any],
        transactions: List[Dict[str, Any]],
        events: List[Dict[str, Any]],
        zkos_transfers: List[Dict[str, Any]]
    ) -> List[str]:
        """Persist one block and advance the checkpoint, all or nothing.

        Replaying a height that is already committed leaves every row as it
        was: transactions are insert-once, events of the height are replaced,
        and account aggregates only move for transactions inserted here.

        Args:
            block: Block row
            transactions: Transaction rows, each with an ``addresses`` list
            events: Event rows of this height
            zkos_transfers: Pending enrichment rows

        Returns:
            Hashes of transactions that were newly inserted
        """
        height = block['height']

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    '''
                    INSERT INTO blocks (
                        height, hash, timestamp, proposer,
                        tx_count, gas_used, gas_wanted
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (height) DO UPDATE SET
                        hash = EXCLUDED.hash,
                        timestamp = EXCLUDED.timestamp,
                        proposer = EXCLUDED.proposer,
                        tx_count = EXCLUDED.tx_count,
                        gas_used = EXCLUDED.gas_used,
                        gas_wanted = EXCLUDED.gas_wanted
                    ''',
                    height,
                    block['hash'],
                    block['timestamp'],
                    block.get('proposer'),
                    block['tx_count'],
                    _num(block['gas_used']),
                    _num(block['gas_wanted'])
                )

                new_hashes = []
                for tx in transactions:
                    inserted = await conn.fetchval(
                        '''
                        INSERT INTO transactions (
                            hash, block_height, block_time, type,
                            message_types, messages, fee,
                            gas_used, gas_wanted, memo,
                            status, error_log, signers
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                        ON CONFLICT (hash) DO NOTHING
                        RETURNING hash
                        ''',
                        tx['hash'],
                        height,
                        tx['block_time'],
                        tx['type'],
                        tx['message_types'],
                        tx['messages'],
                        tx.get('fee'),
                        _num(tx['gas_used']),
                        _num(tx['gas_wanted']),
                        tx.get('memo'),
                        tx['status'],
                        tx.get('error_log'),
                        tx['signers']
                    )
                    if inserted:
                        new_hashes.append(inserted)

                await conn.execute('DELETE FROM events WHERE block_height = $1', height)
                if events:
                    await conn.executemany(
                        '''
                        INSERT INTO events (tx_hash, block_height, event_index, type, attributes)
                        VALUES ($1, $2, $3, $4, $5)
                        ''',
                        [
                            (e.get('tx_hash'), height, e['event_index'], e['type'], e['attributes'])
                            for e in events
                        ]
                    )

                for transfer in zkos_transfers:
                    await conn.execute(
                        '''
                        INSERT INTO zkos_transfers (
                            tx_hash, block_height, zk_tx_id,
                            tx_byte_code, tx_fee, zk_oracle_address
                        ) VALUES ($1, $2, $3, $4, $5, $6)
                        ON CONFLICT (zk_tx_id) DO NOTHING
                        ''',
                        transfer['tx_hash'],
                        height,
                        transfer['zk_tx_id'],
                        transfer['tx_byte_code'],
                        _num(transfer['tx_fee']),
                        transfer.get('zk_oracle_address')
                    )

                new = set(new_hashes)
                for tx in transactions:
                    if tx['hash'] in new:
                        await self._touch_accounts(conn, tx['addresses'], tx['block_time'])

                await conn.execute(
                    '''
                    INSERT INTO indexer_state (key, value, updated_at)
                    VALUES ($1, $2, now())
                    ON CONFLICT (key) DO UPDATE SET
                        value = EXCLUDED.value,
                        updated_at = now()
                    WHERE indexer_state.value::bigint < EXCLUDED.value::bigint
                    ''',
                    CHECKPOINT_KEY,
                    str(height)
                )

        return new_hashes

    async def _touch_accounts(self, conn, addresses: List[str], seen_at) -> None:
        """Increment account aggregates, one savepoint per address."""
        for address in addresses:
            try:
                async with conn.transaction():
                    await conn.execute(
                        '''
                        INSERT INTO accounts (address, tx_count, first_seen, last_seen)
                        VALUES ($1, 1, $2, $2)
                        ON CONFLICT (address) DO UPDATE SET
                            tx_count = accounts.tx_count + 1,
                            last_seen = GREATEST(accounts.last_seen, EXCLUDED.last_seen)
                        ''',
                        address,
                        seen_at
                    )
            except asyncpg.PostgresError as e:
                logger.warning(f"Skipping account update for {address!r}: {e}")

    async def reset_checkpoint(self, height: int) -> int:
        """Rewind indexed ledger data to ``height`` for an operator resync.

        Blocks, transactions, events and zkOS transfers above the height are
        deleted. Account aggregates and module side tables are left as they
        are.

        Returns:
            Number of blocks removed
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute('DELETE FROM zkos_transfers WHERE block_height > $1', height)
                await conn.execute('DELETE FROM events WHERE block_height > $1', height)
                await conn.execute('DELETE FROM transactions WHERE block_height > $1', height)
                removed = await conn.fetchval(
                    '''
                    WITH deleted AS (
                        DELETE FROM blocks WHERE height > $1 RETURNING 1
                    )
                    SELECT count(*) FROM deleted
                    ''',
                    height
                )
                await conn.execute(
                    '''
                    INSERT INTO indexer_state (key, value, updated_at)
                    VALUES ($1, $2, now())
                    ON CONFLICT (key) DO UPDATE SET
                        value = EXCLUDED.value,
                        updated_at = now()
                    ''',
                    CHECKPOINT_KEY,
                    str(height)
                )

        logger.warning(f"Checkpoint reset to {height}, removed {removed} blocks")
        return removed

    # zkOS enrichment queue

    async def fetch_pending_transfers(self, limit: int, max_attempts: int) -> List[Dict[str, Any]]:
        """Oldest pending transfers still under the attempt limit."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT id, zk_tx_id, tx_byte_code, decode_attempts
                FROM zkos_transfers
                WHERE decode_status = 'pending'
                AND decode_attempts < $1
                ORDER BY id
                LIMIT $2
                ''',
                max_attempts,
                limit
            )
        return [dict(row) for row in rows]

    async def mark_transfer_decoded(
        self,
        transfer_id: int,
        decoded_data: Dict[str, Any],
        inputs: List[Any],
        outputs: List[Any],
        program_type: Optional[str]
    ) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                UPDATE zkos_transfers
                SET decoded_data = $2,
                    inputs = $3,
                    outputs = $4,
                    program_type = $5,
                    decode_status = 'ok',
                    decode_attempts = decode_attempts + 1,
                    last_decode_error = NULL,
                    updated_at = now()
                WHERE id = $1
                AND decode_status = 'pending'
                ''',
                transfer_id,
                decoded_data,
                inputs,
                outputs,
                program_type
            )

    async def mark_transfer_failed(self, transfer_id: int, error: str, max_attempts: int) -> Optional[str]:
        """Record a failed decode attempt.

        Returns:
            The record's status after the update ('pending' or 'failed'), or
            None if the record was no longer pending
        """
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                '''
                UPDATE zkos_transfers
                SET decode_attempts = decode_attempts + 1,
                    last_decode_error = $2,
                    decode_status = CASE
                        WHEN decode_attempts + 1 >= $3 THEN 'failed'
                        ELSE 'pending'
                    END,
                    updated_at = now()
                WHERE id = $1
                AND decode_status = 'pending'
                RETURNING decode_status
                ''',
                transfer_id,
                error,
                max_attempts
            )

    async def get_enrichment_counts(self) -> Dict[str, int]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                'SELECT decode_status, count(*) AS n FROM zkos_transfers GROUP BY decode_status'
            )
        return {row['decode_status']: row['n'] for row in rows}

    async def get_program_type_counts(self) -> Dict[Optional[str], int]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT program_type, count(*) AS n
                FROM zkos_transfers
                WHERE decode_status = 'ok'
                GROUP BY program_type
                '''
            )
        return {row['program_type']: row['n'] for row in rows}

    # Bridge module side tables

    async def apply_deposit_vote(self, row: Dict[str, Any]) -> Optional[str]:
        """Count one oracle confirmation towards a BTC deposit.

        The vote is keyed by the confirming message, so replaying a block
        does not count it twice.

        Returns:
            'created' for the first vote on a deposit, 'voted' for a further
            vote, None if this message was already counted
        """
        async with self.pool.acquire() as conn:
            created = await conn.fetchval(
                '''
                WITH vote AS (
                    INSERT INTO btc_deposit_votes (
                        tx_hash, msg_index, btc_hash,
                        twilight_deposit_address, oracle_address
                    ) VALUES ($1, $2, $6, $7, $8)
                    ON CONFLICT (tx_hash, msg_index) DO NOTHING
                    RETURNING 1
                )
                INSERT INTO btc_deposits (
                    tx_hash, block_height, reserve_address, deposit_amount,
                    btc_height, btc_hash, twilight_deposit_address,
                    oracle_address, votes
                )
                SELECT $1::text, $3::int8, $4::text, $5::numeric,
                       $9::numeric, $6::text, $7::text, $8::text, 1
                FROM vote
                ON CONFLICT (btc_hash, twilight_deposit_address) DO UPDATE SET
                    votes = btc_deposits.votes + 1,
                    updated_at = now()
                RETURNING (xmax = 0) AS created
                ''',
                row['tx_hash'],
                row['msg_index'],
                row['block_height'],
                row.get('reserve_address'),
                _num(row['deposit_amount']),
                row['btc_hash'],
                row['twilight_deposit_address'],
                row.get('oracle_address'),
                _num(row['btc_height'])
            )

        if created is None:
            return None
        return 'created' if created else 'voted'

    async def upsert_deposit_address(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                INSERT INTO btc_deposit_addresses (
                    btc_deposit_address, tx_hash, block_height,
                    btc_satoshi_test_amount, twilight_staking_amount, twilight_address
                ) VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (btc_deposit_address) DO UPDATE SET
                    btc_satoshi_test_amount = EXCLUDED.btc_satoshi_test_amount,
                    twilight_staking_amount = EXCLUDED.twilight_staking_amount,
                    twilight_address = EXCLUDED.twilight_address,
                    updated_at = now()
                ''',
                row['btc_deposit_address'],
                row['tx_hash'],
                row['block_height'],
                _num(row['btc_satoshi_test_amount']),
                _num(row['twilight_staking_amount']),
                row.get('twilight_address')
            )
        return True

    async def insert_withdrawal(self, row: Dict[str, Any]) -> bool:
        """Record a withdrawal request; True if it was not seen before."""
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                '''
                INSERT INTO btc_withdrawals (
                    tx_hash, msg_index, block_height, withdraw_address,
                    reserve_id, withdraw_amount, twilight_address
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (tx_hash, msg_index) DO NOTHING
                RETURNING true
                ''',
                row['tx_hash'],
                row['msg_index'],
                row['block_height'],
                row['withdraw_address'],
                _num(row['reserve_id']),
                _num(row['withdraw_amount']),
                row.get('twilight_address')
            )
        return bool(inserted)

    async def insert_sweep_proposal(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                '''
                INSERT INTO sweep_proposals (
                    tx_hash, msg_index, block_height, reserve_id,
                    new_reserve_address, judge_address, btc_block_number,
                    btc_relay_capacity_value, btc_tx_hash, unlock_height,
                    round_id, oracle_address
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                ON CONFLICT (tx_hash, msg_index) DO NOTHING
                RETURNING true
                ''',
                row['tx_hash'],
                row['msg_index'],
                row['block_height'],
                _num(row['reserve_id']),
                row.get('new_reserve_address'),
                row.get('judge_address'),
                _num(row['btc_block_number']),
                _num(row['btc_relay_capacity_value']),
                row.get('btc_tx_hash'),
                _num(row['unlock_height']),
                _num(row['round_id']),
                row.get('oracle_address')
            )
        return bool(inserted)

    async def upsert_sweep_signature(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                INSERT INTO sweep_signatures (
                    reserve_id, round_id, signer_address, tx_hash,
                    block_height, signer_public_key, sweep_signatures
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (reserve_id, round_id, signer_address) DO UPDATE SET
                    sweep_signatures = EXCLUDED.sweep_signatures
                ''',
                _num(row['reserve_id']),
                _num(row['round_id']),
                row['signer_address'],
                row['tx_hash'],
                row['block_height'],
                row.get('signer_public_key'),
                row['sweep_signatures']
            )
        return True

    async def upsert_refund_signature(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                INSERT INTO refund_signatures (
                    reserve_id, round_id, signer_address, tx_hash,
                    block_height, signer_public_key, refund_signatures
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (reserve_id, round_id, signer_address) DO UPDATE SET
                    refund_signatures = EXCLUDED.refund_signatures
                ''',
                _num(row['reserve_id']),
                _num(row['round_id']),
                row['signer_address'],
                row['tx_hash'],
                row['block_height'],
                row.get('signer_public_key'),
                row['refund_signatures']
            )
        return True

    async def insert_broadcast(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                '''
                INSERT INTO btc_broadcasts (
                    tx_hash, msg_index, block_height, kind,
                    reserve_id, round_id, signed_tx, judge_address
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (tx_hash, msg_index) DO NOTHING
                RETURNING true
                ''',
                row['tx_hash'],
                row['msg_index'],
                row['block_height'],
                row['kind'],
                _num(row['reserve_id']),
                _num(row['round_id']),
                row['signed_tx'],
                row.get('judge_address')
            )
        return bool(inserted)

    # Forks module side tables

    async def upsert_delegate_keys(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                INSERT INTO delegate_keys (
                    validator_address, tx_hash, block_height,
                    btc_oracle_address, btc_public_key, zk_oracle_address
                ) VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (validator_address) DO UPDATE SET
                    btc_oracle_address = EXCLUDED.btc_oracle_address,
                    btc_public_key = EXCLUDED.btc_public_key,
                    zk_oracle_address = EXCLUDED.zk_oracle_address,
                    updated_at = now()
                ''',
                row['validator_address'],
                row['tx_hash'],
                row['block_height'],
                row.get('btc_oracle_address'),
                row.get('btc_public_key'),
                row.get('zk_oracle_address')
            )
        return True

    async def insert_chain_tip(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                '''
                INSERT INTO btc_chain_tips (
                    btc_height, btc_oracle_address, btc_hash, tx_hash, block_height
                ) VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (btc_height, btc_oracle_address) DO NOTHING
                RETURNING true
                ''',
                _num(row['btc_height']),
                row['btc_oracle_address'],
                row['btc_hash'],
                row['tx_hash'],
                row['block_height']
            )
        return bool(inserted)

    # Volt module side tables

    async def upsert_fragment_signer(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''
                INSERT INTO fragment_signers (
                    fragment_id, signer_address, tx_hash, block_height,
                    application_fee, fee_bips, btc_pub_key
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (fragment_id, signer_address) DO UPDATE SET
                    application_fee = EXCLUDED.application_fee,
                    fee_bips = EXCLUDED.fee_bips,
                    updated_at = now()
                ''',
                _num(row['fragment_id']),
                row['signer_address'],
                row['tx_hash'],
                row['block_height'],
                _num(row['application_fee']),
                row['fee_bips'],
                row.get('btc_pub_key')
            )
        return True

    # zkOS module side tables

    async def insert_mint_burn(self, row: Dict[str, Any]) -> bool:
        async with self.pool.acquire() as conn:
            inserted = await conn.fetchval(
                '''
                INSERT INTO zkos_mint_burns (
                    tx_hash, msg_index, block_height, mint_or_burn,
                    btc_value, qq_account, encrypt_scalar, twilight_address
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (tx_hash, msg_index) DO NOTHING
                RETURNING true
                ''',
                row['tx_hash'],
                row['msg_index'],
                row['block_height'],
                row['mint_or_burn'],
                _num(row['btc_value']),
                row.get('qq_account'),
                row.get('encrypt_scalar'),
                row.get('twilight_address')
            )
        return bool(inserted)
