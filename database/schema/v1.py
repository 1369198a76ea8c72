"""Schema v1 - Initial indexer schema.

This version includes tables for:
- Sync checkpoint state
- Blocks, transactions, events and accounts
- Bridge, forks and volt module side tables
- zkOS transfers (enrichment queue) and mint/burn log
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'indexer_state',
            'columns': [
                {'name': 'key', 'type': 'TEXT', 'primary_key': True},
                {'name': 'value', 'type': 'TEXT', 'nullable': False},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ]
        },
        {
            'name': 'blocks',
            'columns': [
                {'name': 'height', 'type': 'INT8', 'primary_key': True},
                {'name': 'hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'timestamp', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'proposer', 'type': 'TEXT'},
                {'name': 'tx_count', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'gas_used', 'type': 'NUMERIC', 'nullable': False, 'default': '0'},
                {'name': 'gas_wanted', 'type': 'NUMERIC', 'nullable': False, 'default': '0'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_blocks_hash', 'columns': ['hash']},
                {'name': 'idx_blocks_timestamp', 'columns': ['timestamp']}
            ]
        },
        {
            'name': 'transactions',
            'columns': [
                {'name': 'hash', 'type': 'TEXT', 'primary_key': True},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'block_time', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'message_types', 'type': 'TEXT[]', 'nullable': False},
                {'name': 'messages', 'type': 'JSONB', 'nullable': False},
                {'name': 'fee', 'type': 'JSONB'},
                {'name': 'gas_used', 'type': 'NUMERIC', 'nullable': False, 'default': '0'},
                {'name': 'gas_wanted', 'type': 'NUMERIC', 'nullable': False, 'default': '0'},
                {'name': 'memo', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False},  # 'success' or 'failed'
                {'name': 'error_log', 'type': 'TEXT'},
                {'name': 'signers', 'type': 'TEXT[]', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['block_height'], 'references': 'blocks(height)', 'on_delete': 'ON DELETE CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_transactions_block', 'columns': ['block_height']},
                {'name': 'idx_transactions_type', 'columns': ['type']},
                {'name': 'idx_transactions_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'events',
            'columns': [
                {'name': 'id', 'type': 'BIGSERIAL', 'primary_key': True},
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'event_index', 'type': 'INT8', 'nullable': False},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'attributes', 'type': 'JSONB', 'nullable': False}
            ],
            'foreign_keys': [
                {'columns': ['block_height'], 'references': 'blocks(height)', 'on_delete': 'ON DELETE CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_events_block', 'columns': ['block_height']},
                {'name': 'idx_events_tx', 'columns': ['tx_hash']},
                {'name': 'idx_events_type', 'columns': ['type']}
            ]
        },
        {
            'name': 'accounts',
            'columns': [
                {'name': 'address', 'type': 'TEXT', 'primary_key': True},
                {'name': 'tx_count', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'first_seen', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'last_seen', 'type': 'TIMESTAMPTZ', 'nullable': False}
            ]
        },
        # Bridge module
        {
            'name': 'btc_deposits',
            'columns': [
                {'name': 'id', 'type': 'BIGSERIAL', 'primary_key': True},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'reserve_address', 'type': 'TEXT'},
                {'name': 'deposit_amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'btc_height', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'btc_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'twilight_deposit_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'oracle_address', 'type': 'TEXT'},
                {'name': 'votes', 'type': 'INT8', 'nullable': False, 'default': '1'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'unique': [['btc_hash', 'twilight_deposit_address']],
            'indexes': [
                {'name': 'idx_btc_deposits_address', 'columns': ['twilight_deposit_address']}
            ]
        },
        {
            # One row per confirming message, so replays never double count votes
            'name': 'btc_deposit_votes',
            'columns': [
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'msg_index', 'type': 'INT8'},
                {'name': 'btc_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'twilight_deposit_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'oracle_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['tx_hash', 'msg_index']
        },
        {
            'name': 'btc_deposit_addresses',
            'columns': [
                {'name': 'btc_deposit_address', 'type': 'TEXT', 'primary_key': True},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'btc_satoshi_test_amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'twilight_staking_amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'twilight_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_btc_deposit_addresses_twilight', 'columns': ['twilight_address']}
            ]
        },
        {
            'name': 'btc_withdrawals',
            'columns': [
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'msg_index', 'type': 'INT8'},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'withdraw_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'reserve_id', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'withdraw_amount', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'twilight_address', 'type': 'TEXT'},
                {'name': 'is_confirmed', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['tx_hash', 'msg_index'],
            'indexes': [
                {'name': 'idx_btc_withdrawals_twilight', 'columns': ['twilight_address']}
            ]
        },
        {
            'name': 'sweep_proposals',
            'columns': [
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'msg_index', 'type': 'INT8'},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'reserve_id', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'new_reserve_address', 'type': 'TEXT'},
                {'name': 'judge_address', 'type': 'TEXT'},
                {'name': 'btc_block_number', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'btc_relay_capacity_value', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'btc_tx_hash', 'type': 'TEXT'},
                {'name': 'unlock_height', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'round_id', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'oracle_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['tx_hash', 'msg_index'],
            'indexes': [
                {'name': 'idx_sweep_proposals_reserve', 'columns': ['reserve_id', 'round_id']}
            ]
        },
        {
            'name': 'sweep_signatures',
            'columns': [
                {'name': 'reserve_id', 'type': 'NUMERIC'},
                {'name': 'round_id', 'type': 'NUMERIC'},
                {'name': 'signer_address', 'type': 'TEXT'},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'signer_public_key', 'type': 'TEXT'},
                {'name': 'sweep_signatures', 'type': 'TEXT[]', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['reserve_id', 'round_id', 'signer_address']
        },
        {
            'name': 'refund_signatures',
            'columns': [
                {'name': 'reserve_id', 'type': 'NUMERIC'},
                {'name': 'round_id', 'type': 'NUMERIC'},
                {'name': 'signer_address', 'type': 'TEXT'},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'signer_public_key', 'type': 'TEXT'},
                {'name': 'refund_signatures', 'type': 'TEXT[]', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['reserve_id', 'round_id', 'signer_address']
        },
        {
            'name': 'btc_broadcasts',
            'columns': [
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'msg_index', 'type': 'INT8'},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'kind', 'type': 'TEXT', 'nullable': False},  # 'sweep' or 'refund'
                {'name': 'reserve_id', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'round_id', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'signed_tx', 'type': 'TEXT', 'nullable': False},
                {'name': 'judge_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['tx_hash', 'msg_index'],
            'indexes': [
                {'name': 'idx_btc_broadcasts_reserve', 'columns': ['reserve_id', 'round_id']}
            ]
        },
        # Forks module
        {
            'name': 'delegate_keys',
            'columns': [
                {'name': 'validator_address', 'type': 'TEXT', 'primary_key': True},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'btc_oracle_address', 'type': 'TEXT'},
                {'name': 'btc_public_key', 'type': 'TEXT'},
                {'name': 'zk_oracle_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ]
        },
        {
            'name': 'btc_chain_tips',
            'columns': [
                {'name': 'btc_height', 'type': 'NUMERIC'},
                {'name': 'btc_oracle_address', 'type': 'TEXT'},
                {'name': 'btc_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['btc_height', 'btc_oracle_address']
        },
        # Volt module
        {
            'name': 'fragment_signers',
            'columns': [
                {'name': 'fragment_id', 'type': 'NUMERIC'},
                {'name': 'signer_address', 'type': 'TEXT'},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'application_fee', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'fee_bips', 'type': 'INT8', 'nullable': False},
                {'name': 'btc_pub_key', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['fragment_id', 'signer_address']
        },
        # zkOS module
        {
            'name': 'zkos_transfers',
            'columns': [
                {'name': 'id', 'type': 'BIGSERIAL', 'primary_key': True},
                {'name': 'tx_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'zk_tx_id', 'type': 'TEXT', 'unique': True},
                {'name': 'tx_byte_code', 'type': 'TEXT', 'nullable': False},
                {'name': 'tx_fee', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'zk_oracle_address', 'type': 'TEXT'},
                {'name': 'decoded_data', 'type': 'JSONB'},
                {'name': 'inputs', 'type': 'JSONB'},
                {'name': 'outputs', 'type': 'JSONB'},
                {'name': 'decode_status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'decode_attempts', 'type': 'INT8', 'nullable': False, 'default': '0'},
                {'name': 'last_decode_error', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['tx_hash'], 'references': 'transactions(hash)', 'on_delete': 'ON DELETE CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_zkos_transfers_tx', 'columns': ['tx_hash']},
                {'name': 'idx_zkos_transfers_pending', 'columns': ['id'], 'where': "decode_status = 'pending'"}
            ]
        },
        {
            'name': 'zkos_mint_burns',
            'columns': [
                {'name': 'tx_hash', 'type': 'TEXT'},
                {'name': 'msg_index', 'type': 'INT8'},
                {'name': 'block_height', 'type': 'INT8', 'nullable': False},
                {'name': 'mint_or_burn', 'type': 'BOOLEAN', 'nullable': False},  # true = mint
                {'name': 'btc_value', 'type': 'NUMERIC', 'nullable': False},
                {'name': 'qq_account', 'type': 'TEXT'},
                {'name': 'encrypt_scalar', 'type': 'TEXT'},
                {'name': 'twilight_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['tx_hash', 'msg_index'],
            'indexes': [
                {'name': 'idx_zkos_mint_burns_twilight', 'columns': ['twilight_address']}
            ]
        }
    ]
}
