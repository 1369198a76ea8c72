"""Schema v2 - Add program_type to zkos_transfers.

The enrichment worker classifies each decoded zkOS transaction by its program
type (Transfer, Message, CreateTraderOrder, ...). Storing it in its own
indexed column lets the query layer filter without digging into decoded_data.
"""
from copy import deepcopy

from .v1 import schema as v1_schema

tables = deepcopy(v1_schema['tables'])
for table in tables:
    if table['name'] == 'zkos_transfers':
        table['columns'].insert(
            -5,  # after outputs, before decode_status
            {'name': 'program_type', 'type': 'TEXT'}
        )
        table['indexes'].append(
            {'name': 'idx_zkos_transfers_program_type', 'columns': ['program_type']}
        )

schema = {
    'version': 2,
    'tables': tables,
    'migrations': [
        '''
        ALTER TABLE zkos_transfers ADD COLUMN IF NOT EXISTS program_type TEXT;
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_zkos_transfers_program_type
        ON zkos_transfers(program_type);
        ''',
        '''
        -- Backfill from decoded payloads written before the column existed
        UPDATE zkos_transfers
        SET program_type = COALESCE(
            decoded_data->'summary'->>'program_type',
            decoded_data->>'tx_type'
        )
        WHERE program_type IS NULL AND decoded_data IS NOT NULL;
        '''
    ]
}
