"""Schema v2 - Message moderation, media attachments and payout accounts.

This version adds:
- is_flagged, supervised_by and supervisor_notes to messages (admin moderation)
- media_url and media_type to messages (attachments)
- payout_accounts table holding stored bank/PayPal destinations
- withdrawal_requests.payout_account_id referencing the account used
"""
import copy

from .v1 import schema as _v1

_tables = {table['name']: table for table in copy.deepcopy(_v1['tables'])}

_tables['messages']['columns'].extend([
    {'name': 'is_flagged', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
    {'name': 'supervised_by', 'type': 'INT4'},
    {'name': 'supervisor_notes', 'type': 'TEXT'},
    {'name': 'media_url', 'type': 'TEXT'},
    {'name': 'media_type', 'type': 'TEXT'}
])
_tables['messages']['checks'] = [
    "media_type IS NULL OR media_type IN ('image', 'document', 'video')"
]
_tables['messages']['foreign_keys'].append(
    {'columns': ['supervised_by'], 'references': 'users(id)'}
)
_tables['messages']['indexes'].append(
    {'name': 'idx_messages_flagged', 'columns': ['id'], 'where': 'is_flagged'}
)

_tables['withdrawal_requests']['columns'].append(
    {'name': 'payout_account_id', 'type': 'INT4'}
)

_tables['payout_accounts'] = {
    'name': 'payout_accounts',
    'columns': [
        {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
        {'name': 'user_id', 'type': 'INT4', 'nullable': False},
        {'name': 'method', 'type': 'TEXT', 'nullable': False},
        {'name': 'account_details', 'type': 'TEXT', 'nullable': False},
        {'name': 'is_default', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
        {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
    ],
    'checks': [
        "method IN ('bank_transfer', 'paypal')"
    ],
    'foreign_keys': [
        {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
    ],
    'indexes': [
        {'name': 'idx_payout_accounts_user', 'columns': ['user_id']}
    ]
}

schema = {
    'version': 2,
    'tables': list(_tables.values()),
    'migrations': [
        '''
        ALTER TABLE messages
        ADD COLUMN IF NOT EXISTS is_flagged BOOLEAN NOT NULL DEFAULT false,
        ADD COLUMN IF NOT EXISTS supervised_by INT4 REFERENCES users(id),
        ADD COLUMN IF NOT EXISTS supervisor_notes TEXT,
        ADD COLUMN IF NOT EXISTS media_url TEXT,
        ADD COLUMN IF NOT EXISTS media_type TEXT
            CHECK (media_type IS NULL OR media_type IN ('image', 'document', 'video'));
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_messages_flagged ON messages(id) WHERE is_flagged;
        ''',
        '''
        CREATE TABLE IF NOT EXISTS payout_accounts (
            id SERIAL PRIMARY KEY,
            user_id INT4 NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            method TEXT NOT NULL CHECK (method IN ('bank_transfer', 'paypal')),
            account_details TEXT NOT NULL,
            is_default BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_payout_accounts_user ON payout_accounts(user_id);
        ''',
        '''
        ALTER TABLE withdrawal_requests
        ADD COLUMN IF NOT EXISTS payout_account_id INT4;
        '''
    ]
}
