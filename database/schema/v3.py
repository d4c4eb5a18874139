"""Schema v3 - Separate admin notes on withdrawals and private verification documents.

This version adds:
- withdrawal_requests.admin_notes so a status change no longer overwrites
  the note the freelancer wrote on the request
- an index on verification_requests.document_url used to authorize
  document downloads
"""
import copy

from .v2 import schema as _v2

_tables = {table['name']: table for table in copy.deepcopy(_v2['tables'])}

_tables['withdrawal_requests']['columns'].append(
    {'name': 'admin_notes', 'type': 'TEXT'}
)
_tables['verification_requests'].setdefault('indexes', []).append(
    {'name': 'idx_verification_document_url', 'columns': ['document_url']}
)

schema = {
    'version': 3,
    'tables': list(_tables.values()),
    'migrations': [
        '''
        ALTER TABLE withdrawal_requests
        ADD COLUMN IF NOT EXISTS admin_notes TEXT;
        ''',
        '''
        CREATE INDEX IF NOT EXISTS idx_verification_document_url
        ON verification_requests(document_url);
        '''
    ]
}
