"""Schema v1 - Initial database schema.

This version includes tables for:
- Users and authentication sessions
- Direct messages between users
- Project payments credited to freelancers
- Withdrawal and verification requests
- Notifications
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'username', 'type': 'TEXT', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False},
                {'name': 'full_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'profile_image', 'type': 'TEXT'},
                {'name': 'role', 'type': 'TEXT', 'nullable': False, 'default': "'client'"},
                {'name': 'freelancer_level', 'type': 'TEXT'},
                {'name': 'freelancer_type', 'type': 'TEXT'},
                {'name': 'is_verified', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "role IN ('client', 'freelancer', 'admin')"
            ],
            'indexes': [
                {'name': 'idx_users_email', 'columns': ['email'], 'unique': True},
                {'name': 'idx_users_role', 'columns': ['role']}
            ]
        },
        {
            'name': 'auth_sessions',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'user_id', 'type': 'INT4', 'nullable': False},
                {'name': 'token', 'type': 'TEXT', 'nullable': False},
                {'name': 'expires_at', 'type': 'TIMESTAMPTZ', 'nullable': False},
                {'name': 'revoked', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'user_agent', 'type': 'TEXT'},
                {'name': 'ip_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'last_used_at', 'type': 'TIMESTAMPTZ'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_sessions_token', 'columns': ['token'], 'unique': True},
                {'name': 'idx_sessions_user', 'columns': ['user_id']}
            ]
        },
        {
            'name': 'messages',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'sender_id', 'type': 'INT4', 'nullable': False},
                {'name': 'receiver_id', 'type': 'INT4', 'nullable': False},
                {'name': 'content', 'type': 'TEXT', 'nullable': False},
                {'name': 'is_read', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['sender_id'], 'references': 'users(id)'},
                {'columns': ['receiver_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_messages_sender', 'columns': ['sender_id', 'created_at']},
                {'name': 'idx_messages_receiver', 'columns': ['receiver_id', 'created_at']}
            ]
        },
        {
            'name': 'payments',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'project_id', 'type': 'INT4', 'nullable': False},
                {'name': 'client_id', 'type': 'INT4', 'nullable': False},
                {'name': 'freelancer_id', 'type': 'INT4', 'nullable': False},
                {'name': 'amount', 'type': 'NUMERIC(14,2)', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'transaction_id', 'type': 'TEXT'},
                {'name': 'payment_method', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "status IN ('pending', 'completed', 'failed')",
                "amount >= 0"
            ],
            'foreign_keys': [
                {'columns': ['client_id'], 'references': 'users(id)'},
                {'columns': ['freelancer_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_payments_freelancer', 'columns': ['freelancer_id', 'status']}
            ]
        },
        {
            'name': 'withdrawal_requests',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'user_id', 'type': 'INT4', 'nullable': False},
                {'name': 'amount', 'type': 'NUMERIC(14,2)', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'payment_method', 'type': 'TEXT', 'nullable': False},
                {'name': 'account_details', 'type': 'TEXT', 'nullable': False},
                {'name': 'notes', 'type': 'TEXT'},
                {'name': 'admin_id', 'type': 'INT4'},
                {'name': 'payment_id', 'type': 'TEXT'},
                {'name': 'requested_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'processed_at', 'type': 'TIMESTAMPTZ'}
            ],
            'checks': [
                "status IN ('pending', 'approved', 'rejected', 'completed')",
                "amount > 0"
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)'},
                {'columns': ['admin_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_withdrawals_user', 'columns': ['user_id', 'status']},
                {'name': 'idx_withdrawals_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'verification_requests',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'user_id', 'type': 'INT4', 'nullable': False},
                {'name': 'document_type', 'type': 'TEXT', 'nullable': False},
                {'name': 'document_url', 'type': 'TEXT', 'nullable': False},
                {'name': 'additional_info', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'pending'"},
                {'name': 'reviewer_id', 'type': 'INT4'},
                {'name': 'review_notes', 'type': 'TEXT'},
                {'name': 'submitted_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'reviewed_at', 'type': 'TIMESTAMPTZ'}
            ],
            'checks': [
                "status IN ('pending', 'approved', 'rejected')"
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)'},
                {'columns': ['reviewer_id'], 'references': 'users(id)'}
            ],
            'indexes': [
                {'name': 'idx_verification_user', 'columns': ['user_id']},
                {'name': 'idx_verification_status', 'columns': ['status', 'submitted_at']}
            ]
        },
        {
            'name': 'notifications',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'user_id', 'type': 'INT4', 'nullable': False},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'message', 'type': 'TEXT', 'nullable': False},
                {'name': 'data', 'type': 'JSONB'},
                {'name': 'is_read', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_notifications_user', 'columns': ['user_id', 'is_read']}
            ]
        }
    ]
}
