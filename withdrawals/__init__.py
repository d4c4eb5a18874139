"""Withdrawals module for freelancer earnings and cash-out.

This module handles:
- Deriving a freelancer's balance from payments and withdrawal requests
- Stored payout accounts (bank transfer or PayPal)
- Creating withdrawal requests against the available balance
- The admin-driven request lifecycle: pending -> approved | rejected, approved -> completed

Balance checks and status changes lock the affected rows so concurrent
requests cannot overdraw a balance or move a request twice.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from asyncpg.pool import Pool

from config import settings_conf
from database import get_pool
from auth.models import UserRole
from notifications import send_notification, deliver
from .balance import compute_balance, validate_withdrawal_amount
from .exceptions import (
    WithdrawalError, InvalidAmountError, BelowMinimumError,
    InsufficientBalanceError, MissingPayoutAccountError,
    PayoutAccountNotFoundError, RequestNotFoundError,
    InvalidTransitionError, WithdrawalPermissionError
)
from .models import (
    WithdrawalStatus, PaymentMethod, UserBalance, Payment, Earnings,
    PayoutAccount, WithdrawalRequest, check_transition, OUTSTANDING_STATUSES
)

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL_AMOUNT = settings_conf['min_withdrawal_amount']

REQUEST_COLUMNS = '''
    id, user_id, amount, status, payment_method, account_details, notes,
    admin_id, admin_notes, payment_id, payout_account_id, requested_at, processed_at
'''

PAYOUT_ACCOUNT_COLUMNS = 'id, user_id, method, account_details, is_default, created_at'

STATUS_NOTIFICATIONS = {
    WithdrawalStatus.APPROVED: (
        "Withdrawal approved",
        "Your withdrawal request of {amount} has been approved."
    ),
    WithdrawalStatus.REJECTED: (
        "Withdrawal rejected",
        "Your withdrawal request of {amount} has been rejected."
    ),
    WithdrawalStatus.COMPLETED: (
        "Withdrawal completed",
        "Your withdrawal of {amount} has been paid out."
    ),
}

class WithdrawalManager:
    """Manages balances, payout accounts and withdrawal requests."""

    def __init__(
        self,
        pool: Optional[Pool] = None,
        min_amount: Optional[Decimal] = None
    ) -> None:
        """Initialize withdrawal manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
            min_amount: Minimum withdrawal amount, defaults to settings
        """
        self.pool = pool
        self.min_amount = min_amount if min_amount is not None else MIN_WITHDRAWAL_AMOUNT

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _balance(self, conn, user_id: int) -> UserBalance:
        row = await conn.fetchrow(
            '''
            SELECT
                COALESCE((
                    SELECT SUM(amount) FROM payments
                    WHERE freelancer_id = $1 AND status = 'completed'
                ), 0) AS earned,
                COALESCE((
                    SELECT SUM(amount) FROM withdrawal_requests
                    WHERE user_id = $1 AND status = 'completed'
                ), 0) AS withdrawn,
                COALESCE((
                    SELECT SUM(amount) FROM withdrawal_requests
                    WHERE user_id = $1 AND status = ANY($2::text[])
                ), 0) AS pending
            ''',
            user_id,
            [status.value for status in OUTSTANDING_STATUSES]
        )
        return compute_balance(row['earned'], row['withdrawn'], row['pending'])

    async def get_balance(self, user_id: int) -> UserBalance:
        """Get a user's current balance."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                return await self._balance(conn, user_id)
        except Exception as e:
            logger.error(f"Error getting balance for user {user_id}: {e}")
            raise WithdrawalError(f"Failed to get balance: {str(e)}")

    async def get_earnings(self, user_id: int) -> Earnings:
        """Get a user's balance and the payments credited to them."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                balance = await self._balance(conn, user_id)
                rows = await conn.fetch(
                    '''
                    SELECT id, project_id, client_id, freelancer_id, amount, status,
                           transaction_id, payment_method, created_at
                    FROM payments
                    WHERE freelancer_id = $1
                    ORDER BY created_at DESC, id DESC
                    ''',
                    user_id
                )
                return Earnings(
                    balance=balance,
                    payments=[Payment.from_row(row) for row in rows]
                )
        except Exception as e:
            logger.error(f"Error getting earnings for user {user_id}: {e}")
            raise WithdrawalError(f"Failed to get earnings: {str(e)}")

    async def add_payout_account(
        self,
        user_id: int,
        method: PaymentMethod,
        account_details: str,
        is_default: bool = False
    ) -> PayoutAccount:
        """Store a payout destination. A user's first account becomes the default."""
        await self.ensure_pool()

        try:
            method = PaymentMethod(method)
        except ValueError:
            raise WithdrawalError(f"Unsupported payment method: {method}")
        account_details = (account_details or '').strip()
        if not account_details:
            raise WithdrawalError("Account details are required")

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    existing = await conn.fetchval(
                        'SELECT COUNT(*) FROM payout_accounts WHERE user_id = $1',
                        user_id
                    )
                    is_default = is_default or existing == 0
                    if is_default:
                        await conn.execute(
                            'UPDATE payout_accounts SET is_default = false WHERE user_id = $1',
                            user_id
                        )
                    row = await conn.fetchrow(
                        f'''
                        INSERT INTO payout_accounts (
                            user_id, method, account_details, is_default
                        ) VALUES ($1, $2, $3, $4)
                        RETURNING {PAYOUT_ACCOUNT_COLUMNS}
                        ''',
                        user_id,
                        method.value,
                        account_details,
                        is_default
                    )
                    logger.info(f"Added {method.value} payout account {row['id']} for user {user_id}")
                    return PayoutAccount.from_row(row)

        except Exception as e:
            logger.error(f"Error adding payout account: {e}")
            raise WithdrawalError(f"Failed to add payout account: {str(e)}")

    async def list_payout_accounts(self, user_id: int) -> List[PayoutAccount]:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {PAYOUT_ACCOUNT_COLUMNS}
                FROM payout_accounts
                WHERE user_id = $1
                ORDER BY is_default DESC, created_at
                ''',
                user_id
            )
            return [PayoutAccount.from_row(row) for row in rows]

    async def delete_payout_account(self, account_id: int, user_id: int):
        """Delete one of the user's payout accounts.

        Raises:
            PayoutAccountNotFoundError: If the account does not exist or is not the user's
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            result = await conn.execute(
                'DELETE FROM payout_accounts WHERE id = $1 AND user_id = $2',
                account_id,
                user_id
            )
            if result == 'DELETE 0':
                raise PayoutAccountNotFoundError(f"Payout account {account_id} not found")
            logger.info(f"Deleted payout account {account_id} for user {user_id}")

    async def request_withdrawal(
        self,
        user_id: int,
        amount: Decimal,
        payout_account_id: Optional[int] = None,
        payment_method: Optional[PaymentMethod] = None,
        account_details: Optional[str] = None,
        notes: Optional[str] = None
    ) -> WithdrawalRequest:
        """Create a pending withdrawal request.

        The destination is taken from ``payout_account_id`` when given,
        otherwise from ``payment_method`` and ``account_details``.

        Raises:
            WithdrawalPermissionError: If the user is not a freelancer
            MissingPayoutAccountError: If no destination was given
            PayoutAccountNotFoundError: If the payout account is not the user's
            InvalidAmountError: If the amount is malformed
            BelowMinimumError: If the amount is below the minimum
            InsufficientBalanceError: If the amount exceeds the available balance
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    # Serialize withdrawals per user
                    role = await conn.fetchval(
                        'SELECT role FROM users WHERE id = $1 FOR UPDATE',
                        user_id
                    )
                    if role != UserRole.FREELANCER.value:
                        raise WithdrawalPermissionError("Only freelancers can request withdrawals")

                    if payout_account_id is not None:
                        account = await conn.fetchrow(
                            '''
                            SELECT method, account_details FROM payout_accounts
                            WHERE id = $1 AND user_id = $2
                            ''',
                            payout_account_id,
                            user_id
                        )
                        if not account:
                            raise PayoutAccountNotFoundError(
                                f"Payout account {payout_account_id} not found"
                            )
                        method = PaymentMethod(account['method'])
                        details = account['account_details']
                    elif payment_method and account_details and account_details.strip():
                        try:
                            method = PaymentMethod(payment_method)
                        except ValueError:
                            raise WithdrawalError(f"Unsupported payment method: {payment_method}")
                        details = account_details.strip()
                    else:
                        raise MissingPayoutAccountError(
                            "A payout account or payment method with account details is required"
                        )

                    balance = await self._balance(conn, user_id)
                    amount = validate_withdrawal_amount(
                        amount,
                        balance.available_balance,
                        self.min_amount
                    )

                    row = await conn.fetchrow(
                        f'''
                        INSERT INTO withdrawal_requests (
                            user_id, amount, payment_method, account_details,
                            notes, payout_account_id
                        ) VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING {REQUEST_COLUMNS}
                        ''',
                        user_id,
                        amount,
                        method.value,
                        details,
                        notes,
                        payout_account_id
                    )

                    logger.info(
                        f"Withdrawal request {row['id']} for {amount} created by user {user_id} "
                        f"(available {balance.available_balance})"
                    )
                    return WithdrawalRequest.from_row(row)

        except WithdrawalError:
            raise
        except Exception as e:
            logger.error(f"Error creating withdrawal request: {e}")
            raise WithdrawalError(f"Failed to create withdrawal request: {str(e)}")

    async def list_my_requests(self, user_id: int) -> List[WithdrawalRequest]:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {REQUEST_COLUMNS}
                FROM withdrawal_requests
                WHERE user_id = $1
                ORDER BY requested_at DESC, id DESC
                ''',
                user_id
            )
            return [WithdrawalRequest.from_row(row) for row in rows]

    async def list_requests(
        self,
        status: Optional[WithdrawalStatus] = None
    ) -> List[WithdrawalRequest]:
        """List all withdrawal requests, optionally filtered by status."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {REQUEST_COLUMNS}
                FROM withdrawal_requests
                WHERE $1::text IS NULL OR status = $1
                ORDER BY requested_at DESC, id DESC
                ''',
                WithdrawalStatus(status).value if status else None
            )
            return [WithdrawalRequest.from_row(row) for row in rows]

    async def get_request(self, request_id: int) -> WithdrawalRequest:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'SELECT {REQUEST_COLUMNS} FROM withdrawal_requests WHERE id = $1',
                request_id
            )
            if not row:
                raise RequestNotFoundError(f"Withdrawal request {request_id} not found")
            return WithdrawalRequest.from_row(row)

    async def update_status(
        self,
        request_id: int,
        new_status: WithdrawalStatus,
        admin_id: int,
        admin_notes: Optional[str] = None,
        payment_id: Optional[str] = None
    ) -> WithdrawalRequest:
        """Move a withdrawal request to a new status.

        Allowed: pending -> approved | rejected, approved -> completed.
        ``admin_notes`` is kept apart from the freelancer's own ``notes``.

        Raises:
            RequestNotFoundError: If the request does not exist
            InvalidTransitionError: If the transition is not allowed
        """
        await self.ensure_pool()

        new_status = WithdrawalStatus(new_status)
        if payment_id and new_status != WithdrawalStatus.COMPLETED:
            raise WithdrawalError("A payment reference can only be attached on completion")

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        '''
                        SELECT status FROM withdrawal_requests
                        WHERE id = $1
                        FOR UPDATE
                        ''',
                        request_id
                    )
                    if not current:
                        raise RequestNotFoundError(f"Withdrawal request {request_id} not found")

                    check_transition(current['status'], new_status)

                    row = await conn.fetchrow(
                        f'''
                        UPDATE withdrawal_requests
                        SET status = $2,
                            admin_id = $3,
                            admin_notes = COALESCE($4, admin_notes),
                            payment_id = COALESCE($5, payment_id),
                            processed_at = now()
                        WHERE id = $1
                        RETURNING {REQUEST_COLUMNS}
                        ''',
                        request_id,
                        new_status.value,
                        admin_id,
                        admin_notes,
                        payment_id
                    )
                    request = WithdrawalRequest.from_row(row)

                    title, message = STATUS_NOTIFICATIONS[new_status]
                    notification = await send_notification(
                        conn,
                        request.user_id,
                        f"withdrawal_{new_status.value}",
                        title,
                        message.format(amount=request.amount),
                        {
                            "withdrawalRequestId": request.id,
                            "status": new_status.value,
                            "amount": str(request.amount)
                        }
                    )

            logger.info(
                f"Withdrawal request {request_id} moved {current['status']} -> "
                f"{new_status.value} by admin {admin_id}"
            )
            await deliver(notification)
            return request

        except WithdrawalError:
            raise
        except Exception as e:
            logger.error(f"Error updating withdrawal request {request_id}: {e}")
            raise WithdrawalError(f"Failed to update withdrawal request: {str(e)}")

__all__ = [
    'WithdrawalManager',
    'WithdrawalStatus',
    'PaymentMethod',
    'UserBalance',
    'Payment',
    'Earnings',
    'PayoutAccount',
    'WithdrawalRequest',
    'compute_balance',
    'validate_withdrawal_amount',
    'check_transition',
    'WithdrawalError',
    'InvalidAmountError',
    'BelowMinimumError',
    'InsufficientBalanceError',
    'MissingPayoutAccountError',
    'PayoutAccountNotFoundError',
    'RequestNotFoundError',
    'InvalidTransitionError',
    'WithdrawalPermissionError',
    'MIN_WITHDRAWAL_AMOUNT'
]
