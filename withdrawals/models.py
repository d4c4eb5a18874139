from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set

from database.models import RecordModel
from .exceptions import InvalidTransitionError


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses that still hold funds out of the available balance
OUTSTANDING_STATUSES = (WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED)

ALLOWED_TRANSITIONS: Dict[WithdrawalStatus, Set[WithdrawalStatus]] = {
    WithdrawalStatus.PENDING: {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED},
    WithdrawalStatus.APPROVED: {WithdrawalStatus.COMPLETED},
    WithdrawalStatus.REJECTED: set(),
    WithdrawalStatus.COMPLETED: set(),
}


def check_transition(current: WithdrawalStatus, requested: WithdrawalStatus):
    """Raise InvalidTransitionError unless ``current -> requested`` is allowed."""
    current = WithdrawalStatus(current)
    requested = WithdrawalStatus(requested)
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, requested.value)


class UserBalance(RecordModel):
    total_earnings: Decimal
    pending_withdrawals: Decimal
    available_balance: Decimal


class Payment(RecordModel):
    id: int
    project_id: int
    client_id: int
    freelancer_id: int
    amount: Decimal
    status: PaymentStatus
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: datetime


class Earnings(RecordModel):
    balance: UserBalance
    payments: List[Payment]


class PayoutAccount(RecordModel):
    id: int
    user_id: int
    method: PaymentMethod
    account_details: str
    is_default: bool = False
    created_at: datetime


class WithdrawalRequest(RecordModel):
    id: int
    user_id: int
    amount: Decimal
    status: WithdrawalStatus
    payment_method: PaymentMethod
    account_details: str
    notes: Optional[str] = None
    admin_id: Optional[int] = None
    admin_notes: Optional[str] = None
    payment_id: Optional[str] = None
    payout_account_id: Optional[int] = None
    requested_at: datetime
    processed_at: Optional[datetime] = None
