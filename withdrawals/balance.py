"""Balance arithmetic.

The available balance is never stored. It is derived on every read from
completed payments and the user's withdrawal requests:

    total_earnings      = completed payments - completed withdrawals
    pending_withdrawals = pending + approved withdrawals
    available_balance   = total_earnings - pending_withdrawals, floored at 0
"""
import logging
from decimal import Decimal

from .exceptions import BelowMinimumError, InsufficientBalanceError, InvalidAmountError
from .models import UserBalance

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

def compute_balance(earned, withdrawn, pending) -> UserBalance:
    """Derive a user's balance from summed payment and withdrawal amounts."""
    earned = Decimal(earned or 0)
    withdrawn = Decimal(withdrawn or 0)
    pending = Decimal(pending or 0)

    total = earned - withdrawn
    available = total - pending
    if available < ZERO:
        # Outstanding requests exceed earnings, e.g. after a refunded payment
        logger.warning(
            f"Negative available balance {available} "
            f"(earned {earned}, withdrawn {withdrawn}, pending {pending}), clamping to 0"
        )
        available = ZERO

    return UserBalance(
        total_earnings=total,
        pending_withdrawals=pending,
        available_balance=available
    )

def validate_withdrawal_amount(amount, available, minimum) -> Decimal:
    """Check a requested amount against the minimum and the available balance.

    Returns:
        The amount as a Decimal

    Raises:
        InvalidAmountError: If the amount is not positive or has over two decimals
        BelowMinimumError: If ``amount < minimum``
        InsufficientBalanceError: If ``amount > available``
    """
    try:
        amount = Decimal(str(amount))
    except ArithmeticError:
        raise InvalidAmountError(f"Invalid amount: {amount}")

    if not amount.is_finite() or amount <= ZERO:
        raise InvalidAmountError("Amount must be positive")
    if amount.as_tuple().exponent < -2:
        raise InvalidAmountError("Amount cannot have more than two decimal places")

    minimum = Decimal(minimum)
    available = Decimal(available)

    if amount < minimum:
        raise BelowMinimumError(amount, minimum)
    if amount > available:
        raise InsufficientBalanceError(amount, available)

    return amount
