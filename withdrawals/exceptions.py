"""Withdrawal errors."""
from decimal import Decimal


class WithdrawalError(Exception):
    """Base class for withdrawal-related errors."""
    pass


class InvalidAmountError(WithdrawalError):
    """Raised when an amount is not a positive value with at most two decimals."""
    pass


class BelowMinimumError(WithdrawalError):
    """Raised when a withdrawal is smaller than the minimum allowed."""
    def __init__(self, amount: Decimal, minimum: Decimal):
        self.amount = amount
        self.minimum = minimum
        super().__init__(
            f"Minimum withdrawal amount is {minimum}, requested {amount}"
        )


class InsufficientBalanceError(WithdrawalError):
    """Raised when a withdrawal exceeds the available balance."""
    def __init__(self, amount: Decimal, available: Decimal):
        self.amount = amount
        self.available = available
        super().__init__(
            f"Insufficient balance: available {available}, requested {amount}"
        )


class MissingPayoutAccountError(WithdrawalError):
    """Raised when a withdrawal has no destination account."""
    pass


class PayoutAccountNotFoundError(WithdrawalError):
    """Raised when a payout account does not exist or belongs to someone else."""
    pass


class RequestNotFoundError(WithdrawalError):
    """Raised when a withdrawal request does not exist."""
    pass


class InvalidTransitionError(WithdrawalError):
    """Raised when a withdrawal request cannot move to the requested status."""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change withdrawal status from {current} to {requested}"
        )


class WithdrawalPermissionError(WithdrawalError):
    """Raised when the user is not allowed to withdraw."""
    pass
