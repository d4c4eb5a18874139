"""Tests for balance arithmetic and withdrawal amount checks."""

import pytest
from decimal import Decimal

from withdrawals import (
    compute_balance,
    validate_withdrawal_amount,
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidAmountError
)

MINIMUM = Decimal("100")

def test_available_is_total_minus_pending():
    """Available balance subtracts pending and approved withdrawals."""
    balance = compute_balance(Decimal("500"), Decimal("0"), Decimal("450"))

    assert balance.total_earnings == Decimal("500")
    assert balance.pending_withdrawals == Decimal("450")
    assert balance.available_balance == Decimal("50")

def test_completed_withdrawals_reduce_total():
    balance = compute_balance(Decimal("1000"), Decimal("300"), Decimal("200"))

    assert balance.total_earnings == Decimal("700")
    assert balance.available_balance == Decimal("500")

def test_available_never_negative():
    """Outstanding requests larger than earnings clamp to zero."""
    balance = compute_balance(Decimal("100"), Decimal("0"), Decimal("250"))

    assert balance.available_balance == Decimal("0")
    assert balance.pending_withdrawals == Decimal("250")

def test_missing_sums_count_as_zero():
    balance = compute_balance(None, None, None)

    assert balance.total_earnings == 0
    assert balance.available_balance == 0

@pytest.mark.parametrize("earned,withdrawn,pending", [
    ("0", "0", "0"),
    ("500", "0", "450"),
    ("1234.56", "200.00", "34.56"),
    ("50", "0", "50"),
    ("10", "5", "100"),
])
def test_balance_identity(earned, withdrawn, pending):
    balance = compute_balance(Decimal(earned), Decimal(withdrawn), Decimal(pending))

    expected = max(balance.total_earnings - balance.pending_withdrawals, Decimal("0"))
    assert balance.available_balance == expected
    assert balance.available_balance >= 0

def test_request_rejected_when_above_available():
    """Earnings 500 with 450 pending leaves 50, so 100 is too much."""
    balance = compute_balance(Decimal("500"), Decimal("0"), Decimal("450"))

    with pytest.raises(InsufficientBalanceError) as exc_info:
        validate_withdrawal_amount(Decimal("100"), balance.available_balance, MINIMUM)

    assert exc_info.value.available == Decimal("50")

def test_request_at_minimum_within_balance_succeeds():
    amount = validate_withdrawal_amount(Decimal("100"), Decimal("150"), MINIMUM)
    assert amount == Decimal("100")

def test_request_above_available_fails():
    with pytest.raises(InsufficientBalanceError):
        validate_withdrawal_amount(Decimal("200"), Decimal("150"), MINIMUM)

def test_request_below_minimum_fails_even_with_balance():
    with pytest.raises(BelowMinimumError) as exc_info:
        validate_withdrawal_amount(Decimal("99.99"), Decimal("10000"), MINIMUM)

    assert exc_info.value.minimum == MINIMUM

def test_request_equal_to_available_succeeds():
    assert validate_withdrawal_amount("150.00", Decimal("150"), MINIMUM) == Decimal("150.00")

@pytest.mark.parametrize("amount", ["0", "-5", "100.001", "abc", "NaN"])
def test_invalid_amounts(amount):
    with pytest.raises(InvalidAmountError):
        validate_withdrawal_amount(amount, Decimal("1000"), MINIMUM)
