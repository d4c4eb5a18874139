"""Earnings, payout account and withdrawal request endpoints."""

from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from pydantic import Field

from auth import get_current_user, require_admin
from auth.models import CurrentUser
from database.models import RecordModel
from withdrawals import (
    WithdrawalManager, WithdrawalStatus, PaymentMethod, UserBalance,
    Earnings, PayoutAccount, WithdrawalRequest, WithdrawalError,
    PayoutAccountNotFoundError, RequestNotFoundError, WithdrawalPermissionError
)

router = APIRouter(
    tags=["Withdrawals"]
)

class CreateWithdrawalRequest(RecordModel):
    """Request model for a withdrawal.

    Either ``payoutAccountId`` or ``paymentMethod`` with ``accountDetails``
    must be given.
    """
    amount: Decimal = Field(..., gt=0)
    payout_account_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    account_details: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)

class UpdateStatusRequest(RecordModel):
    """Request model for an admin status change."""
    status: WithdrawalStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)
    payment_id: Optional[str] = None

class CreatePayoutAccountRequest(RecordModel):
    method: PaymentMethod
    account_details: str = Field(..., min_length=1)
    is_default: bool = False

def get_withdrawal_manager() -> WithdrawalManager:
    return WithdrawalManager()

def withdrawal_http_error(e: Exception) -> HTTPException:
    """Translate a withdrawal error into an HTTP error."""
    if isinstance(e, (PayoutAccountNotFoundError, RequestNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, WithdrawalPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, WithdrawalError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("/earnings", response_model=Earnings)
async def get_earnings(
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Get the current user's balance and payment history."""
    try:
        return await withdrawals.get_earnings(user.id)
    except Exception as e:
        raise withdrawal_http_error(e)

@router.get("/balance", response_model=UserBalance)
async def get_balance(
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Get the current user's balance."""
    try:
        return await withdrawals.get_balance(user.id)
    except Exception as e:
        raise withdrawal_http_error(e)

@router.get("/payout-accounts", response_model=List[PayoutAccount])
async def list_payout_accounts(
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    try:
        return await withdrawals.list_payout_accounts(user.id)
    except Exception as e:
        raise withdrawal_http_error(e)

@router.post("/payout-accounts", response_model=PayoutAccount, status_code=status.HTTP_201_CREATED)
async def add_payout_account(
    request: CreatePayoutAccountRequest,
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Store a bank or PayPal payout destination."""
    try:
        return await withdrawals.add_payout_account(
            user.id,
            request.method,
            request.account_details,
            request.is_default
        )
    except Exception as e:
        raise withdrawal_http_error(e)

@router.delete("/payout-accounts/{account_id}")
async def delete_payout_account(
    account_id: int,
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    try:
        await withdrawals.delete_payout_account(account_id, user.id)
        return {"success": True}
    except Exception as e:
        raise withdrawal_http_error(e)

@router.get("/withdrawal-requests/my", response_model=List[WithdrawalRequest])
async def list_my_requests(
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Get the current user's withdrawal requests, newest first."""
    try:
        return await withdrawals.list_my_requests(user.id)
    except Exception as e:
        raise withdrawal_http_error(e)

@router.post("/withdrawal-requests", response_model=WithdrawalRequest, status_code=status.HTTP_201_CREATED)
async def create_withdrawal_request(
    request: CreateWithdrawalRequest,
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Request a withdrawal from the available balance."""
    try:
        return await withdrawals.request_withdrawal(
            user.id,
            request.amount,
            payout_account_id=request.payout_account_id,
            payment_method=request.payment_method,
            account_details=request.account_details,
            notes=request.notes
        )
    except Exception as e:
        raise withdrawal_http_error(e)

@router.get("/withdrawal-requests", response_model=List[WithdrawalRequest])
async def list_requests(
    status: Optional[WithdrawalStatus] = None,
    admin: CurrentUser = Depends(require_admin),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """List all withdrawal requests (admin)."""
    try:
        return await withdrawals.list_requests(status)
    except Exception as e:
        raise withdrawal_http_error(e)

@router.get("/withdrawal-requests/{request_id}", response_model=WithdrawalRequest)
async def get_request(
    request_id: int,
    user: CurrentUser = Depends(get_current_user),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Get one withdrawal request. Freelancers only see their own."""
    try:
        request = await withdrawals.get_request(request_id)
    except Exception as e:
        raise withdrawal_http_error(e)

    if request.user_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Withdrawal request {request_id} not found"
        )
    return request

@router.patch("/withdrawal-requests/{request_id}/status", response_model=WithdrawalRequest)
async def update_request_status(
    request_id: int,
    request: UpdateStatusRequest,
    admin: CurrentUser = Depends(require_admin),
    withdrawals: WithdrawalManager = Depends(get_withdrawal_manager)
):
    """Approve, reject or complete a withdrawal request (admin)."""
    try:
        return await withdrawals.update_status(
            request_id,
            request.status,
            admin.id,
            admin_notes=request.admin_notes,
            payment_id=request.payment_id
        )
    except Exception as e:
        raise withdrawal_http_error(e)

# Export the router
__all__ = ['router', 'get_withdrawal_manager']
