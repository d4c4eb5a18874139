"""Verification request endpoints."""

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from typing import List, Optional
from pydantic import Field

from auth import get_current_user, require_admin
from auth.models import CurrentUser
from database.models import RecordModel
from uploads import UploadError, UploadTooLargeError
from verification import (
    VerificationManager, VerificationRequest, VerificationStatus, DocumentType,
    VerificationError, RequestNotFoundError
)

router = APIRouter(
    tags=["Verification"]
)

class SubmitRequest(RecordModel):
    """Request model for submitting an already uploaded document."""
    document_type: DocumentType
    document_url: str = Field(..., min_length=1)
    additional_info: Optional[str] = Field(None, max_length=2000)

class ReviewRequest(RecordModel):
    """Request model for an admin review."""
    status: VerificationStatus
    review_notes: Optional[str] = Field(None, max_length=2000)

def get_verification_manager() -> VerificationManager:
    return VerificationManager()

def verification_http_error(e: Exception) -> HTTPException:
    """Translate a verification error into an HTTP error."""
    if isinstance(e, RequestNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, UploadTooLargeError):
        return HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    if isinstance(e, (VerificationError, UploadError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.post("/verification-requests", response_model=VerificationRequest, status_code=status.HTTP_201_CREATED)
async def submit_request(
    request: SubmitRequest,
    user: CurrentUser = Depends(get_current_user),
    verification: VerificationManager = Depends(get_verification_manager)
):
    """Submit a verification request for a document URL."""
    try:
        return await verification.submit_request(
            user.id,
            request.document_type,
            request.document_url,
            request.additional_info
        )
    except Exception as e:
        raise verification_http_error(e)

@router.post("/verification-requests/upload", response_model=VerificationRequest, status_code=status.HTTP_201_CREATED)
async def submit_upload(
    file: UploadFile = File(...),
    document_type: DocumentType = Form(..., alias="documentType"),
    additional_info: Optional[str] = Form(None, alias="additionalInfo"),
    user: CurrentUser = Depends(get_current_user),
    verification: VerificationManager = Depends(get_verification_manager)
):
    """Upload a document and submit a verification request for it."""
    try:
        return await verification.submit_upload(
            user.id,
            document_type,
            file,
            additional_info
        )
    except Exception as e:
        raise verification_http_error(e)
    finally:
        await file.close()

@router.get("/my-verification-requests", response_model=List[VerificationRequest])
async def list_my_requests(
    user: CurrentUser = Depends(get_current_user),
    verification: VerificationManager = Depends(get_verification_manager)
):
    try:
        return await verification.list_my_requests(user.id)
    except Exception as e:
        raise verification_http_error(e)

@router.get("/verification-requests", response_model=List[VerificationRequest])
async def list_requests(
    status: Optional[VerificationStatus] = None,
    admin: CurrentUser = Depends(require_admin),
    verification: VerificationManager = Depends(get_verification_manager)
):
    """List verification requests, optionally by status (admin)."""
    try:
        return await verification.list_requests(status)
    except Exception as e:
        raise verification_http_error(e)

@router.patch("/verification-requests/{request_id}/status", response_model=VerificationRequest)
async def review_request(
    request_id: int,
    request: ReviewRequest,
    admin: CurrentUser = Depends(require_admin),
    verification: VerificationManager = Depends(get_verification_manager)
):
    """Approve or reject a pending verification request (admin)."""
    try:
        return await verification.review(
            request_id,
            request.status,
            admin.id,
            request.review_notes
        )
    except Exception as e:
        raise verification_http_error(e)

@router.get("/verification-documents/{filename}", response_class=FileResponse)
async def get_document(
    filename: str,
    user: CurrentUser = Depends(get_current_user),
    verification: VerificationManager = Depends(get_verification_manager)
):
    """Download an uploaded verification document (owner or admin)."""
    try:
        owner_id, path = await verification.get_document(filename)
    except Exception as e:
        raise verification_http_error(e)

    # Other users get the same answer as for a missing file
    if owner_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {filename} not found"
        )
    return FileResponse(path)

# Export the router
__all__ = ['router', 'get_verification_manager']
