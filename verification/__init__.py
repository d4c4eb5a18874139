"""Verification module for identity document review.

Users submit a document (by URL or upload); an admin approves or rejects
it once. Approval marks the user as verified.
"""
import logging
from typing import List, Optional, Tuple

from asyncpg.pool import Pool
from fastapi import UploadFile

from database import get_pool
from notifications import send_notification, deliver
from uploads import (
    save_upload, delete_upload, stored_path, DOCUMENT_DIR, DOCUMENT_URL_PREFIX
)
from .models import (
    VerificationRequest, VerificationStatus, DocumentType,
    VerificationError, RequestNotFoundError, DocumentNotFoundError,
    DuplicateRequestError, InvalidTransitionError, check_review
)

logger = logging.getLogger(__name__)

REQUEST_COLUMNS = '''
    id, user_id, document_type, document_url, additional_info, status,
    reviewer_id, review_notes, submitted_at, reviewed_at
'''

class VerificationManager:
    """Manages verification requests."""

    def __init__(self, pool: Optional[Pool] = None, document_dir: Optional[str] = None) -> None:
        self.pool = pool
        self.document_dir = document_dir or DOCUMENT_DIR

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def submit_request(
        self,
        user_id: int,
        document_type: DocumentType,
        document_url: str,
        additional_info: Optional[str] = None
    ) -> VerificationRequest:
        """Create a pending verification request.

        Raises:
            DuplicateRequestError: If the user already has a pending request
        """
        await self.ensure_pool()

        document_type = DocumentType(document_type)
        document_url = (document_url or '').strip()
        if not document_url:
            raise VerificationError("Document URL is required")

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    # Lock the user so two submissions cannot both pass the check
                    await conn.execute(
                        'SELECT 1 FROM users WHERE id = $1 FOR UPDATE',
                        user_id
                    )
                    pending = await conn.fetchval(
                        '''
                        SELECT id FROM verification_requests
                        WHERE user_id = $1 AND status = 'pending'
                        ''',
                        user_id
                    )
                    if pending:
                        raise DuplicateRequestError(
                            f"Verification request {pending} is still awaiting review"
                        )

                    row = await conn.fetchrow(
                        f'''
                        INSERT INTO verification_requests (
                            user_id, document_type, document_url, additional_info
                        ) VALUES ($1, $2, $3, $4)
                        RETURNING {REQUEST_COLUMNS}
                        ''',
                        user_id,
                        document_type.value,
                        document_url,
                        additional_info
                    )
                    logger.info(f"Verification request {row['id']} submitted by user {user_id}")
                    return VerificationRequest.from_row(row)

        except VerificationError:
            raise
        except Exception as e:
            logger.error(f"Error submitting verification request: {e}")
            raise VerificationError(f"Failed to submit verification request: {str(e)}")

    async def submit_upload(
        self,
        user_id: int,
        document_type: DocumentType,
        file: UploadFile,
        additional_info: Optional[str] = None
    ) -> VerificationRequest:
        """Store the document file privately, then submit a request pointing at it."""
        stored = await save_upload(
            file,
            prefix=f"verification_{user_id}",
            upload_dir=self.document_dir,
            url_prefix=DOCUMENT_URL_PREFIX
        )
        try:
            return await self.submit_request(
                user_id,
                document_type,
                stored.url,
                additional_info
            )
        except Exception:
            delete_upload(stored.url, self.document_dir)
            raise

    async def get_document(self, filename: str) -> Tuple[int, str]:
        """Find a stored document.

        Returns:
            The id of the user who submitted it and its path on disk

        Raises:
            DocumentNotFoundError: If no request references the file or it is gone
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            owner_id = await conn.fetchval(
                '''
                SELECT user_id FROM verification_requests
                WHERE document_url = $1
                LIMIT 1
                ''',
                f"{DOCUMENT_URL_PREFIX}/{filename}"
            )

        path = stored_path(filename, self.document_dir)
        if owner_id is None or path is None:
            raise DocumentNotFoundError(f"Document {filename} not found")
        return owner_id, path

    async def list_requests(
        self,
        status: Optional[VerificationStatus] = None
    ) -> List[VerificationRequest]:
        """List all requests, oldest pending first."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {REQUEST_COLUMNS}
                FROM verification_requests
                WHERE $1::text IS NULL OR status = $1
                ORDER BY submitted_at, id
                ''',
                VerificationStatus(status).value if status else None
            )
            return [VerificationRequest.from_row(row) for row in rows]

    async def list_my_requests(self, user_id: int) -> List[VerificationRequest]:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'''
                SELECT {REQUEST_COLUMNS}
                FROM verification_requests
                WHERE user_id = $1
                ORDER BY submitted_at DESC, id DESC
                ''',
                user_id
            )
            return [VerificationRequest.from_row(row) for row in rows]

    async def review(
        self,
        request_id: int,
        status: VerificationStatus,
        reviewer_id: int,
        review_notes: Optional[str] = None
    ) -> VerificationRequest:
        """Approve or reject a pending request.

        Raises:
            RequestNotFoundError: If the request does not exist
            InvalidTransitionError: If the request was already reviewed or
                ``status`` is not a review outcome
        """
        await self.ensure_pool()

        status = VerificationStatus(status)

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        '''
                        SELECT status, user_id FROM verification_requests
                        WHERE id = $1
                        FOR UPDATE
                        ''',
                        request_id
                    )
                    if not current:
                        raise RequestNotFoundError(f"Verification request {request_id} not found")

                    check_review(current['status'], status)

                    row = await conn.fetchrow(
                        f'''
                        UPDATE verification_requests
                        SET status = $2,
                            reviewer_id = $3,
                            review_notes = $4,
                            reviewed_at = now()
                        WHERE id = $1
                        RETURNING {REQUEST_COLUMNS}
                        ''',
                        request_id,
                        status.value,
                        reviewer_id,
                        review_notes
                    )

                    if status == VerificationStatus.APPROVED:
                        await conn.execute(
                            'UPDATE users SET is_verified = true WHERE id = $1',
                            current['user_id']
                        )
                        title = "Verification approved"
                        message = "Your account has been verified."
                    else:
                        title = "Verification rejected"
                        message = review_notes or "Your verification request was rejected."

                    notification = await send_notification(
                        conn,
                        current['user_id'],
                        f"verification_{status.value}",
                        title,
                        message,
                        {"verificationRequestId": request_id, "status": status.value}
                    )

            logger.info(
                f"Verification request {request_id} {status.value} by reviewer {reviewer_id}"
            )
            await deliver(notification)
            return VerificationRequest.from_row(row)

        except VerificationError:
            raise
        except Exception as e:
            logger.error(f"Error reviewing verification request {request_id}: {e}")
            raise VerificationError(f"Failed to review verification request: {str(e)}")

__all__ = [
    'VerificationManager',
    'VerificationRequest',
    'VerificationStatus',
    'DocumentType',
    'VerificationError',
    'RequestNotFoundError',
    'DocumentNotFoundError',
    'DuplicateRequestError',
    'InvalidTransitionError',
    'check_review'
]
