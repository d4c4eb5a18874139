from datetime import datetime
from enum import Enum
from typing import Optional

from database.models import RecordModel


class VerificationError(Exception):
    """Base class for verification errors."""
    pass


class RequestNotFoundError(VerificationError):
    """Raised when a verification request does not exist."""
    pass


class DocumentNotFoundError(RequestNotFoundError):
    """Raised when a stored verification document does not exist."""
    pass


class DuplicateRequestError(VerificationError):
    """Raised when a user already has a request awaiting review."""
    pass


class InvalidTransitionError(VerificationError):
    """Raised when a reviewed request is reviewed again."""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change verification status from {current} to {requested}"
        )


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    ID_CARD = "id_card"
    PASSPORT = "passport"
    DRIVING_LICENSE = "driving_license"
    PROFESSIONAL_CERTIFICATE = "professional_certificate"
    OTHER = "other"


# Approved and rejected are terminal
REVIEW_OUTCOMES = {VerificationStatus.APPROVED, VerificationStatus.REJECTED}


def check_review(current: VerificationStatus, requested: VerificationStatus):
    """Raise InvalidTransitionError unless ``current -> requested`` is a review."""
    current = VerificationStatus(current)
    requested = VerificationStatus(requested)
    if current != VerificationStatus.PENDING or requested not in REVIEW_OUTCOMES:
        raise InvalidTransitionError(current.value, requested.value)


class VerificationRequest(RecordModel):
    id: int
    user_id: int
    document_type: DocumentType
    document_url: str
    additional_info: Optional[str] = None
    status: VerificationStatus
    reviewer_id: Optional[int] = None
    review_notes: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
