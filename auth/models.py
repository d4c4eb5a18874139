from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from database.models import RecordModel


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"
    ADMIN = "admin"


class FreelancerLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class FreelancerType(str, Enum):
    CONTENT_CREATOR = "content_creator"
    EXPERT = "expert"


class CurrentUser(RecordModel):
    """The authenticated caller of a request."""
    id: int
    username: str
    role: UserRole
    is_verified: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class User(RecordModel):
    id: int
    username: str
    email: str
    full_name: str
    profile_image: Optional[str] = None
    role: UserRole
    freelancer_level: Optional[FreelancerLevel] = None
    freelancer_type: Optional[FreelancerType] = None
    is_verified: bool = False
    created_at: datetime


class _ParticipantBase(RecordModel):
    id: int
    username: str
    full_name: Optional[str] = None
    profile_image: Optional[str] = None


class ClientParticipant(_ParticipantBase):
    role: Literal["client"] = "client"


class FreelancerParticipant(_ParticipantBase):
    role: Literal["freelancer"] = "freelancer"
    freelancer_level: Optional[FreelancerLevel] = None
    freelancer_type: Optional[FreelancerType] = None


class AdminParticipant(_ParticipantBase):
    role: Literal["admin"] = "admin"


# Conversation participants, discriminated on role
Participant = Annotated[
    Union[ClientParticipant, FreelancerParticipant, AdminParticipant],
    Field(discriminator="role"),
]

_participant_adapter = TypeAdapter(Participant)


def participant_from_row(row, prefix: str = "") -> Participant:
    """Build a Participant from a row whose user columns may carry a prefix.

    ``prefix="partner_"`` reads ``partner_id``, ``partner_username``... so one
    query can return several users side by side.
    """
    data = dict(row)
    fields = ("id", "username", "full_name", "profile_image", "role",
              "freelancer_level", "freelancer_type")
    values = {name: data.get(f"{prefix}{name}") for name in fields}
    if values["role"] != UserRole.FREELANCER.value:
        values.pop("freelancer_level")
        values.pop("freelancer_type")
    return _participant_adapter.validate_python(values)
