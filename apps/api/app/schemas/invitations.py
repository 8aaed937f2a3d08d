from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.schemas.families import ROLE_PATTERN


class InvitationCreate(BaseModel):
    family_id: int
    email: EmailStr
    role: str = Field(default="member", pattern=ROLE_PATTERN)
    message: str | None = Field(default=None, max_length=1000)


class InvitationResponse(BaseModel):
    id: int
    family_id: int
    family_name: str
    inviter_user_id: int
    inviter_email: str
    invitee_email: str
    role: str
    status: str
    message: str | None
    expires_at: datetime
    responded_at: datetime | None
    created_at: datetime


class InvitationWithTokenResponse(InvitationResponse):
    # Only returned to the inviter; delivery to the invitee happens out of band.
    token: str


class InvitationListResponse(BaseModel):
    items: list[InvitationResponse]
