from datetime import datetime

from pydantic import BaseModel, Field

ROLE_PATTERN = "^(owner|admin|member)$"


class FamilyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    currency: str | None = Field(default=None, pattern="^[A-Z]{3}$")


class FamilyUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    currency: str | None = Field(default=None, pattern="^[A-Z]{3}$")


class FamilyResponse(BaseModel):
    id: int
    name: str
    description: str | None
    currency: str
    created_by_user_id: int
    member_count: int
    my_role: str | None
    created_at: datetime


class FamilyListResponse(BaseModel):
    items: list[FamilyResponse]


class FamilyMemberResponse(BaseModel):
    id: int
    family_id: int
    user_id: int
    email: str
    full_name: str
    role: str
    joined_at: datetime


class FamilyMemberListResponse(BaseModel):
    items: list[FamilyMemberResponse]


class MemberRoleUpdate(BaseModel):
    role: str = Field(pattern=ROLE_PATTERN)


class OwnershipTransfer(BaseModel):
    user_id: int
