from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr

from app.models.participant import ParticipantRole


class RoomCreate(BaseModel):
    name: str
    description: Optional[str] = None


class RoomUpdate(BaseModel):
    """Partial update; only the fields sent are applied."""

    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    max_participants: Optional[int] = None
    is_persistent: Optional[bool] = None
    settings: Optional[dict[str, Any]] = None


class RoomResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str]
    slug: str
    is_public: bool
    max_participants: int
    is_persistent: bool
    settings: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OwnedRoomResponse(RoomResponse):
    participant_count: int = 0


class ParticipantCreate(BaseModel):
    user_id: int
    role: ParticipantRole = ParticipantRole.member


class ParticipantRoleUpdate(BaseModel):
    role: ParticipantRole


class ParticipantUserResponse(BaseModel):
    id: int
    name: str
    avatar_url: Optional[str]

    model_config = {"from_attributes": True}


class ParticipantResponse(BaseModel):
    id: int
    room_id: int
    user_id: Optional[int]
    role: ParticipantRole
    joined_at: datetime
    last_seen: datetime
    guest_token_id: Optional[int]
    user: Optional[ParticipantUserResponse] = None

    model_config = {"from_attributes": True}


class EmailInvite(BaseModel):
    emails: list[EmailStr]


class EmailInviteResponse(BaseModel):
    added: list[ParticipantResponse]
    already_members: list[str]
    unknown_emails: list[str]
