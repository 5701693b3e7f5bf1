from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.room import ParticipantResponse


class TokenCreate(BaseModel):
    name: str = "Invite link"
    max_uses: int = 1
    ttl_hours: Optional[float] = Field(default=None, gt=0)


class GuestTokenResponse(BaseModel):
    id: int
    room_id: int
    name: str
    max_uses: int
    current_uses: int
    expires_at: datetime
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class IssuedTokenResponse(GuestTokenResponse):
    """Returned once, at creation; the plaintext secret is not stored."""

    token: str
    invite_url: str


class RedeemToken(BaseModel):
    token: str


class GuestSessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    room_slug: str
    participant: ParticipantResponse
