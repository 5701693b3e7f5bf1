from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_guest, get_current_user
from app.models.participant import Participant
from app.models.user import User
from app.schemas.room import ParticipantResponse
from app.schemas.token import (
    GuestSessionResponse,
    GuestTokenResponse,
    IssuedTokenResponse,
    RedeemToken,
    TokenCreate,
)
from app.services.auth_service import create_guest_access_token
from app.services.token_service import issue_token, list_tokens, redeem_token, revoke_token

router = APIRouter(tags=["invite tokens"])


def _invite_url(plaintext: str) -> str:
    return f"{settings.base_url}/join?token={plaintext}"


@router.post(
    "/rooms/{room_id}/tokens",
    response_model=IssuedTokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invite_token(
    room_id: int,
    body: TokenCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ttl = timedelta(hours=body.ttl_hours) if body.ttl_hours is not None else None
    issued = await issue_token(
        db, room_id, current_user, max_uses=body.max_uses, ttl=ttl, name=body.name
    )
    return IssuedTokenResponse(
        **GuestTokenResponse.model_validate(issued.token).model_dump(),
        token=issued.plaintext,
        invite_url=_invite_url(issued.plaintext),
    )


@router.get("/rooms/{room_id}/tokens", response_model=list[GuestTokenResponse])
async def get_invite_tokens(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await list_tokens(db, room_id, current_user)


@router.delete("/rooms/{room_id}/tokens/{token_id}", response_model=GuestTokenResponse)
async def revoke_invite_token(
    room_id: int,
    token_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await revoke_token(db, room_id, current_user, token_id)


@router.post(
    "/tokens/redeem",
    response_model=GuestSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def redeem_invite_token(body: RedeemToken, db: AsyncSession = Depends(get_db)):
    redemption = await redeem_token(db, body.token)
    return GuestSessionResponse(
        access_token=create_guest_access_token(redemption.participant.id),
        room_slug=redemption.room.slug,
        participant=ParticipantResponse.model_validate(redemption.participant),
    )


@router.post("/guest/heartbeat", response_model=ParticipantResponse)
async def guest_heartbeat(guest: Participant = Depends(get_current_guest)):
    return guest
