"""Invite tokens: issuing, redeeming and sweeping guest access links."""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import (
    NotAuthenticated,
    NotFound,
    RoomFull,
    TokenInvalid,
    Unauthorized,
    ValidationError,
)
from app.models.base import utcnow
from app.models.guest_token import GuestToken
from app.models.participant import Participant, ParticipantRole
from app.models.room import Room
from app.models.user import User
from app.services.access_policy import can_manage_tokens
from app.services.participant_service import count_participants
from app.services.room_service import get_room_or_404

logger = logging.getLogger(__name__)

MAX_USES_LIMIT = 1000
TOKEN_NAME_MAX_LENGTH = 100


@dataclass
class IssuedToken:
    token: GuestToken
    plaintext: str


@dataclass
class Redemption:
    participant: Participant
    room: Room


def hash_token(plaintext: str) -> str:
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_token_usable(token: GuestToken, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return (
        token.is_active
        and _as_utc(now) < _as_utc(token.expires_at)
        and token.current_uses < token.max_uses
    )


async def _get_token_room(db: AsyncSession, room_id: int, actor: User | None) -> Room:
    if actor is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    if not can_manage_tokens(actor, room):
        raise Unauthorized("Only the room owner can manage invite links")
    return room


async def issue_token(
    db: AsyncSession,
    room_id: int,
    issuer: User | None,
    max_uses: int = 1,
    ttl: timedelta | None = None,
    name: str = "Invite link",
) -> IssuedToken:
    room = await _get_token_room(db, room_id, issuer)

    if ttl is None:
        ttl = timedelta(hours=settings.default_invite_ttl_hours)
    if ttl <= timedelta(0) or ttl > timedelta(hours=settings.max_invite_ttl_hours):
        raise ValidationError(
            f"Invite links must expire within {settings.max_invite_ttl_hours} hours"
        )
    if max_uses < 1 or max_uses > MAX_USES_LIMIT:
        raise ValidationError(f"max_uses must be between 1 and {MAX_USES_LIMIT}")
    name = (name or "").strip() or "Invite link"
    if len(name) > TOKEN_NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {TOKEN_NAME_MAX_LENGTH} characters")

    plaintext = secrets.token_urlsafe(32)
    token = GuestToken(
        room_id=room.id,
        created_by=issuer.id,
        name=name,
        token_hash=hash_token(plaintext),
        max_uses=max_uses,
        current_uses=0,
        expires_at=utcnow() + ttl,
        is_active=True,
    )
    db.add(token)
    await db.commit()
    await db.refresh(token)
    logger.info(
        "Invite token %s issued for room %s (max_uses=%s, expires_at=%s)",
        token.id,
        room.id,
        max_uses,
        token.expires_at,
    )
    return IssuedToken(token=token, plaintext=plaintext)


async def list_tokens(db: AsyncSession, room_id: int, actor: User | None) -> list[GuestToken]:
    room = await _get_token_room(db, room_id, actor)
    result = await db.execute(
        select(GuestToken)
        .where(GuestToken.room_id == room.id)
        .order_by(GuestToken.created_at.desc(), GuestToken.id.desc())
    )
    return list(result.scalars().all())


async def revoke_token(
    db: AsyncSession, room_id: int, actor: User | None, token_id: int
) -> GuestToken:
    room = await _get_token_room(db, room_id, actor)
    result = await db.execute(
        select(GuestToken).where(GuestToken.id == token_id, GuestToken.room_id == room.id)
    )
    token = result.scalar_one_or_none()
    if token is None:
        raise NotFound("Invite link not found")
    token.is_active = False
    await db.commit()
    await db.refresh(token)
    return token


async def redeem_token(db: AsyncSession, plaintext: str) -> Redemption:
    """Consume one use of an invite token and admit a guest.

    The usage counter is bumped by a single conditional UPDATE, so concurrent
    redemptions can never push ``current_uses`` past ``max_uses``. The guest
    row is inserted in the same transaction.
    """
    if not plaintext:
        raise TokenInvalid()
    token_hash = hash_token(plaintext)
    now = utcnow()

    result = await db.execute(
        update(GuestToken)
        .where(
            GuestToken.token_hash == token_hash,
            GuestToken.is_active.is_(True),
            GuestToken.expires_at > now,
            GuestToken.current_uses < GuestToken.max_uses,
        )
        .values(current_uses=GuestToken.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("Rejected redemption of unusable invite token")
        raise TokenInvalid()

    token_row = await db.execute(
        select(GuestToken)
        .where(GuestToken.token_hash == token_hash)
        .execution_options(populate_existing=True)
    )
    token = token_row.scalar_one()
    room = await get_room_or_404(db, token.room_id)

    if await count_participants(db, room.id) >= room.max_participants:
        await db.rollback()
        raise RoomFull()

    participant = Participant(
        room_id=room.id,
        user_id=None,
        role=ParticipantRole.guest,
        guest_token_id=token.id,
    )
    db.add(participant)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(participant)
    logger.info(
        "Invite token %s redeemed (%s/%s) for room %s",
        token.id,
        token.current_uses,
        token.max_uses,
        room.id,
    )
    return Redemption(participant=participant, room=room)


async def sweep_expired_tokens(db: AsyncSession, now: datetime | None = None) -> int:
    """Deactivate every active token that is expired or used up.

    Idempotent: tokens already inactive are left alone, so running it again
    reports zero.
    """
    now = now or utcnow()
    result = await db.execute(
        update(GuestToken)
        .where(
            GuestToken.is_active.is_(True),
            or_(GuestToken.expires_at <= now, GuestToken.current_uses >= GuestToken.max_uses),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    swept = result.rowcount or 0
    logger.info("Token sweep deactivated %s invite token(s)", swept)
    return swept
