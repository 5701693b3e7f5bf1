import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import NotAuthenticated, NotFound, SlugUnavailable, Unauthorized, ValidationError
from app.models.guest_token import GuestToken
from app.models.participant import Participant, ParticipantRole
from app.models.room import MAX_PARTICIPANTS, MIN_PARTICIPANTS, Room
from app.models.user import User
from app.services.access_policy import can_manage_room, can_read_room
from app.services.slug import candidate_slugs, slugify

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

UPDATABLE_FIELDS = frozenset(
    {"name", "description", "is_public", "max_participants", "is_persistent", "settings"}
)


@dataclass
class OwnedRoom:
    room: Room
    participant_count: int


def validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if len(name) < NAME_MIN_LENGTH:
        raise ValidationError(f"Room name must be at least {NAME_MIN_LENGTH} characters")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Room name must be at most {NAME_MAX_LENGTH} characters")
    return name


def validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    description = description.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )
    return description or None


def validate_max_participants(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("max_participants must be an integer")
    if value < MIN_PARTICIPANTS or value > MAX_PARTICIPANTS:
        raise ValidationError(
            f"max_participants must be between {MIN_PARTICIPANTS} and {MAX_PARTICIPANTS}"
        )
    return value


def validate_patch(patch: dict[str, Any]) -> dict[str, Any]:
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    cleaned: dict[str, Any] = {}
    for field, value in patch.items():
        if field == "name":
            cleaned[field] = validate_name(value)
        elif field == "description":
            cleaned[field] = validate_description(value)
        elif field == "max_participants":
            cleaned[field] = validate_max_participants(value)
        elif field in ("is_public", "is_persistent"):
            if not isinstance(value, bool):
                raise ValidationError(f"{field} must be a boolean")
            cleaned[field] = value
        elif field == "settings":
            if not isinstance(value, dict):
                raise ValidationError("settings must be an object")
            cleaned[field] = value
    return cleaned


async def _taken_slugs(db: AsyncSession, base: str) -> set[str]:
    result = await db.execute(
        select(Room.slug).where(or_(Room.slug == base, Room.slug.like(f"{base}-%")))
    )
    return set(result.scalars().all())


async def _slug_exists(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Room.id).where(Room.slug == slug))
    return result.scalar_one_or_none() is not None


async def create_room(
    db: AsyncSession, owner: User | None, name: str, description: str | None = None
) -> Room:
    if owner is None:
        raise NotAuthenticated()
    name = validate_name(name)
    description = validate_description(description)
    owner_id = owner.id

    base = slugify(name)
    # Known slugs only narrow the search; the unique constraint decides.
    taken = await _taken_slugs(db, base)

    for slug in candidate_slugs(base, limit=len(taken) + settings.slug_max_attempts):
        if slug in taken:
            continue
        room = Room(owner_id=owner_id, name=name, description=description, slug=slug)
        db.add(room)
        try:
            await db.flush()  # get room.id before adding the owner participant
            db.add(
                Participant(room_id=room.id, user_id=owner_id, role=ParticipantRole.owner)
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if not await _slug_exists(db, slug):
                # some other constraint failed
                raise
            taken.add(slug)
            logger.info("Slug %s taken concurrently, trying next candidate", slug)
            continue

        await db.refresh(room)
        logger.info("Room %s (%s) created by user %s", room.id, room.slug, owner_id)
        return room

    raise SlugUnavailable()


async def get_room(db: AsyncSession, room_id: int) -> Room | None:
    result = await db.execute(select(Room).where(Room.id == room_id))
    return result.scalar_one_or_none()


async def get_room_or_404(db: AsyncSession, room_id: int) -> Room:
    room = await get_room(db, room_id)
    if room is None:
        raise NotFound("Room not found")
    return room


async def get_membership(db: AsyncSession, room_id: int, user_id: int) -> Participant | None:
    result = await db.execute(
        select(Participant).where(Participant.room_id == room_id, Participant.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_rooms_for_owner(db: AsyncSession, owner: User | None) -> list[OwnedRoom]:
    if owner is None:
        raise NotAuthenticated()
    result = await db.execute(
        select(Room, func.count(Participant.id))
        .outerjoin(Participant, Participant.room_id == Room.id)
        .where(Room.owner_id == owner.id)
        .group_by(Room.id)
        .order_by(Room.created_at.desc(), Room.id.desc())
    )
    return [OwnedRoom(room=room, participant_count=count) for room, count in result.all()]


async def get_room_by_slug(
    db: AsyncSession, slug: str, viewer: User | None = None
) -> Room | None:
    """Return the room for ``slug``.

    Without a viewer no visibility check is made. With one, rooms the viewer
    may not read are reported as missing rather than forbidden.
    """
    result = await db.execute(select(Room).where(Room.slug == slug))
    room = result.scalar_one_or_none()
    if room is None or viewer is None:
        return room

    membership = await get_membership(db, room.id, viewer.id)
    if not can_read_room(viewer, room, membership):
        return None
    return room


async def is_room_owner(db: AsyncSession, room_id: int, user: User | None) -> bool:
    if user is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    return can_manage_room(user, room)


async def update_room(
    db: AsyncSession, room_id: int, user: User | None, patch: dict[str, Any]
) -> Room:
    if user is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    if not can_manage_room(user, room):
        raise Unauthorized("Only the room owner can update this room")

    for field, value in validate_patch(patch).items():
        setattr(room, field, value)
    await db.commit()
    await db.refresh(room)
    return room


async def delete_room(db: AsyncSession, room_id: int, user: User | None) -> None:
    if user is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    if not can_manage_room(user, room):
        raise Unauthorized("Only the room owner can delete this room")

    try:
        await db.execute(delete(Participant).where(Participant.room_id == room.id))
        await db.execute(delete(GuestToken).where(GuestToken.room_id == room.id))
        await db.delete(room)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Deleting room %s failed; rolled back", room_id)
        raise
    logger.info("Room %s deleted by user %s", room_id, user.id)
