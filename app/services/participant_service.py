import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import (
    DuplicateMembership,
    InvalidRoleTransition,
    NotAuthenticated,
    NotFound,
    RoomFull,
    Unauthorized,
)
from app.models.base import utcnow
from app.models.participant import Participant, ParticipantRole
from app.models.room import Room
from app.models.user import User
from app.services.access_policy import (
    can_manage_participants,
    can_read_participants,
    is_assignable_role,
)
from app.services.room_service import get_membership, get_room_or_404

logger = logging.getLogger(__name__)


@dataclass
class EmailInviteResult:
    added: list[Participant] = field(default_factory=list)
    already_members: list[str] = field(default_factory=list)
    unknown_emails: list[str] = field(default_factory=list)


async def count_participants(db: AsyncSession, room_id: int) -> int:
    result = await db.execute(
        select(func.count(Participant.id)).where(Participant.room_id == room_id)
    )
    return result.scalar_one()


async def ensure_capacity(db: AsyncSession, room: Room) -> None:
    if await count_participants(db, room.id) >= room.max_participants:
        raise RoomFull()


async def _get_managed_room(db: AsyncSession, room_id: int, actor: User | None) -> Room:
    if actor is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    if not can_manage_participants(actor, room):
        raise Unauthorized("Only the room owner can manage participants")
    return room


async def add_participant(
    db: AsyncSession,
    room_id: int,
    actor: User | None,
    user_id: int,
    role: ParticipantRole = ParticipantRole.member,
) -> Participant:
    room = await _get_managed_room(db, room_id, actor)
    if not is_assignable_role(role):
        raise InvalidRoleTransition(f"Participants cannot be added as {role.value}")

    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("User not found")

    if await get_membership(db, room.id, user_id) is not None:
        raise DuplicateMembership()
    await ensure_capacity(db, room)

    participant = Participant(room_id=room.id, user_id=user_id, role=role)
    db.add(participant)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race against a concurrent insert of the same pair
        await db.rollback()
        raise DuplicateMembership()
    await db.refresh(participant)
    logger.info("User %s added to room %s as %s", user_id, room_id, role.value)
    return participant


async def remove_participant(
    db: AsyncSession, room_id: int, actor: User | None, user_id: int
) -> None:
    room = await _get_managed_room(db, room_id, actor)
    if user_id == room.owner_id:
        raise Unauthorized("The room owner cannot be removed")

    await db.execute(
        delete(Participant).where(
            Participant.room_id == room.id,
            Participant.user_id == user_id,
            Participant.role != ParticipantRole.owner,
        )
    )
    await db.commit()


async def remove_participant_by_id(
    db: AsyncSession, room_id: int, actor: User | None, participant_id: int
) -> None:
    """Remove one participant row, guest or member, by its id."""
    room = await _get_managed_room(db, room_id, actor)

    result = await db.execute(
        select(Participant).where(
            Participant.id == participant_id, Participant.room_id == room.id
        )
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFound("Participant not found")
    if participant.role == ParticipantRole.owner or participant.user_id == room.owner_id:
        raise Unauthorized("The room owner cannot be removed")

    await db.delete(participant)
    await db.commit()
    logger.info(
        "Participant %s removed from room %s by user %s", participant_id, room.id, actor.id
    )


async def update_participant_role(
    db: AsyncSession,
    room_id: int,
    actor: User | None,
    participant_id: int,
    new_role: ParticipantRole,
) -> Participant:
    room = await _get_managed_room(db, room_id, actor)

    result = await db.execute(
        select(Participant).where(
            Participant.id == participant_id, Participant.room_id == room.id
        )
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFound("Participant not found")

    if not is_assignable_role(new_role):
        raise InvalidRoleTransition(f"Role cannot be changed to {new_role.value}")
    if participant.role == ParticipantRole.owner or participant.user_id == room.owner_id:
        raise InvalidRoleTransition("The owner's role cannot be changed")
    if participant.user_id == actor.id:
        raise InvalidRoleTransition("You cannot change your own role")
    if participant.role == ParticipantRole.guest:
        raise InvalidRoleTransition("Guests cannot be promoted")

    participant.role = new_role
    await db.commit()
    await db.refresh(participant)
    logger.info(
        "Participant %s in room %s set to %s by user %s",
        participant.id,
        room.id,
        new_role.value,
        actor.id,
    )
    return participant


async def list_participants(
    db: AsyncSession, room_id: int, viewer: User | None
) -> list[tuple[Participant, User | None]]:
    """Participants of a room, newest joined first, with their user profile."""
    if viewer is None:
        raise NotAuthenticated()
    room = await get_room_or_404(db, room_id)
    membership = await get_membership(db, room.id, viewer.id)
    if not can_read_participants(viewer, room, membership):
        raise Unauthorized("Only the owner and participants can view this room's participants")

    result = await db.execute(
        select(Participant, User)
        .outerjoin(User, User.id == Participant.user_id)
        .where(Participant.room_id == room.id)
        .order_by(Participant.joined_at.desc(), Participant.id.desc())
    )
    return [(participant, user) for participant, user in result.all()]


async def touch_participant(db: AsyncSession, room_id: int, user: User | None) -> Participant:
    if user is None:
        raise NotAuthenticated()
    membership = await get_membership(db, room_id, user.id)
    if membership is None:
        raise NotFound("Not a participant of this room")
    membership.last_seen = utcnow()
    await db.commit()
    await db.refresh(membership)
    return membership


async def touch_guest(db: AsyncSession, participant_id: int) -> Participant:
    result = await db.execute(
        select(Participant).where(
            Participant.id == participant_id, Participant.role == ParticipantRole.guest
        )
    )
    participant = result.scalar_one_or_none()
    if participant is None:
        raise NotFound("Guest session no longer exists")
    participant.last_seen = utcnow()
    await db.commit()
    await db.refresh(participant)
    return participant


async def invite_by_email(
    db: AsyncSession, room_id: int, actor: User | None, emails: list[str]
) -> EmailInviteResult:
    """Add the accounts behind ``emails`` as members.

    Addresses without an account are reported back so the caller can share an
    invite link instead; no mail is sent from here.
    """
    room = await _get_managed_room(db, room_id, actor)
    outcome = EmailInviteResult()

    to_add: list[User] = []
    normalized = list(dict.fromkeys(e.strip().lower() for e in emails if e.strip()))
    for email in normalized:
        result = await db.execute(select(User).where(func.lower(User.email) == email))
        user = result.scalar_one_or_none()
        if user is None:
            outcome.unknown_emails.append(email)
        elif await get_membership(db, room.id, user.id) is not None:
            outcome.already_members.append(email)
        else:
            to_add.append(user)

    if not to_add:
        return outcome
    if await count_participants(db, room.id) + len(to_add) > room.max_participants:
        raise RoomFull()

    for user in to_add:
        participant = Participant(room_id=room.id, user_id=user.id, role=ParticipantRole.member)
        db.add(participant)
        outcome.added.append(participant)
    await db.commit()
    for participant in outcome.added:
        await db.refresh(participant)
    return outcome
