"""Access rules for users, rooms, participants and invite tokens.

Pure predicates over already-loaded rows so they can be evaluated (and tested)
without a database. Services call them before every read or write.
"""

from app.models.participant import Participant, ParticipantRole
from app.models.room import Room
from app.models.user import User


def is_owner(user: User | None, room: Room) -> bool:
    return user is not None and room.owner_id == user.id


def can_access_user(actor: User | None, target_user_id: int) -> bool:
    """Users may read and write only their own profile."""
    return actor is not None and actor.id == target_user_id


def can_read_room(user: User | None, room: Room, membership: Participant | None) -> bool:
    if user is None:
        return False
    if is_owner(user, room):
        return True
    if room.is_public:
        return True
    return membership is not None


def can_manage_room(user: User | None, room: Room) -> bool:
    return is_owner(user, room)


def can_manage_participants(user: User | None, room: Room) -> bool:
    return is_owner(user, room)


def can_read_participants(user: User | None, room: Room, membership: Participant | None) -> bool:
    return is_owner(user, room) or (user is not None and membership is not None)


def can_manage_tokens(user: User | None, room: Room) -> bool:
    return is_owner(user, room)


# Roles reachable through the role-update path; owner and guest are assigned
# only at room creation and token redemption respectively.
ASSIGNABLE_ROLES = frozenset({ParticipantRole.member, ParticipantRole.moderator})


def is_assignable_role(role: ParticipantRole) -> bool:
    return role in ASSIGNABLE_ROLES
