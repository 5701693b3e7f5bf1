"""Unit tests for the pure access rules (no database)."""

from app.models.participant import Participant, ParticipantRole
from app.models.room import Room
from app.models.user import User
from app.services.access_policy import (
    can_access_user,
    can_manage_participants,
    can_manage_room,
    can_manage_tokens,
    can_read_participants,
    can_read_room,
    is_assignable_role,
)


def _user(user_id: int) -> User:
    return User(id=user_id, provider_subject=f"sub-{user_id}", email=f"u{user_id}@example.com", name="U")


def _room(owner_id: int = 1, is_public: bool = False) -> Room:
    return Room(id=10, owner_id=owner_id, name="Room", slug="room", is_public=is_public)


def _membership(user_id: int, role: ParticipantRole = ParticipantRole.member) -> Participant:
    return Participant(id=100, room_id=10, user_id=user_id, role=role)


class TestUserAccess:
    def test_own_profile_only(self):
        assert can_access_user(_user(1), 1)
        assert not can_access_user(_user(1), 2)
        assert not can_access_user(None, 1)


class TestRoomRead:
    def test_owner_reads_private_room(self):
        assert can_read_room(_user(1), _room(owner_id=1), None)

    def test_stranger_cannot_read_private_room(self):
        assert not can_read_room(_user(2), _room(owner_id=1), None)

    def test_participant_reads_private_room(self):
        assert can_read_room(_user(2), _room(owner_id=1), _membership(2))

    def test_any_authenticated_user_reads_public_room(self):
        assert can_read_room(_user(3), _room(owner_id=1, is_public=True), None)

    def test_anonymous_reads_nothing(self):
        assert not can_read_room(None, _room(is_public=True), None)


class TestRoomWrite:
    def test_only_owner_manages(self):
        room = _room(owner_id=1, is_public=True)
        assert can_manage_room(_user(1), room)
        assert not can_manage_room(_user(2), room)
        assert not can_manage_room(None, room)

    def test_moderator_cannot_manage_participants_or_tokens(self):
        room = _room(owner_id=1)
        moderator = _user(2)
        assert not can_manage_participants(moderator, room)
        assert not can_manage_tokens(moderator, room)
        assert can_manage_participants(_user(1), room)
        assert can_manage_tokens(_user(1), room)


class TestParticipantRead:
    def test_members_and_owner_read(self):
        room = _room(owner_id=1)
        assert can_read_participants(_user(1), room, None)
        assert can_read_participants(_user(2), room, _membership(2))
        assert not can_read_participants(_user(3), room, None)

    def test_public_room_does_not_expose_participants_to_strangers(self):
        assert not can_read_participants(_user(3), _room(owner_id=1, is_public=True), None)


class TestAssignableRoles:
    def test_only_member_and_moderator(self):
        assert is_assignable_role(ParticipantRole.member)
        assert is_assignable_role(ParticipantRole.moderator)
        assert not is_assignable_role(ParticipantRole.owner)
        assert not is_assignable_role(ParticipantRole.guest)
