"""Unit tests for database models: User, Room, Participant, GuestToken."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models.guest_token import GuestToken
from app.models.participant import Participant, ParticipantRole
from app.models.room import Room
from app.models.user import User


async def _user(db_session, tag: str) -> User:
    user = User(provider_subject=f"m-{tag}", email=f"m_{tag}@example.com", name=tag)
    db_session.add(user)
    await db_session.commit()
    return user


async def _room(db_session, owner: User, slug: str = "room") -> Room:
    room = Room(owner_id=owner.id, name="Room", slug=slug)
    db_session.add(room)
    await db_session.commit()
    return room


class TestUserModel:
    async def test_create_user(self, db_session):
        user = await _user(db_session, "alice")
        await db_session.refresh(user)
        assert user.id is not None
        assert user.avatar_url is None
        assert user.created_at is not None

    async def test_user_email_unique(self, db_session):
        await _user(db_session, "dup")
        db_session.add(User(provider_subject="other", email="m_dup@example.com", name="x"))
        with pytest.raises(IntegrityError):
            await db_session.commit()


class TestRoomModel:
    async def test_room_defaults(self, db_session):
        owner = await _user(db_session, "owner")
        room = await _room(db_session, owner)
        await db_session.refresh(room)
        assert room.is_public is False
        assert room.is_persistent is False
        assert room.max_participants == 10
        assert room.settings == {}

    async def test_slug_unique(self, db_session):
        owner = await _user(db_session, "owner")
        await _room(db_session, owner, slug="same")
        db_session.add(Room(owner_id=owner.id, name="Other", slug="same"))
        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_capacity_check_constraint(self, db_session):
        owner = await _user(db_session, "owner")
        db_session.add(Room(owner_id=owner.id, name="Tiny", slug="tiny", max_participants=1))
        with pytest.raises(IntegrityError):
            await db_session.commit()


class TestParticipantModel:
    async def test_room_user_pair_unique(self, db_session):
        owner = await _user(db_session, "owner")
        room = await _room(db_session, owner)
        db_session.add(Participant(room_id=room.id, user_id=owner.id, role=ParticipantRole.owner))
        await db_session.commit()
        db_session.add(Participant(room_id=room.id, user_id=owner.id))
        with pytest.raises(IntegrityError):
            await db_session.commit()

    async def test_many_guests_without_user(self, db_session):
        owner = await _user(db_session, "owner")
        room = await _room(db_session, owner)
        room_id = room.id
        db_session.add_all(
            [Participant(room_id=room_id, role=ParticipantRole.guest) for _ in range(3)]
        )
        await db_session.commit()

        result = await db_session.execute(
            select(Participant).where(Participant.room_id == room_id)
        )
        guests = result.scalars().all()
        assert len(guests) == 3
        assert all(g.user_id is None for g in guests)

    async def test_default_role_is_member(self, db_session):
        owner = await _user(db_session, "owner")
        member = await _user(db_session, "member")
        room = await _room(db_session, owner)
        participant = Participant(room_id=room.id, user_id=member.id)
        db_session.add(participant)
        await db_session.commit()
        await db_session.refresh(participant)
        assert participant.role == ParticipantRole.member


class TestGuestTokenModel:
    async def test_uses_cannot_exceed_max(self, db_session):
        owner = await _user(db_session, "owner")
        room = await _room(db_session, owner)
        db_session.add(
            GuestToken(
                room_id=room.id,
                created_by=owner.id,
                token_hash="f" * 64,
                max_uses=1,
                current_uses=2,
                expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.commit()
