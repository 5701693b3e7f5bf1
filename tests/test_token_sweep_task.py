from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.guest_token import GuestToken
from app.models.room import Room
from app.models.user import User
from app.services.token_service import hash_token
from app.tasks.token_sweep import run_sweep


class TestRunSweep:
    async def test_run_sweep_uses_its_own_session(self, db_engine):
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        async with session_factory() as session:
            owner = User(provider_subject="sweeper", email="sweeper@example.com", name="S")
            session.add(owner)
            await session.flush()
            room = Room(owner_id=owner.id, name="Sweep Room", slug="sweep-room")
            session.add(room)
            await session.flush()
            session.add(
                GuestToken(
                    room_id=room.id,
                    created_by=owner.id,
                    token_hash=hash_token("stale"),
                    expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
                )
            )
            await session.commit()

        with patch("app.tasks.token_sweep.AsyncSessionLocal", session_factory):
            assert await run_sweep() == 1
            assert await run_sweep() == 0

        async with session_factory() as session:
            result = await session.execute(select(GuestToken.is_active))
            assert result.scalar_one() is False
