from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 100
DEFAULT_MAX_PARTICIPANTS = 10


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        CheckConstraint(
            f"max_participants >= {MIN_PARTICIPANTS} AND max_participants <= {MAX_PARTICIPANTS}",
            name="ck_rooms_max_participants",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_participants: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_PARTICIPANTS
    )
    is_persistent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
