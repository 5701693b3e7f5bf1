from app.models.base import Base  # noqa: F401
from app.models.guest_token import GuestToken  # noqa: F401
from app.models.participant import Participant, ParticipantRole  # noqa: F401
from app.models.room import Room  # noqa: F401
from app.models.user import User  # noqa: F401
