from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import NotAuthenticated
from app.models.participant import Participant
from app.models.user import User
from app.services.auth_service import decode_access_token, decode_guest_access_token, get_user_by_id
from app.services.participant_service import touch_guest

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise NotAuthenticated()
    return credentials.credentials


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = decode_access_token(_credentials(credentials))
    if user_id is None:
        raise NotAuthenticated("Invalid or expired token")
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotAuthenticated("User no longer exists")
    return user


async def get_current_guest(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Participant:
    participant_id = decode_guest_access_token(_credentials(credentials))
    if participant_id is None:
        raise NotAuthenticated("Invalid or expired guest session")
    return await touch_guest(db, participant_id)
