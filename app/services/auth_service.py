import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import NotAuthenticated, Unauthorized, ValidationError
from app.models.user import User
from app.services.access_policy import can_access_user

logger = logging.getLogger(__name__)

USER_TOKEN = "user"
GUEST_TOKEN = "guest"


@dataclass
class IdentityProfile:
    subject: str
    email: str
    name: str
    avatar_url: str | None = None
    email_verified: bool = True


def _encode(subject: int, kind: str, minutes: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": str(subject), "kind": kind, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, kind: str) -> int | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("kind") != kind:
        return None
    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except ValueError:
        return None


def create_access_token(user_id: int) -> str:
    return _encode(user_id, USER_TOKEN, settings.access_token_expire_minutes)


def decode_access_token(token: str) -> int | None:
    return _decode(token, USER_TOKEN)


def create_guest_access_token(participant_id: int) -> str:
    return _encode(participant_id, GUEST_TOKEN, settings.guest_token_expire_minutes)


def decode_guest_access_token(token: str) -> int | None:
    return _decode(token, GUEST_TOKEN)


def is_allowed_email(email: str) -> bool:
    domain = settings.allowed_email_domain.lower().lstrip("@")
    return email.lower().rsplit("@", 1)[-1] == domain


def build_authorization_url(state: str) -> str:
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": "openid email profile",
        "hd": settings.allowed_email_domain,
        "state": state,
        "prompt": "select_account",
    }
    return f"{settings.google_authorize_url}?{urlencode(params)}"


async def fetch_identity_profile(code: str) -> IdentityProfile:
    """Exchange an authorization code for the signed-in user's profile."""
    payload = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": settings.google_redirect_uri,
    }
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        try:
            token_response = await client.post(settings.google_token_url, data=payload)
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise NotAuthenticated("Identity provider did not return an access token")

            user_response = await client.get(
                settings.google_userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            user_response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("OAuth code exchange failed: %s", exc)
            raise NotAuthenticated("Could not verify the sign-in with the identity provider")

    data = user_response.json()
    if not data.get("sub") or not data.get("email"):
        raise NotAuthenticated("Identity provider returned an incomplete profile")
    return IdentityProfile(
        subject=str(data["sub"]),
        email=data["email"],
        name=data.get("name") or data["email"].split("@", 1)[0],
        avatar_url=data.get("picture"),
        email_verified=bool(data.get("email_verified", False)),
    )


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_subject(db: AsyncSession, subject: str) -> User | None:
    result = await db.execute(select(User).where(User.provider_subject == subject))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def sync_user_from_profile(db: AsyncSession, profile: IdentityProfile) -> User:
    """Create the user on first sign-in, refresh name and avatar afterwards."""
    if not profile.email_verified or not is_allowed_email(profile.email):
        logger.warning("Rejected sign-in for %s: outside %s", profile.email, settings.allowed_email_domain)
        raise Unauthorized(f"Sign-in is restricted to @{settings.allowed_email_domain} accounts")

    user = await get_user_by_subject(db, profile.subject)
    by_email = await get_user_by_email(db, profile.email)
    if user is None:
        user = by_email
    elif by_email is not None and by_email.id != user.id:
        logger.warning(
            "Rejected sign-in for subject %s: %s belongs to user %s",
            profile.subject,
            profile.email,
            by_email.id,
        )
        raise Unauthorized("This email is already linked to another account")
    if user is None:
        user = User(provider_subject=profile.subject, email=profile.email)
        db.add(user)
        logger.info("Creating user for %s", profile.email)

    user.provider_subject = profile.subject
    user.email = profile.email
    user.name = profile.name
    user.avatar_url = profile.avatar_url
    await db.commit()
    await db.refresh(user)
    return user


async def get_user_profile(db: AsyncSession, actor: User | None, user_id: int) -> User:
    if actor is None:
        raise NotAuthenticated()
    if not can_access_user(actor, user_id):
        raise Unauthorized("You can only view your own profile")
    return actor


async def update_user_profile(
    db: AsyncSession,
    actor: User | None,
    user_id: int,
    name: str | None = None,
    avatar_url: str | None = None,
) -> User:
    if actor is None:
        raise NotAuthenticated()
    if not can_access_user(actor, user_id):
        raise Unauthorized("You can only edit your own profile")
    if name is not None:
        name = name.strip()
        if not name or len(name) > 255:
            raise ValidationError("Name must be between 1 and 255 characters")
        actor.name = name
    if avatar_url is not None:
        actor.avatar_url = avatar_url or None
    await db.commit()
    await db.refresh(actor)
    return actor
