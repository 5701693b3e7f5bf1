import secrets

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.auth import OAuthCallback, TokenResponse, UserResponse
from app.services.auth_service import (
    build_authorization_url,
    create_access_token,
    fetch_identity_profile,
    sync_user_from_profile,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/login")
async def login():
    return RedirectResponse(build_authorization_url(state=secrets.token_urlsafe(16)))


@router.post("/callback", response_model=TokenResponse)
async def oauth_callback(body: OAuthCallback, db: AsyncSession = Depends(get_db)):
    profile = await fetch_identity_profile(body.code)
    user = await sync_user_from_profile(db, profile)
    return TokenResponse(access_token=create_access_token(user.id))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(current_user: User = Depends(get_current_user)):
    # JWT is stateless; client discards the token. Nothing to do server-side.
    return None
