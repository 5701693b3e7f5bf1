from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

from httpx import AsyncClient
from sqlalchemy import select

from app.config import settings
from app.models.user import User
from app.services.auth_service import (
    IdentityProfile,
    build_authorization_url,
    create_access_token,
    create_guest_access_token,
    decode_access_token,
    decode_guest_access_token,
    is_allowed_email,
)


def _profile(email="alice@example.com", subject="google-1", name="Alice", **kwargs) -> IdentityProfile:
    return IdentityProfile(subject=subject, email=email, name=name, **kwargs)


async def sign_in(client: AsyncClient, profile: IdentityProfile):
    with patch(
        "app.routers.auth.fetch_identity_profile", new=AsyncMock(return_value=profile)
    ):
        return await client.post("/auth/callback", json={"code": "auth-code"})


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestTokens:
    def test_access_token_round_trip(self):
        assert decode_access_token(create_access_token(42)) == 42

    def test_guest_and_user_tokens_are_not_interchangeable(self):
        assert decode_access_token(create_guest_access_token(7)) is None
        assert decode_guest_access_token(create_access_token(7)) is None
        assert decode_guest_access_token(create_guest_access_token(7)) == 7

    def test_garbage_token(self):
        assert decode_access_token("not.a.jwt") is None


class TestDomainRestriction:
    def test_allowed_domain(self):
        assert is_allowed_email(f"bob@{settings.allowed_email_domain}")
        assert is_allowed_email(f"BOB@{settings.allowed_email_domain.upper()}")

    def test_other_domains(self):
        assert not is_allowed_email("bob@gmail.com")
        assert not is_allowed_email(f"bob@evil-{settings.allowed_email_domain}")

    def test_authorization_url_carries_hosted_domain(self):
        url = urlparse(build_authorization_url(state="xyz"))
        params = parse_qs(url.query)
        assert params["hd"] == [settings.allowed_email_domain]
        assert params["state"] == ["xyz"]
        assert params["response_type"] == ["code"]


class TestLogin:
    async def test_login_redirects_to_provider(self, client: AsyncClient):
        resp = await client.get("/auth/login")
        assert resp.status_code == 307
        assert resp.headers["location"].startswith(settings.google_authorize_url)

    async def test_callback_creates_user(self, db_client: AsyncClient, db_session):
        resp = await sign_in(db_client, _profile(avatar_url="https://img/alice.png"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["token_type"] == "bearer"

        me = await db_client.get("/auth/me", headers=auth_headers(data["access_token"]))
        assert me.status_code == 200
        assert me.json()["email"] == "alice@example.com"
        assert me.json()["name"] == "Alice"
        assert me.json()["avatar_url"] == "https://img/alice.png"

    async def test_callback_syncs_profile_on_next_login(self, db_client: AsyncClient, db_session):
        await sign_in(db_client, _profile(name="Alice"))
        resp = await sign_in(db_client, _profile(name="Alice Liddell", avatar_url="https://img/new.png"))
        assert resp.status_code == 200

        result = await db_session.execute(select(User).where(User.email == "alice@example.com"))
        users = result.scalars().all()
        assert len(users) == 1
        assert users[0].name == "Alice Liddell"
        assert users[0].avatar_url == "https://img/new.png"

    async def test_callback_rejects_other_domain(self, db_client: AsyncClient, db_session):
        resp = await sign_in(db_client, _profile(email="mallory@gmail.com"))
        assert resp.status_code == 403
        result = await db_session.execute(select(User))
        assert result.scalars().all() == []

    async def test_callback_rejects_email_of_another_account(
        self, db_client: AsyncClient, db_session
    ):
        await sign_in(db_client, _profile())
        await sign_in(db_client, _profile(email="bob@example.com", subject="google-2", name="Bob"))

        resp = await sign_in(db_client, _profile(email="alice@example.com", subject="google-2"))
        assert resp.status_code == 403

        result = await db_session.execute(select(User).where(User.provider_subject == "google-2"))
        assert result.scalar_one().email == "bob@example.com"

    async def test_callback_rejects_unverified_email(self, db_client: AsyncClient):
        resp = await sign_in(db_client, _profile(email_verified=False))
        assert resp.status_code == 403


class TestMe:
    async def test_me_unauthenticated(self, db_client: AsyncClient):
        resp = await db_client.get("/auth/me")
        assert resp.status_code == 401

    async def test_me_invalid_token(self, db_client: AsyncClient):
        resp = await db_client.get("/auth/me", headers=auth_headers("garbage"))
        assert resp.status_code == 401

    async def test_me_rejects_guest_token(self, db_client: AsyncClient):
        resp = await db_client.get("/auth/me", headers=auth_headers(create_guest_access_token(1)))
        assert resp.status_code == 401

    async def test_logout(self, db_client: AsyncClient):
        token = (await sign_in(db_client, _profile())).json()["access_token"]
        resp = await db_client.post("/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 204


class TestUserProfile:
    async def test_update_own_profile(self, db_client: AsyncClient):
        token = (await sign_in(db_client, _profile())).json()["access_token"]
        resp = await db_client.patch(
            "/users/me", json={"name": "Al"}, headers=auth_headers(token)
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Al"

    async def test_read_own_profile_by_id(self, db_client: AsyncClient):
        token = (await sign_in(db_client, _profile())).json()["access_token"]
        me = (await db_client.get("/users/me", headers=auth_headers(token))).json()
        resp = await db_client.get(f"/users/{me['id']}", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json()["email"] == "alice@example.com"

    async def test_cannot_read_other_profile(self, db_client: AsyncClient):
        alice = (await sign_in(db_client, _profile())).json()["access_token"]
        bob = (
            await sign_in(db_client, _profile(email="bob@example.com", subject="google-2", name="Bob"))
        ).json()["access_token"]
        bob_id = (await db_client.get("/users/me", headers=auth_headers(bob))).json()["id"]

        resp = await db_client.get(f"/users/{bob_id}", headers=auth_headers(alice))
        assert resp.status_code == 403

    async def test_blank_name_rejected(self, db_client: AsyncClient):
        token = (await sign_in(db_client, _profile())).json()["access_token"]
        resp = await db_client.patch("/users/me", json={"name": "  "}, headers=auth_headers(token))
        assert resp.status_code == 422
