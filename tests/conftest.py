"""
Shared fixtures: an in-memory SQLite database, a seeded user, provider
credentials and an ``httpx.MockTransport`` hook for provider HTTP calls.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["TOKEN_ENCRYPTION_KEY"] = ""
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["OAUTH_REDIRECT_BASE"] = "http://localhost:8000"
os.environ["TOKEN_REFRESH_LEEWAY_SECONDS"] = "0"

from datetime import datetime, timedelta, timezone  # noqa: E402
from urllib.parse import parse_qsl  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from config.settings import config  # noqa: E402
from connectors import http_client  # noqa: E402
from connectors.encryption import reset_cipher  # noqa: E402
from database.models import Base, Integration, User  # noqa: E402

USER_ID = "user-1"

CREDENTIALS = {
    "google_client_id": "google-id",
    "google_client_secret": "google-secret",
    "github_client_id": "gh-id",
    "github_client_secret": "gh-secret",
    "slack_client_id": "slack-id",
    "slack_client_secret": "slack-secret",
    "stripe_client_id": "stripe-id",
    "stripe_client_secret": "stripe-secret",
    "shopify_client_id": "shopify-id",
    "shopify_client_secret": "shopify-secret",
    "mailchimp_client_id": "mc-id",
    "mailchimp_client_secret": "mc-secret",
}


def form_body(request: httpx.Request) -> dict:
    """Decode a form-encoded request body."""
    return dict(parse_qsl(request.content.decode()))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_cipher():
    reset_cipher()
    yield
    reset_cipher()


@pytest.fixture
def credentials(monkeypatch):
    for field, value in CREDENTIALS.items():
        monkeypatch.setattr(config, field, value)
    return CREDENTIALS


@pytest.fixture
def http_mock(monkeypatch):
    """
    ``install(handler)`` routes every provider request through *handler*
    and returns the list the requests are recorded in.
    """

    def install(handler):
        calls = []

        def recording(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return handler(request)

        transport = httpx.MockTransport(recording)
        monkeypatch.setattr(
            http_client,
            "async_client",
            lambda **kwargs: httpx.AsyncClient(transport=transport, **kwargs),
        )
        return calls

    return install


@pytest.fixture
def no_http(http_mock):
    """Fail loudly (HTTP 599) on any request; the recorded list should stay empty."""
    return http_mock(lambda request: httpx.Response(599, json={"error": "unexpected request"}))


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def user(session):
    u = User(user_id=USER_ID, email="owner@example.com", display_name="Owner", password_hash="")
    session.add(u)
    await session.flush()
    return u


@pytest.fixture
def make_integration(session, user):
    """Insert a connected integration row with plaintext tokens."""

    async def _make(
        provider: str = "gmail",
        *,
        access_token: str = "access-old",
        refresh_token=None,
        expires_in=None,
        config=None,
        is_connected: bool = True,
    ) -> Integration:
        record = Integration(
            user_id=user.user_id,
            app_name=provider,
            app_type="email",
            is_connected=is_connected,
            oauth_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=(utcnow() + timedelta(seconds=expires_in)) if expires_in is not None else None,
            config=config or {},
        )
        session.add(record)
        await session.flush()
        return record

    return _make
