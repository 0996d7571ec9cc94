# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OAUTH_STATE_SECRET", "test-state-secret")
os.environ.setdefault("APP_BASE_URL", "https://app.example.com")

import json
from datetime import timedelta

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine

from crosspost import config
from crosspost.infrastructure.database import init_db, session_factory_for
from crosspost.infrastructure.storage import MediaStorage
from crosspost.models.post import MediaItem
from crosspost.platforms.registry import build_platform_clients
from crosspost.services.token_store import TokenStore
from crosspost.UAA.models import User
from crosspost.UAA.repository import UserRepository
from crosspost.UAA.utils import utcnow


class FakeRedis:
    """The handful of redis.asyncio calls the connect flows make."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)


class Router:
    """
    Routes httpx requests to canned handlers by (method, url prefix) and keeps
    every request for later assertions.
    """

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, method, url_prefix, handler):
        if not callable(handler):
            response = handler
            handler = lambda request: response  # noqa: E731
        self.routes.append((method.upper(), url_prefix, handler))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for method, prefix, handler in self.routes:
            if request.method == method and url.startswith(prefix):
                return handler(request)
        return httpx.Response(599, text=f"no route for {request.method} {url}")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def sent(self, method, url_prefix):
        return [r for r in self.requests if r.method == method and str(r.url).startswith(url_prefix)]


def json_response(payload, status_code=200):
    return httpx.Response(status_code, content=json.dumps(payload), headers={"Content-Type": "application/json"})


def bearer_token(user_id, lifetime=timedelta(hours=1)) -> str:
    """A token as the account service would issue it."""
    issued = utcnow()
    payload = {"sub": str(user_id), "iat": int(issued.timestamp()), "exp": int((issued + lifetime).timestamp())}
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGORITHM)


@pytest.fixture
async def engine(tmp_path):
    # file-backed so concurrent sessions get their own connections
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crosspost.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return session_factory_for(engine)


@pytest.fixture
def token_store(session_factory):
    return TokenStore(session_factory)


@pytest.fixture
def storage(tmp_path):
    return MediaStorage(root=str(tmp_path / "uploads"), public_base_url="https://cdn.example.com/media")


@pytest.fixture
def http_router():
    return Router()


@pytest.fixture
def clients(token_store, storage, http_router):
    return build_platform_clients(token_store, storage, timeout=5, transport=http_router.transport())


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def user(session_factory):
    async with session_factory() as session:
        return await UserRepository(session).create(
            User(email="owner@example.com", username="owner", company_website=None, default_hashtags=None)
        )


@pytest.fixture
def make_connection(token_store, user):
    async def _make(platform, access_token="access-token", refresh_token=None, expires_at=None,
                    account_identifier="acct-1", meta=None, owner=None):
        return await token_store.upsert(
            (owner or user).id,
            platform,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            account_identifier=account_identifier,
            meta=meta,
        )

    return _make


@pytest.fixture
def make_media(session_factory, storage, user):
    async def _make(mime_type="video/mp4", data=b"fake-bytes", filename="clip.mp4", overrides=None, meta=None):
        saved = await storage.save(str(user.id), filename, mime_type, data)
        item = MediaItem(
            user_id=user.id,
            storage_location=saved.location,
            original_filename=saved.original_filename,
            mime_type=saved.mime_type,
            size_bytes=saved.size_bytes,
            base_caption="",
            per_platform_overrides=overrides,
            meta=meta,
        )
        async with session_factory() as session:
            session.add(item)
            await session.commit()
            await session.refresh(item)
        return item

    return _make


@pytest.fixture
def expired():
    return utcnow() - timedelta(minutes=5)
