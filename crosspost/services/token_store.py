# crosspost/services/token_store.py
"""
Single place where platform credentials are read and written.

Every code path that needs a fresh access token (publishing, the Business
Profile location picker, ...) goes through ``refresh_if_expired`` so refresh
logic is not duplicated per call site. Each call opens its own session, which
keeps it safe to use from concurrently running publish tasks.
"""
import uuid
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

import structlog

from crosspost.infrastructure.connections_repo import ConnectionsRepository
from crosspost.infrastructure.database import SessionFactory
from crosspost.models.connection import Connection
from crosspost.UAA.utils import as_utc, encrypt_token, utcnow

logger = structlog.get_logger(__name__)

# refresh slightly early so a token does not expire mid-upload
EXPIRY_SKEW = timedelta(seconds=60)

Refresher = Callable[[Connection], Awaitable[Connection]]

_KEEP = object()


class ConnectionNotFound(LookupError):
    pass


class TokenStore:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def list_for_user(self, user_id: uuid.UUID) -> List[Connection]:
        async with self.session_factory() as session:
            return await ConnectionsRepository(session).list_by_user(user_id)

    async def get(self, user_id: uuid.UUID, platform: str) -> Optional[Connection]:
        async with self.session_factory() as session:
            return await ConnectionsRepository(session).get_by_user_and_platform(user_id, platform)

    async def upsert(
        self,
        user_id: uuid.UUID,
        platform: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        account_identifier: Optional[str] = None,
        scopes: Optional[str] = None,
        meta: Optional[dict] = None,
    ) -> Connection:
        """Create or replace the user's connection for ``platform`` (reconnect semantics)."""
        async with self.session_factory() as session:
            repo = ConnectionsRepository(session)
            existing = await repo.get_by_user_and_platform(user_id, platform)
            if existing:
                existing.account_identifier = account_identifier
                existing.scopes = scopes
                conn = await repo.update_tokens(
                    existing,
                    encrypt_token(access_token),
                    encrypt_token(refresh_token),
                    as_utc(expires_at),
                    meta=meta or {},
                )
                logger.info("connection_updated", user_id=str(user_id), platform=platform, connection_id=str(conn.id))
                return conn

            conn = Connection(
                user_id=user_id,
                platform=platform,
                account_identifier=account_identifier,
                access_token_enc=encrypt_token(access_token),
                refresh_token_enc=encrypt_token(refresh_token),
                expires_at=as_utc(expires_at),
                scopes=scopes,
                meta=meta or {},
            )
            conn = await repo.create(conn)
            logger.info("connection_created", user_id=str(user_id), platform=platform, connection_id=str(conn.id))
            return conn

    async def update_tokens(
        self,
        connection_id: uuid.UUID,
        access_token: str,
        expires_at: Optional[datetime],
        refresh_token=_KEEP,
    ) -> Connection:
        """
        Read-modify-write of one connection's tokens, committed immediately so
        later publishes see the new value. ``refresh_token`` is left untouched
        unless given.
        """
        async with self.session_factory() as session:
            repo = ConnectionsRepository(session)
            conn = await repo.get_by_id(connection_id)
            if conn is None:
                raise ConnectionNotFound(f"connection {connection_id} not found")
            refresh_enc = conn.refresh_token_enc if refresh_token is _KEEP else encrypt_token(refresh_token)
            conn = await repo.update_tokens(conn, encrypt_token(access_token), refresh_enc, as_utc(expires_at))
            logger.info("connection_tokens_updated", connection_id=str(connection_id), platform=conn.platform)
            return conn

    async def update_meta(self, connection_id: uuid.UUID, changes: dict) -> Connection:
        async with self.session_factory() as session:
            repo = ConnectionsRepository(session)
            conn = await repo.get_by_id(connection_id)
            if conn is None:
                raise ConnectionNotFound(f"connection {connection_id} not found")
            merged = {**(conn.meta or {}), **changes}
            return await repo.update_meta(conn, merged)

    async def delete(self, user_id: uuid.UUID, platform: str) -> int:
        async with self.session_factory() as session:
            deleted = await ConnectionsRepository(session).delete_by_user_and_platform(user_id, platform)
        logger.info("connection_deleted", user_id=str(user_id), platform=platform, deleted=deleted)
        return deleted

    @staticmethod
    def is_expired(connection: Connection, now: Optional[datetime] = None) -> bool:
        if connection.expires_at is None:
            return False
        return as_utc(connection.expires_at) <= as_utc(now or utcnow()) + EXPIRY_SKEW

    async def refresh_if_expired(self, connection: Connection, refresher: Refresher) -> Connection:
        if not self.is_expired(connection):
            return connection
        logger.info("connection_token_expired", connection_id=str(connection.id), platform=connection.platform)
        return await refresher(connection)
