# crosspost/infrastructure/database.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, AsyncContextManager

import structlog
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio.engine import create_async_engine, AsyncEngine

from crosspost import config

logger = structlog.get_logger(__name__)

# services running concurrent work take one of these instead of a shared session
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

engine: AsyncEngine = create_async_engine(config.DATABASE_URL, echo=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    # register every table on the metadata before create_all
    from crosspost.UAA import models as _user_models  # noqa: F401
    from crosspost.models import connection as _connection_models  # noqa: F401
    from crosspost.models import post as _post_models  # noqa: F401

    async with bind.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


def session_factory_for(bind: AsyncEngine) -> SessionFactory:
    @asynccontextmanager
    async def _factory() -> AsyncIterator[AsyncSession]:
        async with AsyncSession(bind, expire_on_commit=False) as session:
            yield session

    return _factory


get_session: SessionFactory = session_factory_for(engine)
