# crosspost/dependencies/db.py
from typing import AsyncGenerator

from crosspost.infrastructure.database import SessionFactory, get_session


async def get_session_dep() -> AsyncGenerator:
    async with get_session() as session:
        yield session


def get_session_factory() -> SessionFactory:
    """Services that run concurrent work open their own sessions from this."""
    return get_session
