"""
Database configuration.

Async SQLAlchemy engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config.settings import settings


def create_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """
    Create an async engine.

    Args:
        url: Database URL (defaults to settings)
        echo: Log SQL statements (defaults to settings)

    Returns:
        AsyncEngine instance
    """
    return create_async_engine(
        url or settings.async_database_url,
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create a session factory bound to engine.

    Args:
        engine: Async engine

    Returns:
        Session factory producing AsyncSession objects
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine()
async_session_maker = create_session_maker(engine)
