"""
Database Connection Module
Handles the SQLAlchemy async engine, session factory and startup seeding.
"""

import logging

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from orderdesk.core.config import get_settings
from orderdesk.core.security import hash_password

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so order items are
    removed together with their order.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=echo)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
    )


engine = build_engine(settings.database_url, echo=settings.database_echo)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Register models on Base.metadata
    from orderdesk import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def seed_admin(username: str, password: str) -> bool:
    """
    Insert the bootstrap admin account unless it already exists.

    Returns:
        True if a new admin row was created
    """
    from orderdesk.models import Admin

    async with async_session_maker() as session:
        existing = await session.scalar(select(Admin.id).where(Admin.username == username))
        if existing is not None:
            return False

        session.add(Admin(username=username, password_hash=hash_password(password)))
        await session.commit()

    logger.info(f"Seeded admin user: {username}")
    return True
