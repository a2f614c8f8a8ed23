"""
Account Cleanup - Database Setup

SQLAlchemy async database configuration.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData

from .config import get_settings

settings = get_settings()

# Naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Base class for all database models"""
    metadata = MetaData(naming_convention=convention)


# Note: echo=False to prevent verbose SQL logging in terminal
# For SQL debugging, use logging.getLogger('sqlalchemy.engine').setLevel(logging.DEBUG)
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session_maker() -> async_sessionmaker:
    """
    Dependency returning the session factory.

    The cleanup engine opens one short-lived session per unit of work
    (window query, ledger write, account delete) instead of sharing one
    request-scoped session, so a failed candidate never poisons the next one.
    """
    return async_session_maker


async def create_tables():
    """Create all tables (for development)"""
    # Import models so every table is registered on Base.metadata
    from .models import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
