# common/database.py
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from common.settings import get_settings


@lru_cache(maxsize=None)
def get_engine(database_url: str):
    """One async engine per database URL for the lifetime of the process."""
    engine_kwargs = {"echo": get_settings().DB_ECHO}
    if database_url.startswith("sqlite"):
        engine_kwargs["poolclass"] = NullPool
    return create_async_engine(database_url, **engine_kwargs)


@lru_cache(maxsize=None)
def get_sessionmaker(database_url: str) -> async_sessionmaker:
    return async_sessionmaker(
        bind=get_engine(database_url),
        class_=AsyncSession,
        expire_on_commit=False,
    )
