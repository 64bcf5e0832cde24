# products_service/app/db/database.py
from sqlalchemy.orm import declarative_base

from common.database import get_engine, get_sessionmaker
from common.settings import get_settings

# Base class for the catalog models
Base = declarative_base()


def get_database_url() -> str:
    return get_settings().PRODUCTS_DATABASE_URL


def get_products_engine():
    return get_engine(get_database_url())


# Session generator
async def get_db():
    async with get_sessionmaker(get_database_url())() as session:
        yield session
