# users_service/app/db/init_db.py
import logging

from common.database import get_sessionmaker
from common.settings import get_settings
from users_service.app.db.database import Base, get_database_url, get_users_engine
from users_service.app.db.functions import ensure_admin
from users_service.app.db import models  # noqa: F401  registers the tables

logger = logging.getLogger(__name__)


async def init_db():
    async with get_users_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    settings = get_settings()
    if settings.ADMIN_USERNAME and settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        async with get_sessionmaker(get_database_url())() as db:
            admin = await ensure_admin(db, settings.ADMIN_USERNAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
            logger.info("Admin account ready: %s", admin.username)
