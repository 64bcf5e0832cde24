# payments_service/app/db/init_db.py
import logging

from common.database import get_sessionmaker
from payments_service.app.db.database import Base, get_database_url, get_payments_engine
from payments_service.app.db.functions import seed_payment_methods
from payments_service.app.db import models  # noqa: F401  registers the tables

logger = logging.getLogger(__name__)


async def init_db():
    async with get_payments_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_sessionmaker(get_database_url())() as db:
        seeded = await seed_payment_methods(db)
        if seeded:
            logger.info("Seeded %s payment methods", seeded)
