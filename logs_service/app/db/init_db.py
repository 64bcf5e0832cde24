# logs_service/app/db/init_db.py
from logs_service.app.db.database import Base, get_logs_engine
from logs_service.app.db import models  # noqa: F401  registers the tables


async def init_db():
    async with get_logs_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
