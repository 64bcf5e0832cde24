# logs_service/app/main.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_utils import TokenClaims
from common.errors import ValidationError, register_error_handlers
from common.events import LogLevel, ServiceName
from common.guard import is_admin
from common.logging import configure_logging
from common.pagination import normalize_pagination
from common.security import get_current_claims, require_admin
from common.settings import get_settings
from logs_service.app.consumer import consume_messages
from logs_service.app.db.database import get_db, get_logs_engine
from logs_service.app.db.functions import (
    count_logs,
    create_log,
    get_log_by_id,
    get_log_stats,
    get_log_summary,
    get_logs_by_level,
    get_logs_by_service,
    get_logs_by_username,
    get_recent_logs,
    purge_logs,
    search_logs,
)
from logs_service.app.db.init_db import init_db
from logs_service.app.db.schemas import LogEntryCreate, LogEntryResponse, LogSearch, LogStats, LogSummary

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    consumer = None
    rabbitmq_url = get_settings().RABBITMQ_URL
    if rabbitmq_url:
        consumer = asyncio.create_task(consume_messages(rabbitmq_url))
    yield
    if consumer is not None:
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer
    await get_logs_engine().dispose()


app = FastAPI(title="Logs Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


def parse_service(value: str) -> ServiceName:
    try:
        return ServiceName(value)
    except ValueError:
        raise ValidationError(f"Unknown service {value}", field="service") from None


def parse_level(value: str) -> LogLevel:
    try:
        return LogLevel(value.upper())
    except ValueError:
        raise ValidationError(f"Unknown log level {value}", field="level") from None


@app.get("/")
async def health_check():
    return {"status": "logs_service running"}


@app.get("/api/logs", response_model=List[LogEntryResponse])
async def read_logs(
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_recent_logs(db)


@app.get("/api/logs/search", response_model=List[LogEntryResponse])
async def find_logs(
    service: Optional[str] = None,
    level: Optional[str] = None,
    username: Optional[str] = None,
    search_text: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    request_id: Optional[str] = None,
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE),
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    pagination = normalize_pagination(page=page, page_size=page_size, max_page_size=MAX_PAGE_SIZE)
    if not is_admin(claims):
        username = claims.username
    filters = LogSearch(
        service=parse_service(service) if service else None,
        level=parse_level(level) if level else None,
        username=username,
        search_text=search_text,
        from_date=from_date,
        to_date=to_date,
        request_id=request_id,
    )
    return await search_logs(db, filters, pagination)


@app.get("/api/logs/my-logs", response_model=List[LogEntryResponse])
async def read_my_logs(
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await get_logs_by_username(db, claims.username)


@app.get("/api/logs/summary", response_model=LogSummary)
async def read_log_summary(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_log_summary(db, from_date, to_date)


@app.get("/api/logs/stats", response_model=List[LogStats])
async def read_log_stats(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_log_stats(db, from_date, to_date)


@app.get("/api/logs/count")
async def read_log_count(
    service: Optional[str] = None,
    level: Optional[str] = None,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service_name = parse_service(service) if service else None
    log_level = parse_level(level) if level else None
    count = await count_logs(db, service_name, log_level)
    return {
        "count": count,
        "service": service_name.value if service_name else None,
        "level": log_level.value if log_level else None,
    }


@app.delete("/api/logs/cleanup")
async def cleanup_logs(
    before_date: datetime,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    deleted = await purge_logs(db, before_date)
    return {"deleted": deleted, "before_date": before_date}


@app.get("/api/logs/services")
async def read_services():
    return {"services": [service.value for service in ServiceName]}


@app.get("/api/logs/levels")
async def read_levels():
    return {"levels": [level.value for level in LogLevel]}


@app.get("/api/logs/service/{service}", response_model=List[LogEntryResponse])
async def read_service_logs(
    service: str,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_logs_by_service(db, parse_service(service))


@app.get("/api/logs/level/{level}", response_model=List[LogEntryResponse])
async def read_level_logs(
    level: str,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_logs_by_level(db, parse_level(level))


@app.get("/api/logs/{log_id}", response_model=LogEntryResponse)
async def read_log(
    log_id: int,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await get_log_by_id(db, log_id)


@app.post("/api/logs", response_model=LogEntryResponse, status_code=201)
async def create_new_log(
    log: LogEntryCreate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await create_log(db, log, username=claims.username)
