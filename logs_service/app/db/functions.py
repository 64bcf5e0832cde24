# logs_service/app/db/functions.py
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from common.clock import as_naive_utc, utcnow
from common.errors import NotFound, ValidationError
from common.events import LogLevel, ServiceName
from common.pagination import PaginationSpec
from logs_service.app.db.models import LogEntry
from logs_service.app.db.schemas import LogEntryCreate, LogSearch, LogStats, LogSummary

logger = logging.getLogger(__name__)

RECENT_LOGS_LIMIT = 1000
FILTERED_LOGS_LIMIT = 500
SUMMARY_WINDOW = timedelta(days=7)
STATS_WINDOW = timedelta(days=30)
# Logs younger than this are never purged
MIN_RETENTION = timedelta(days=1)


def _newest_first(query):
    return query.order_by(LogEntry.timestamp.desc(), LogEntry.id.desc())


async def get_recent_logs(db: AsyncSession) -> List[LogEntry]:
    result = await db.execute(_newest_first(select(LogEntry)).limit(RECENT_LOGS_LIMIT))
    return result.scalars().all()


async def get_log_by_id(db: AsyncSession, log_id: int) -> LogEntry:
    result = await db.execute(select(LogEntry).filter(LogEntry.id == log_id))
    log = result.scalar_one_or_none()
    if not log:
        raise NotFound("Log entry not found")
    return log


async def get_logs_by_service(db: AsyncSession, service: ServiceName) -> List[LogEntry]:
    result = await db.execute(
        _newest_first(select(LogEntry).filter(LogEntry.service == service.value)).limit(FILTERED_LOGS_LIMIT)
    )
    return result.scalars().all()


async def get_logs_by_level(db: AsyncSession, level: LogLevel) -> List[LogEntry]:
    result = await db.execute(
        _newest_first(select(LogEntry).filter(LogEntry.level == level.value)).limit(FILTERED_LOGS_LIMIT)
    )
    return result.scalars().all()


async def get_logs_by_username(db: AsyncSession, username: str) -> List[LogEntry]:
    result = await db.execute(
        _newest_first(select(LogEntry).filter(LogEntry.username == username)).limit(FILTERED_LOGS_LIMIT)
    )
    return result.scalars().all()


async def search_logs(db: AsyncSession, filters: LogSearch, pagination: PaginationSpec) -> List[LogEntry]:
    query = select(LogEntry)
    if filters.service is not None:
        query = query.filter(LogEntry.service == filters.service.value)
    if filters.level is not None:
        query = query.filter(LogEntry.level == filters.level.value)
    if filters.username:
        query = query.filter(LogEntry.username == filters.username)
    if filters.search_text:
        query = query.filter(LogEntry.message.contains(filters.search_text))
    if filters.from_date is not None:
        query = query.filter(LogEntry.timestamp >= as_naive_utc(filters.from_date))
    if filters.to_date is not None:
        query = query.filter(LogEntry.timestamp <= as_naive_utc(filters.to_date))
    if filters.request_id:
        query = query.filter(LogEntry.request_id == filters.request_id)

    result = await db.execute(_newest_first(query).offset(pagination.offset).limit(pagination.page_size))
    return result.scalars().all()


async def create_log(db: AsyncSession, data: LogEntryCreate, username: Optional[str] = None) -> LogEntry:
    now = utcnow()
    log = LogEntry(
        service=data.service.value,
        level=data.level.value,
        message=data.message,
        username=username,
        request_id=data.request_id,
        ip_address=data.ip_address,
        user_agent=data.user_agent,
        exception=data.exception,
        additional_data=data.additional_data,
        timestamp=as_naive_utc(data.timestamp) if data.timestamp else now,
        created_at=now,
    )
    db.add(log)
    await db.commit()
    await db.refresh(log)
    return log


def _window(from_date: Optional[datetime], to_date: Optional[datetime], default: timedelta):
    to_date = as_naive_utc(to_date) if to_date else utcnow()
    from_date = as_naive_utc(from_date) if from_date else to_date - default
    return from_date, to_date


async def get_log_summary(
    db: AsyncSession,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
) -> LogSummary:
    from_date, to_date = _window(from_date, to_date, SUMMARY_WINDOW)
    in_window = (LogEntry.timestamp >= from_date, LogEntry.timestamp <= to_date)

    services = await db.execute(
        select(LogEntry.service, func.count(LogEntry.id)).filter(*in_window).group_by(LogEntry.service)
    )
    levels = await db.execute(
        select(LogEntry.level, func.count(LogEntry.id)).filter(*in_window).group_by(LogEntry.level)
    )
    service_counts = {service: count for service, count in services.all()}
    level_counts = {level: count for level, count in levels.all()}

    return LogSummary(
        total_logs=sum(level_counts.values()),
        error_count=level_counts.get(LogLevel.error.value, 0),
        warning_count=level_counts.get(LogLevel.warning.value, 0),
        info_count=level_counts.get(LogLevel.info.value, 0),
        service_counts=service_counts,
        level_counts=level_counts,
        from_date=from_date,
        to_date=to_date,
    )


async def get_log_stats(
    db: AsyncSession,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
) -> List[LogStats]:
    from_date, to_date = _window(from_date, to_date, STATS_WINDOW)
    day = func.date(LogEntry.timestamp).label("day")
    result = await db.execute(
        select(LogEntry.service, LogEntry.level, day, func.count(LogEntry.id))
        .filter(LogEntry.timestamp >= from_date, LogEntry.timestamp <= to_date)
        .group_by(LogEntry.service, LogEntry.level, day)
        .order_by(day, LogEntry.service, LogEntry.level)
    )
    return [
        LogStats(service=service, level=level, date=log_day, count=count)
        for service, level, log_day, count in result.all()
    ]


async def count_logs(
    db: AsyncSession,
    service: Optional[ServiceName] = None,
    level: Optional[LogLevel] = None,
) -> int:
    query = select(func.count(LogEntry.id))
    if service is not None:
        query = query.filter(LogEntry.service == service.value)
    if level is not None:
        query = query.filter(LogEntry.level == level.value)
    result = await db.execute(query)
    return result.scalar_one()


async def purge_logs(db: AsyncSession, before_date: datetime) -> int:
    """Delete every entry stamped before `before_date`, which must be at least a day old."""
    before_date = as_naive_utc(before_date)
    if before_date > utcnow() - MIN_RETENTION:
        raise ValidationError("Only logs older than one day can be deleted", field="before_date")

    result = await db.execute(delete(LogEntry).where(LogEntry.timestamp < before_date))
    await db.commit()
    logger.info("Purged %s log entries older than %s", result.rowcount, before_date)
    return result.rowcount
