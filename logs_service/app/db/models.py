# logs_service/app/db/models.py
from sqlalchemy import Column, Integer, String, DateTime

from common.clock import utcnow
from logs_service.app.db.database import Base


class LogEntry(Base):
    """Append-only audit record; rows are only removed by the cleanup job."""

    __tablename__ = "log_entries"

    id = Column(Integer, primary_key=True, index=True)
    service = Column(String(50), index=True, nullable=False)
    level = Column(String(20), index=True, nullable=False)
    message = Column(String(1000), nullable=False)
    username = Column(String(50), index=True, nullable=True)
    request_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    exception = Column(String(2000), nullable=True)
    additional_data = Column(String(500), nullable=True)
    timestamp = Column(DateTime, index=True, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
