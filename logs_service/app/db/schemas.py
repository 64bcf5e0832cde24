# logs_service/app/db/schemas.py
from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from common.events import LogLevel, ServiceName


class LogEntryCreate(BaseModel):
    service: ServiceName
    level: LogLevel
    message: str = Field(min_length=1, max_length=1000)
    request_id: Optional[str] = Field(default=None, max_length=100)
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=500)
    exception: Optional[str] = Field(default=None, max_length=2000)
    additional_data: Optional[str] = Field(default=None, max_length=500)
    timestamp: Optional[datetime] = None

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value


class LogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service: str
    level: str
    message: str
    username: Optional[str] = None
    request_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    exception: Optional[str] = None
    additional_data: Optional[str] = None
    timestamp: datetime
    created_at: datetime


class LogSearch(BaseModel):
    service: Optional[ServiceName] = None
    level: Optional[LogLevel] = None
    username: Optional[str] = None
    search_text: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    request_id: Optional[str] = None

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value


class LogStats(BaseModel):
    service: str
    level: str
    count: int
    date: date


class LogSummary(BaseModel):
    total_logs: int
    error_count: int
    warning_count: int
    info_count: int
    service_counts: Dict[str, int]
    level_counts: Dict[str, int]
    from_date: datetime
    to_date: datetime
