# users_service/app/db/models.py
from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime

from common.clock import utcnow
from common.guard import Role
from users_service.app.db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.user)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)  # soft-delete flag
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
