# users_service/app/db/functions.py
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from common.auth_utils import TokenClaims, TokenCodec, hash_password, verify_password
from common.clock import utcnow
from common.errors import Conflict, NotFound, ValidationError
from common.guard import Role
from common.pagination import PaginationSpec
from users_service.app.db.models import User
from users_service.app.db.schemas import LoginResponse, ProfileUpdate, RegisterRequest, UserFilter

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.username == username))
    return result.scalar_one_or_none()


async def get_active_user(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise NotFound("User not found")
    return user


async def user_exists(db: AsyncSession, username: str, email: str) -> bool:
    # Inactive rows still hold their username and email
    result = await db.execute(
        select(User.id).filter(or_(User.username == username, User.email == email)).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def create_user(db: AsyncSession, data: RegisterRequest, role: Role = Role.user) -> User:
    if await user_exists(db, data.username, data.email):
        raise Conflict("Username or email already exists")

    db_user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=role,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    logger.info("Created user %s (id=%s, role=%s)", db_user.username, db_user.id, role.value)
    return db_user


async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials and stamp the login time."""
    user = await get_user_by_username(db, username)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    await db.commit()
    await db.refresh(user)
    return user


def issue_login_response(user: User, codec: TokenCodec) -> LoginResponse:
    now = codec.clock()
    claims = TokenClaims(
        subject_id=user.id,
        username=user.username,
        email=user.email,
        role=Role(user.role).value,
    )
    return LoginResponse(
        token=codec.issue(claims, now=now),
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        expires_at=codec.expires_at(now),
    )


async def list_users(db: AsyncSession, filters: UserFilter, pagination: PaginationSpec) -> List[User]:
    query = select(User).filter(User.is_active.is_(True))
    if filters.role is not None:
        query = query.filter(User.role == filters.role)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.filter(or_(User.username.ilike(pattern), User.email.ilike(pattern)))

    result = await db.execute(
        query.order_by(User.username).offset(pagination.offset).limit(pagination.page_size)
    )
    return result.scalars().all()


async def update_user(db: AsyncSession, user_id: int, data: ProfileUpdate) -> User:
    user = await get_active_user(db, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    new_email = changes.get("email")
    if new_email and new_email != user.email:
        result = await db.execute(select(User.id).filter(User.email == new_email, User.id != user_id))
        if result.scalar_one_or_none() is not None:
            raise Conflict("Email is already in use")

    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = utcnow()

    await db.commit()
    await db.refresh(user)
    return user


async def change_password(db: AsyncSession, user_id: int, current_password: str, new_password: str) -> None:
    user = await get_active_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", field="current_password")

    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    await db.commit()


async def deactivate_user(db: AsyncSession, user_id: int) -> User:
    user = await get_active_user(db, user_id)
    user.is_active = False
    user.updated_at = utcnow()
    await db.commit()
    await db.refresh(user)
    logger.info("Deactivated user %s (id=%s)", user.username, user.id)
    return user


async def ensure_admin(db: AsyncSession, username: str, email: str, password: str) -> User:
    """Create the bootstrap admin account unless the username already exists."""
    existing = await get_user_by_username(db, username)
    if existing:
        return existing
    data = RegisterRequest(username=username, email=email, password=password)
    return await create_user(db, data, role=Role.admin)
