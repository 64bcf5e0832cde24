# users_service/app/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_utils import TokenClaims, TokenCodec
from common.errors import AuthError, AuthErrorKind, register_error_handlers
from common.events import LogLevel, ServiceName, publish_log_event
from common.guard import Role, authorize
from common.logging import configure_logging
from common.pagination import normalize_pagination
from common.security import enforce, ensure_owner, get_current_claims, get_token_codec, require_admin
from common.settings import get_settings
from users_service.app.db.database import get_db, get_users_engine
from users_service.app.db.functions import (
    authenticate_user,
    change_password,
    create_user,
    deactivate_user,
    get_active_user,
    issue_login_response,
    list_users,
    update_user,
)
from users_service.app.db.init_db import init_db
from users_service.app.db.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    UserFilter,
    UserProfile,
    UserUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield
    await get_users_engine().dispose()


app = FastAPI(title="Users Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


@app.get("/")
async def health_check():
    return {"status": "users_service running"}


@app.post("/api/auth/register", response_model=LoginResponse, status_code=201)
async def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    user = await create_user(db, data)
    background_tasks.add_task(
        publish_log_event, ServiceName.users, LogLevel.info, f"User {user.username} registered", user.username
    )
    return issue_login_response(user, codec)


@app.post("/api/auth/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    user = await authenticate_user(db, data.username, data.password)
    if user is None:
        logger.info("Failed login for %s", data.username)
        raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, "Invalid credentials")
    return issue_login_response(user, codec)


@app.get("/api/users/profile", response_model=UserProfile)
async def get_profile(
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await get_active_user(db, claims.subject_id)


@app.put("/api/users/profile", response_model=UserProfile)
async def update_profile(
    data: ProfileUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await update_user(db, claims.subject_id, data)


@app.post("/api/users/change-password")
async def change_own_password(
    data: ChangePasswordRequest,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, claims.subject_id, data.current_password, data.new_password)
    return {"message": "Password updated"}


@app.get("/api/users", response_model=List[UserProfile])
async def read_users(
    role: Optional[Role] = None,
    search: Optional[str] = None,
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE),
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    pagination = normalize_pagination(page=page, page_size=page_size, max_page_size=MAX_PAGE_SIZE)
    return await list_users(db, UserFilter(role=role, search=search), pagination)


@app.get("/api/users/{user_id}", response_model=UserProfile)
async def read_user(
    user_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    ensure_owner(claims, user_id)
    return await get_active_user(db, user_id)


@app.api_route("/api/users/{user_id}", methods=["PUT", "PATCH"], response_model=UserProfile)
async def update_existing_user(
    user_id: int,
    data: UserUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    ensure_owner(claims, user_id)
    if data.role is not None or data.is_active is not None:
        enforce(authorize(claims, required_role=Role.admin.value), claims)
    return await update_user(db, user_id, data)


@app.delete("/api/users/{user_id}")
async def delete_user(
    user_id: int,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await deactivate_user(db, user_id)
    background_tasks.add_task(
        publish_log_event, ServiceName.users, LogLevel.warning, f"User {user.username} deactivated", claims.username
    )
    return {"message": "User deactivated"}
