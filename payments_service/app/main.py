# payments_service/app/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_utils import TokenClaims
from common.errors import register_error_handlers
from common.events import LogLevel, ServiceName, publish_log_event
from common.guard import is_admin
from common.logging import configure_logging
from common.pagination import normalize_pagination
from common.security import ensure_owner, get_current_claims, require_admin
from common.settings import get_settings
from payments_service.app.db.database import get_db, get_payments_engine
from payments_service.app.db.functions import (
    create_payment,
    create_payment_method,
    get_all_payment_methods,
    get_all_payments,
    get_payment_by_id,
    get_payment_method_by_id,
    get_payments_by_order_id,
    get_payments_by_user_id,
    get_total_revenue,
    mark_processed,
    search_payments,
    update_payment_status,
)
from payments_service.app.db.init_db import init_db
from payments_service.app.db.models import PaymentStatus
from payments_service.app.db.schemas import (
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentResponse,
    PaymentSearch,
    PaymentStatusUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
DEFAULT_SEARCH_PAGE_SIZE = 10
MAX_SEARCH_PAGE_SIZE = 100


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield
    await get_payments_engine().dispose()


app = FastAPI(title="Payments Service", lifespan=lifespan)

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
    return {"status": "payments_service running"}


# Payments

@app.get("/api/payments", response_model=List[PaymentResponse])
async def read_payments(
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE),
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    pagination = normalize_pagination(page=page, page_size=page_size, max_page_size=MAX_PAGE_SIZE)
    return await get_all_payments(db, pagination)


@app.get("/api/payments/search", response_model=List[PaymentResponse])
async def find_payments(
    order_id: Optional[int] = None,
    status: Optional[PaymentStatus] = None,
    payment_method_id: Optional[int] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    user_id: Optional[int] = None,
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_SEARCH_PAGE_SIZE),
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    pagination = normalize_pagination(page=page, page_size=page_size, max_page_size=MAX_SEARCH_PAGE_SIZE)
    if not is_admin(claims):
        user_id = claims.subject_id
    filters = PaymentSearch(
        order_id=order_id,
        status=status,
        payment_method_id=payment_method_id,
        min_amount=min_amount,
        max_amount=max_amount,
        from_date=from_date,
        to_date=to_date,
        user_id=user_id,
    )
    return await search_payments(db, filters, pagination)


@app.get("/api/payments/my-payments", response_model=List[PaymentResponse])
async def read_my_payments(
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await get_payments_by_user_id(db, claims.subject_id)


@app.get("/api/payments/order/{order_id}", response_model=List[PaymentResponse])
async def read_order_payments(
    order_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    owner_id = None if is_admin(claims) else claims.subject_id
    return await get_payments_by_order_id(db, order_id, user_id=owner_id)


@app.get("/api/payments/revenue/total")
async def read_total_revenue(
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"total_revenue": await get_total_revenue(db)}


@app.get("/api/payments/{payment_id}", response_model=PaymentResponse)
async def read_payment(
    payment_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    payment = await get_payment_by_id(db, payment_id)
    ensure_owner(claims, payment.user_id)
    return payment


@app.post("/api/payments", response_model=PaymentResponse, status_code=201)
async def create_new_payment(
    payment: PaymentCreate,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    new_payment = await create_payment(db, payment, user_id=claims.subject_id)
    background_tasks.add_task(
        publish_log_event,
        ServiceName.payments,
        LogLevel.info,
        f"Payment {new_payment.id} created for order {new_payment.order_id}",
        claims.username,
    )
    return new_payment


@app.put("/api/payments/{payment_id}/status", response_model=PaymentResponse)
async def change_payment_status(
    payment_id: int,
    data: PaymentStatusUpdate,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payment = await update_payment_status(db, payment_id, data)
    background_tasks.add_task(
        publish_log_event,
        ServiceName.payments,
        LogLevel.info,
        f"Payment {payment_id} status changed to {data.status.value}",
        claims.username,
    )
    return payment


@app.post("/api/payments/{payment_id}/process", response_model=PaymentResponse)
async def process_payment(
    payment_id: int,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payment = await mark_processed(db, payment_id)
    background_tasks.add_task(
        publish_log_event,
        ServiceName.payments,
        LogLevel.info,
        f"Payment {payment_id} processed as {payment.transaction_id}",
        claims.username,
    )
    return payment


# Payment methods

@app.get("/api/payment-methods", response_model=List[PaymentMethodResponse])
async def read_payment_methods(db: AsyncSession = Depends(get_db)):
    return await get_all_payment_methods(db)


@app.get("/api/payment-methods/{method_id}", response_model=PaymentMethodResponse)
async def read_payment_method(method_id: int, db: AsyncSession = Depends(get_db)):
    return await get_payment_method_by_id(db, method_id)


@app.post("/api/payment-methods", response_model=PaymentMethodResponse, status_code=201)
async def create_new_payment_method(
    method: PaymentMethodCreate,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await create_payment_method(db, method)
