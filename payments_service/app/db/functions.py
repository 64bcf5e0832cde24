# payments_service/app/db/functions.py
import logging
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from common.clock import as_naive_utc, utcnow
from common.errors import Conflict, NotFound, ValidationError
from common.pagination import PaginationSpec
from payments_service.app.db.models import Payment, PaymentMethod, PaymentStatus
from payments_service.app.db.schemas import (
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentSearch,
    PaymentStatusUpdate,
)

logger = logging.getLogger(__name__)

PAYMENT_LIST_LIMIT = 500

# Reference data inserted into an empty payment_methods table
DEFAULT_PAYMENT_METHODS = [
    {"name": "Credit Card", "description": "Visa, MasterCard, American Express", "processing_fee": 2.9},
    {"name": "PayPal", "description": "PayPal secure payments", "processing_fee": 3.4},
    {"name": "Bank Transfer", "description": "Direct bank transfer", "processing_fee": 0.5},
    {"name": "Apple Pay", "description": "Apple Pay mobile payments", "processing_fee": 2.5},
]


def _payments():
    return select(Payment).options(selectinload(Payment.payment_method))


# Payments

async def get_all_payments(db: AsyncSession, pagination: PaginationSpec) -> List[Payment]:
    result = await db.execute(
        _payments()
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
    )
    return result.scalars().all()


async def search_payments(db: AsyncSession, filters: PaymentSearch, pagination: PaginationSpec) -> List[Payment]:
    query = _payments()
    if filters.order_id is not None:
        query = query.filter(Payment.order_id == filters.order_id)
    if filters.status is not None:
        query = query.filter(Payment.status == filters.status)
    if filters.payment_method_id is not None:
        query = query.filter(Payment.payment_method_id == filters.payment_method_id)
    if filters.min_amount is not None:
        query = query.filter(Payment.amount >= filters.min_amount)
    if filters.max_amount is not None:
        query = query.filter(Payment.amount <= filters.max_amount)
    if filters.from_date is not None:
        query = query.filter(Payment.payment_date >= as_naive_utc(filters.from_date))
    if filters.to_date is not None:
        query = query.filter(Payment.payment_date <= as_naive_utc(filters.to_date))
    if filters.user_id is not None:
        query = query.filter(Payment.user_id == filters.user_id)

    result = await db.execute(
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
    )
    return result.scalars().all()


async def get_payment_by_id(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(
        _payments().filter(Payment.id == payment_id).execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFound("Payment not found")
    return payment


async def get_payments_by_user_id(db: AsyncSession, user_id: int) -> List[Payment]:
    result = await db.execute(
        _payments()
        .filter(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(PAYMENT_LIST_LIMIT)
    )
    return result.scalars().all()


async def get_payments_by_order_id(db: AsyncSession, order_id: int, user_id: Optional[int] = None) -> List[Payment]:
    query = _payments().filter(Payment.order_id == order_id)
    if user_id is not None:
        query = query.filter(Payment.user_id == user_id)
    result = await db.execute(query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(PAYMENT_LIST_LIMIT))
    return result.scalars().all()


async def create_payment(db: AsyncSession, data: PaymentCreate, user_id: int) -> Payment:
    result = await db.execute(
        select(PaymentMethod).filter(
            PaymentMethod.id == data.payment_method_id, PaymentMethod.is_active.is_(True)
        )
    )
    if result.scalar_one_or_none() is None:
        raise ValidationError(
            f"Payment method {data.payment_method_id} does not exist", field="payment_method_id"
        )

    now = utcnow()
    payment = Payment(
        **data.model_dump(),
        user_id=user_id,
        status=PaymentStatus.PENDING,
        payment_date=now,
        created_at=now,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    logger.info("Payment %s created for order %s by user %s", payment.id, payment.order_id, user_id)
    return await get_payment_by_id(db, payment.id)


def generate_transaction_id(payment: Payment) -> str:
    return f"TXN_{utcnow():%Y%m%d%H%M%S}_{payment.id}"


async def update_payment_status(db: AsyncSession, payment_id: int, data: PaymentStatusUpdate) -> Payment:
    payment = await get_payment_by_id(db, payment_id)

    if payment.status != PaymentStatus.PENDING:
        raise Conflict(f"Payment {payment_id} is already {PaymentStatus(payment.status).value}")
    if data.status == PaymentStatus.PENDING:
        raise ValidationError("Status must be Completed or Failed", field="status")

    now = utcnow()
    values = {"status": data.status, "updated_at": now}
    if data.status == PaymentStatus.COMPLETED:
        transaction_id = data.transaction_id or generate_transaction_id(payment)
        existing = await db.execute(select(Payment.id).filter(Payment.transaction_id == transaction_id))
        if existing.scalar_one_or_none() is not None:
            raise Conflict(f"Transaction id {transaction_id} is already in use")
        values.update(transaction_id=transaction_id, processed_at=now)
    elif data.transaction_id:
        raise ValidationError("A failed payment cannot carry a transaction id", field="transaction_id")

    # Matches nothing when another request already moved the payment out of Pending
    try:
        result = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict(f"Transaction id {values['transaction_id']} is already in use") from exc
    if result.rowcount == 0:
        await db.rollback()
        raise Conflict(f"Payment {payment_id} is no longer Pending")

    await db.commit()
    logger.info("Payment %s moved to %s", payment_id, data.status.value)
    return await get_payment_by_id(db, payment_id)


async def mark_processed(db: AsyncSession, payment_id: int) -> Payment:
    """Complete a pending payment with a generated transaction id."""
    return await update_payment_status(db, payment_id, PaymentStatusUpdate(status=PaymentStatus.COMPLETED))


async def get_total_revenue(db: AsyncSession) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).filter(Payment.status == PaymentStatus.COMPLETED)
    )
    return float(result.scalar_one())


# Payment methods

async def _payment_counts(db: AsyncSession, method_ids: List[int]) -> Dict[int, int]:
    if not method_ids:
        return {}
    result = await db.execute(
        select(Payment.payment_method_id, func.count(Payment.id))
        .filter(Payment.payment_method_id.in_(method_ids))
        .group_by(Payment.payment_method_id)
    )
    return {method_id: count for method_id, count in result.all()}


def _method_schema(method: PaymentMethod, payment_count: int) -> PaymentMethodResponse:
    return PaymentMethodResponse.model_validate(method).model_copy(update={"payment_count": payment_count})


async def get_all_payment_methods(db: AsyncSession) -> List[PaymentMethodResponse]:
    result = await db.execute(
        select(PaymentMethod).filter(PaymentMethod.is_active.is_(True)).order_by(PaymentMethod.name)
    )
    methods = result.scalars().all()
    counts = await _payment_counts(db, [method.id for method in methods])
    return [_method_schema(method, counts.get(method.id, 0)) for method in methods]


async def get_payment_method_by_id(db: AsyncSession, method_id: int) -> PaymentMethodResponse:
    result = await db.execute(
        select(PaymentMethod).filter(PaymentMethod.id == method_id, PaymentMethod.is_active.is_(True))
    )
    method = result.scalar_one_or_none()
    if not method:
        raise NotFound("Payment method not found")
    counts = await _payment_counts(db, [method.id])
    return _method_schema(method, counts.get(method.id, 0))


async def create_payment_method(db: AsyncSession, data: PaymentMethodCreate) -> PaymentMethodResponse:
    existing = await db.execute(select(PaymentMethod.id).filter(PaymentMethod.name == data.name))
    if existing.scalar_one_or_none() is not None:
        raise Conflict(f"Payment method {data.name} already exists")

    method = PaymentMethod(**data.model_dump(), is_active=True, created_at=utcnow())
    db.add(method)
    await db.commit()
    await db.refresh(method)
    return _method_schema(method, 0)


async def seed_payment_methods(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(PaymentMethod.id)))
    if result.scalar_one() > 0:
        return 0
    for values in DEFAULT_PAYMENT_METHODS:
        db.add(PaymentMethod(**values, is_active=True, created_at=utcnow()))
    await db.commit()
    return len(DEFAULT_PAYMENT_METHODS)
