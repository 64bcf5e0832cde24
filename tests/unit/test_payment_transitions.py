# Status transitions run against the payments database directly, with one
# session per caller as in concurrent requests.

import asyncio

import pytest

from common.database import get_sessionmaker
from common.errors import Conflict
from payments_service.app.db.database import get_database_url
from payments_service.app.db.functions import create_payment, get_payment_by_id, mark_processed
from payments_service.app.db.init_db import init_db
from payments_service.app.db.models import PaymentStatus
from payments_service.app.db.schemas import PaymentCreate


def session():
    return get_sessionmaker(get_database_url())()


async def _pending_payment() -> int:
    await init_db()
    async with session() as db:
        payment = await create_payment(db, PaymentCreate(order_id=5, amount=20, payment_method_id=1), user_id=1)
        return payment.id


async def _process(payment_id: int):
    async with session() as db:
        return await mark_processed(db, payment_id)


def test_concurrent_processing_completes_once() -> None:
    async def scenario():
        payment_id = await _pending_payment()
        outcomes = await asyncio.gather(
            _process(payment_id), _process(payment_id), return_exceptions=True
        )
        async with session() as db:
            stored = await get_payment_by_id(db, payment_id)
        return outcomes, stored

    outcomes, stored = asyncio.run(scenario())

    completed = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    conflicts = [outcome for outcome in outcomes if isinstance(outcome, Conflict)]
    assert len(completed) == 1
    assert len(conflicts) == 1
    assert stored.status == PaymentStatus.COMPLETED
    assert stored.transaction_id == completed[0].transaction_id


def test_processing_a_completed_payment_conflicts() -> None:
    async def scenario():
        payment_id = await _pending_payment()
        first = await _process(payment_id)
        with pytest.raises(Conflict):
            await _process(payment_id)
        return first

    assert asyncio.run(scenario()).status == PaymentStatus.COMPLETED
