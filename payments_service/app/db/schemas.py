# payments_service/app/db/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from payments_service.app.db.models import PaymentStatus


# Payment schemas
class PaymentCreate(BaseModel):
    order_id: int
    amount: float = Field(ge=0.01)
    payment_method_id: int
    description: Optional[str] = Field(default=None, max_length=255)
    reference: Optional[str] = Field(default=None, max_length=100)


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: float
    payment_method_id: int
    payment_method_name: Optional[str] = None
    status: PaymentStatus
    transaction_id: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    user_id: int
    payment_date: datetime
    processed_at: Optional[datetime] = None
    created_at: datetime


class PaymentSearch(BaseModel):
    order_id: Optional[int] = None
    status: Optional[PaymentStatus] = None
    payment_method_id: Optional[int] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    user_id: Optional[int] = None


# PaymentMethod schemas
class PaymentMethodBase(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    processing_fee: Optional[float] = Field(default=None, ge=0, le=100)


class PaymentMethodCreate(PaymentMethodBase):
    pass


class PaymentMethodResponse(PaymentMethodBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
    created_at: datetime
    payment_count: int = 0
