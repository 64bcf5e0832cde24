# payments_service/app/db/models.py
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, Numeric
from sqlalchemy.orm import relationship

from common.clock import utcnow
from payments_service.app.db.database import Base


# Payments only move forward: PENDING -> COMPLETED or PENDING -> FAILED
class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, index=True, nullable=False)  # opaque reference into the orders domain
    amount = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String(100), unique=True, nullable=True)
    description = Column(String(255), nullable=True)
    reference = Column(String(100), nullable=True)
    user_id = Column(Integer, index=True, nullable=False)
    payment_date = Column(DateTime, nullable=False, default=utcnow)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)

    payment_method = relationship("PaymentMethod", back_populates="payments")

    @property
    def payment_method_name(self):
        return self.payment_method.name if self.payment_method is not None else None


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(200), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    processing_fee = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    payments = relationship("Payment", back_populates="payment_method")
