import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String

from marketpay.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PREPARING = "PREPARING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"                          # gateway failure or refunded


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    order_status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    cancellation_reason = Column(String)
    cancelled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def mark_paid(self) -> None:
        self.order_status = OrderStatus.PAID
        self.payment_status = PaymentStatus.PAID

    def mark_cancelled(self, reason=None, when=None) -> None:
        self.order_status = OrderStatus.CANCELLED
        self.payment_status = PaymentStatus.FAILED
        if reason:
            self.cancellation_reason = reason
        if when is not None:
            self.cancelled_at = when


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String, unique=True)  # provisional until the gateway confirms
    method = Column(String(50))
    approved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    refund_amount = Column(Numeric(10, 2))
    refunded_at = Column(DateTime(timezone=True))
    refund_transaction_id = Column(String)
    refund_reason = Column(String)

    @property
    def is_refunded(self) -> bool:
        return self.refund_amount is not None and self.refund_amount > 0
