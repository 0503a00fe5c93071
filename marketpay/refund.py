from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from sqlalchemy.orm import sessionmaker

from marketpay.auth import Caller, has_admin_role
from marketpay.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketpay.logger_config import log
from marketpay.models import Payment, PaymentStatus
from marketpay.repositories import OrderRepository, PaymentRepository


class RefundProcessor:
    """
    Full refund of a paid order, for administrators only.

    Refunds do not call stock restoration; only gateway-reported failures
    and cancellations do.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        orders: OrderRepository,
        payments: PaymentRepository,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_factory = session_factory
        self.orders = orders
        self.payments = payments
        self.clock = clock

    def refund(self, order_id: int, reason: str, caller: Caller) -> Payment:
        if not has_admin_role(caller):
            log.warning("Refund attempted by non-admin", order_id=order_id, user_id=caller.user_id)
            raise ForbiddenError("Only administrators can process refunds")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Refund reason is required")

        with self.session_factory() as db, db.begin():
            order = self.orders.get_for_update(db, order_id)
            if order is None:
                raise NotFoundError(f"Order not found with id: {order_id}")

            payment = self.payments.get_by_order_for_update(db, order_id)
            if payment is None:
                raise NotFoundError(f"Payment not found for order: {order_id}")

            if payment.is_refunded:
                raise ConflictError(f"Payment for order {order_id} is already refunded")
            if payment.status != PaymentStatus.PAID:
                raise ConflictError("Cannot refund: Payment is not in PAID status")

            now = self.clock()
            payment.refund_amount = payment.amount
            payment.refunded_at = now
            payment.refund_transaction_id = f"REFUND-{uuid4().hex}"
            payment.refund_reason = reason
            payment.status = PaymentStatus.FAILED
            order.mark_cancelled(reason, now)

        log.info(
            "Refund processed",
            order_id=order_id,
            amount=str(payment.refund_amount),
            admin_id=caller.user_id,
        )
        return payment
