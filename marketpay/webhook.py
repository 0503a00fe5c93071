"""
Payment gateway webhook processing.

The gateway delivers at least once and may redeliver the same outcome, so
every delivery is applied against the payment's current status read under
a row lock:

- PENDING payments move to the reported outcome (APPLIED);
- a payment already in the reported terminal status is left alone
  (DUPLICATE), which keeps stock restoration to a single call;
- any other settled payment, or an unknown gateway status, is acknowledged
  without changes (IGNORED).

Stock restoration runs only after the order and payment changes are
committed, and its failure never rolls them back.
"""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from marketpay.errors import ConflictError, NotFoundError, UnauthorizedError
from marketpay.logger_config import log
from marketpay.models import Order, Payment, PaymentStatus
from marketpay.repositories import OrderRepository, PaymentRepository
from marketpay.schemas import WebhookPayload
from marketpay.stock_client import StockRestorer

DEFAULT_METHOD = "GATEWAY"


class WebhookResult(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


class Outcome(str, Enum):
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


_OUTCOMES = {
    "PAID": Outcome.PAID,
    "FAILED": Outcome.FAILED,
    "CANCELLED": Outcome.CANCELLED,
    "CANCELED": Outcome.CANCELLED,
}

# outcome -> (payment status it leads to, payment statuses it may leave)
_TRANSITIONS = {
    Outcome.PAID: (PaymentStatus.PAID, {PaymentStatus.PENDING}),
    Outcome.FAILED: (PaymentStatus.FAILED, {PaymentStatus.PENDING}),
    Outcome.CANCELLED: (PaymentStatus.FAILED, {PaymentStatus.PENDING, PaymentStatus.PAID}),
}


def parse_outcome(status: Optional[str]) -> Optional[Outcome]:
    if not status:
        return None
    return _OUTCOMES.get(status.strip().upper())


class WebhookProcessor:
    def __init__(
        self,
        session_factory: sessionmaker,
        orders: OrderRepository,
        payments: PaymentRepository,
        stock: StockRestorer,
        webhook_secret: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_factory = session_factory
        self.orders = orders
        self.payments = payments
        self.stock = stock
        self.webhook_secret = webhook_secret
        self.clock = clock

    def authenticate(self, supplied_secret: Optional[str]) -> None:
        if not self.webhook_secret or not supplied_secret:
            log.warning("Webhook rejected: missing secret")
            raise UnauthorizedError("Missing webhook secret")

        if not secrets.compare_digest(
            supplied_secret.encode("utf-8"), self.webhook_secret.encode("utf-8")
        ):
            log.warning("Webhook rejected: invalid secret")
            raise UnauthorizedError("Invalid webhook secret")

    def process(self, payload: WebhookPayload, supplied_secret: Optional[str]) -> WebhookResult:
        self.authenticate(supplied_secret)
        return self.apply(payload)

    def apply(self, payload: WebhookPayload) -> WebhookResult:
        """Apply an already authenticated webhook. See the module docstring."""
        outcome = parse_outcome(payload.status)
        order_id = payload.order_id

        with self.session_factory() as db, db.begin():
            order = self.orders.get_for_update(db, order_id)
            if order is None:
                raise NotFoundError(f"Order not found with id: {order_id}")

            payment = self.payments.get_by_order_for_update(db, order_id)
            if payment is None:
                raise NotFoundError(f"Payment not found for order: {order_id}")

            was_pending = payment.status == PaymentStatus.PENDING
            result = self._transition(order, payment, outcome, payload)

            if payload.transaction_id and (was_pending or result is WebhookResult.APPLIED):
                self._bind_transaction_id(db, payment, payload.transaction_id)

        log.info(
            "Webhook processed",
            order_id=order_id,
            status=payload.status,
            result=result.value,
        )

        if result is WebhookResult.APPLIED and outcome in (Outcome.FAILED, Outcome.CANCELLED):
            self._restore_stock(order_id)

        return result

    def _transition(
        self,
        order: Order,
        payment: Payment,
        outcome: Optional[Outcome],
        payload: WebhookPayload,
    ) -> WebhookResult:
        if outcome is None:
            log.info("Unknown webhook status ignored", order_id=order.id, status=payload.status)
            return WebhookResult.IGNORED

        target, sources = _TRANSITIONS[outcome]
        current = payment.status

        if current == target:
            log.info("Duplicate webhook delivery", order_id=order.id, status=current.value)
            return WebhookResult.DUPLICATE

        if current not in sources:
            log.warning(
                "Webhook outcome contradicts settled payment",
                order_id=order.id,
                payment_status=current.value,
                outcome=outcome.value,
            )
            return WebhookResult.IGNORED

        now = self.clock()
        if outcome is Outcome.PAID:
            payment.status = PaymentStatus.PAID
            payment.approved_at = now
            payment.method = payload.method or DEFAULT_METHOD
            order.mark_paid()
        elif outcome is Outcome.FAILED:
            payment.status = PaymentStatus.FAILED
            order.mark_cancelled()
        else:
            if current == PaymentStatus.PAID:
                payment.refunded_at = now
            payment.status = PaymentStatus.FAILED
            if payload.cancellation_reason:
                payment.refund_reason = payload.cancellation_reason
            order.mark_cancelled(payload.cancellation_reason, now)

        return WebhookResult.APPLIED

    def _bind_transaction_id(self, db, payment: Payment, transaction_id: str) -> None:
        if payment.transaction_id == transaction_id:
            return
        other = self.payments.get_by_transaction_id(db, transaction_id)
        if other is not None and other.id != payment.id:
            log.warning(
                "Webhook transaction id already bound to another payment",
                order_id=payment.order_id,
                other_payment_id=other.id,
            )
            raise ConflictError("Transaction id already belongs to another payment")
        payment.transaction_id = transaction_id

    def _restore_stock(self, order_id: int) -> None:
        try:
            self.stock.restore_stock(order_id)
        except Exception as e:
            # Payment state is already committed; the inventory side retries.
            log.opt(exception=e).error("Stock restoration failed", order_id=order_id)
