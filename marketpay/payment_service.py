from typing import List
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from marketpay.auth import Caller, is_owner
from marketpay.errors import ConflictError, ForbiddenError, NotFoundError
from marketpay.logger_config import log
from marketpay.models import Payment, PaymentStatus
from marketpay.repositories import OrderRepository, PaymentRepository


def provisional_transaction_id() -> str:
    return f"PENDING-{uuid4().hex}"


class PaymentRequestHandler:
    """Opens the single payment attempt of an order on behalf of its owner."""

    def __init__(
        self,
        session_factory: sessionmaker,
        orders: OrderRepository,
        payments: PaymentRepository,
    ):
        self.session_factory = session_factory
        self.orders = orders
        self.payments = payments

    def request_payment(self, order_id: int, caller: Caller) -> Payment:
        """
        Create a PENDING payment for ``order_id``.

        Raises:
            NotFoundError: the order does not exist.
            ForbiddenError: the caller does not own the order.
            ConflictError: the order already left PENDING or already has a payment.
        """
        log.info("Payment requested", order_id=order_id, user_id=caller.user_id)

        try:
            with self.session_factory() as db, db.begin():
                order = self.orders.get_for_update(db, order_id)
                if order is None:
                    raise NotFoundError(f"Order not found with id: {order_id}")

                if not is_owner(order, caller):
                    log.warning(
                        "Payment request by non-owner",
                        order_id=order_id,
                        user_id=caller.user_id,
                    )
                    raise ForbiddenError(
                        "You are not authorized to request payment for this order"
                    )

                if (
                    order.payment_status != PaymentStatus.PENDING
                    or self.payments.get_by_order(db, order_id) is not None
                ):
                    raise ConflictError(f"Payment already processed for order: {order_id}")

                payment = self.payments.add(
                    db,
                    Payment(
                        order_id=order.id,
                        amount=order.total_amount,
                        status=PaymentStatus.PENDING,
                        transaction_id=provisional_transaction_id(),
                    ),
                )
        except IntegrityError as e:
            # A concurrent request inserted the payment first.
            raise ConflictError(f"Payment already processed for order: {order_id}") from e

        log.info("Payment created", order_id=order_id, payment_id=payment.id)
        return payment


class PaymentHistoryQuery:
    def __init__(self, session_factory: sessionmaker, payments: PaymentRepository):
        self.session_factory = session_factory
        self.payments = payments

    def history(self, caller: Caller) -> List[Payment]:
        with self.session_factory() as db:
            payments = self.payments.list_by_user(db, caller.user_id)
        log.debug("Payment history listed", user_id=caller.user_id, count=len(payments))
        return payments
