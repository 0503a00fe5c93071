"""
Order and payment stores.

Every lookup returns a fully loaded row or None; callers decide what a
missing row means. The ``*_for_update`` variants take a row lock for the
rest of the surrounding transaction. Lock the order before its payment.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketpay.models import Order, Payment


class OrderRepository:
    def get_for_update(self, db: Session, order_id: int) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id).with_for_update()
        return db.execute(stmt).scalars().first()


class PaymentRepository:
    def get_by_order(self, db: Session, order_id: int) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.order_id == order_id)
        return db.execute(stmt).scalars().first()

    def get_by_order_for_update(self, db: Session, order_id: int) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.order_id == order_id).with_for_update()
        return db.execute(stmt).scalars().first()

    def get_by_transaction_id(self, db: Session, transaction_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.transaction_id == transaction_id)
        return db.execute(stmt).scalars().first()

    def list_by_user(self, db: Session, user_id: str) -> List[Payment]:
        """Payments of every order owned by ``user_id``, newest first."""
        stmt = (
            select(Payment)
            .join(Order, Order.id == Payment.order_id)
            .where(Order.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return list(db.execute(stmt).scalars().all())

    def add(self, db: Session, payment: Payment) -> Payment:
        db.add(payment)
        db.flush()
        return payment
