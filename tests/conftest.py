from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from marketpay.config import Settings
from marketpay.database import Base, make_engine, make_session_factory
from marketpay.main import create_app
from marketpay.models import Order, OrderStatus, Payment, PaymentStatus
from marketpay.repositories import OrderRepository, PaymentRepository

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = make_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = make_session_factory(engine)

WEBHOOK_SECRET = "whsec_test"
JWT_SECRET = "jwt_test_secret"
FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def settings():
    return Settings(
        database_url=SQLALCHEMY_DATABASE_URL,
        webhook_secret=WEBHOOK_SECRET,
        jwt_secret=JWT_SECRET,
        log_level="DEBUG",
    )


@pytest.fixture
def stock(mocker):
    return mocker.Mock()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def repos():
    return OrderRepository(), PaymentRepository()


@pytest.fixture
def client(settings, stock, clock):
    app = create_app(
        settings=settings,
        session_factory=TestingSessionLocal,
        stock=stock,
        clock=clock,
    )
    with TestClient(app) as c:
        yield c


def make_token(user_id, role="USER"):
    return jwt.encode({"sub": user_id, "role": role}, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id, role="USER"):
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


def webhook_headers(secret=WEBHOOK_SECRET):
    return {"X-Webhook-Secret": secret}


def create_order(user_id="U1", total="10000", order_id=None):
    db = TestingSessionLocal()
    order = Order(
        id=order_id,
        user_id=user_id,
        total_amount=Decimal(total),
        order_status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
    )
    db.add(order)
    db.commit()
    db.close()
    return order


def create_payment(order, status=PaymentStatus.PENDING, transaction_id="MOCK_TXN_1"):
    db = TestingSessionLocal()
    payment = Payment(
        order_id=order.id,
        amount=order.total_amount,
        status=status,
        transaction_id=transaction_id,
    )
    db.add(payment)
    if status != PaymentStatus.PENDING:
        stored = db.get(Order, order.id)
        if status == PaymentStatus.PAID:
            stored.mark_paid()
        else:
            stored.mark_cancelled()
    db.commit()
    db.close()
    return payment


def load_state(order_id):
    """Fresh copies of the order and its payment (or None)."""
    db = TestingSessionLocal()
    order = db.get(Order, order_id)
    payment = PaymentRepository().get_by_order(db, order_id)
    db.close()
    return order, payment


def snapshot(order_id):
    order, payment = load_state(order_id)
    order_part = (order.order_status, order.payment_status, order.cancellation_reason)
    if payment is None:
        return order_part, None
    return order_part, (
        payment.status,
        payment.transaction_id,
        payment.method,
        payment.refund_amount,
        payment.refund_reason,
        payment.refund_transaction_id,
    )
