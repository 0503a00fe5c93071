from decimal import Decimal

from conftest import auth_headers, create_order, load_state, webhook_headers
from marketpay.models import OrderStatus, PaymentStatus


def test_full_payment_lifecycle_integration(client, stock):
    """
    1. Owner requests payment (API -> DB)
    2. Gateway reports PAID (webhook -> DB)
    3. Admin refunds (API -> DB)
    """
    order = create_order(order_id=1, user_id="U1", total="10000")

    # --- 1. REQUEST PAYMENT ---
    response = client.post("/payments/1/request", headers=auth_headers("U1"))

    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"
    assert response.json()["amount"] == 10000

    # --- 2. WEBHOOK PAID ---
    webhook_response = client.post(
        "/payments/webhook",
        json={"orderId": 1, "status": "PAID", "transactionId": "TX1"},
        headers=webhook_headers(),
    )

    assert webhook_response.status_code == 200
    stored_order, payment = load_state(order.id)
    assert stored_order.order_status == OrderStatus.PAID
    assert stored_order.payment_status == PaymentStatus.PAID
    assert payment.status == PaymentStatus.PAID
    assert payment.transaction_id == "TX1"

    # --- 3. REFUND ---
    refund_response = client.post(
        "/payments/1/refund",
        json={"refundReason": "customer request"},
        headers=auth_headers("ADMIN-1", "ADMIN"),
    )

    assert refund_response.status_code == 200
    stored_order, payment = load_state(order.id)
    assert payment.status == PaymentStatus.FAILED
    assert payment.refund_amount == Decimal("10000")
    assert payment.refund_reason == "customer request"
    assert stored_order.order_status == OrderStatus.CANCELLED
    assert stored_order.payment_status == PaymentStatus.FAILED

    # A second refund is rejected and leaves the refund record alone.
    second = client.post(
        "/payments/1/refund",
        json={"refundReason": "again"},
        headers=auth_headers("ADMIN-1", "ADMIN"),
    )
    assert second.status_code == 409
    _, payment_after = load_state(order.id)
    assert payment_after.refund_amount == Decimal("10000")
    assert payment_after.refund_reason == "customer request"

    stock.restore_stock.assert_not_called()

    history = client.get("/payments/history", headers=auth_headers("U1")).json()
    assert len(history) == 1
    assert history[0]["status"] == "FAILED"


def test_webhook_before_payment_request_is_not_found(client, stock):
    create_order(order_id=2, user_id="U1", total="5000")

    response = client.post(
        "/payments/webhook",
        json={"orderId": 2, "status": "FAILED"},
        headers=webhook_headers(),
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Payment not found for order: 2"
    stock.restore_stock.assert_not_called()


def test_failed_payment_lifecycle_restores_stock_once(client, stock):
    order = create_order(user_id="U1", total="2500")
    client.post(f"/payments/{order.id}/request", headers=auth_headers("U1"))
    payload = {"orderId": order.id, "status": "failed", "transactionId": "TX-F"}

    first = client.post("/payments/webhook", json=payload, headers=webhook_headers())
    second = client.post("/payments/webhook", json=payload, headers=webhook_headers())

    assert first.json()["result"] == "applied"
    assert second.json()["result"] == "duplicate"
    stock.restore_stock.assert_called_once_with(order.id)

    # Failed orders cannot be paid again or refunded.
    retry = client.post(f"/payments/{order.id}/request", headers=auth_headers("U1"))
    assert retry.status_code == 409
    refund = client.post(
        f"/payments/{order.id}/refund",
        json={"refundReason": "customer request"},
        headers=auth_headers("ADMIN-1", "ADMIN"),
    )
    assert refund.status_code == 409
