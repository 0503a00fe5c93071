from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from marketpay.auth import Caller, get_current_caller
from marketpay.errors import ValidationError
from marketpay.payment_service import PaymentHistoryQuery, PaymentRequestHandler
from marketpay.refund import RefundProcessor
from marketpay.schemas import PaymentRead, RefundRequest, WebhookAck, WebhookPayload
from marketpay.webhook import WebhookProcessor

router = APIRouter(prefix="/payments", tags=["payments"])


def get_request_handler(request: Request) -> PaymentRequestHandler:
    return request.app.state.payment_request_handler


def get_webhook_processor(request: Request) -> WebhookProcessor:
    return request.app.state.webhook_processor


def get_refund_processor(request: Request) -> RefundProcessor:
    return request.app.state.refund_processor


def get_history_query(request: Request) -> PaymentHistoryQuery:
    return request.app.state.history_query


@router.post("/{order_id}/request", response_model=PaymentRead)
def request_payment(
    order_id: int,
    caller: Caller = Depends(get_current_caller),
    handler: PaymentRequestHandler = Depends(get_request_handler),
):
    return handler.request_payment(order_id, caller)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_webhook_secret: Optional[str] = Header(None),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    # Authenticate before looking at the body.
    processor.authenticate(x_webhook_secret)

    body = await request.body()
    try:
        payload = WebhookPayload.model_validate_json(body)
    except PydanticValidationError as e:
        raise ValidationError("Invalid webhook payload") from e

    result = await run_in_threadpool(processor.apply, payload)
    return WebhookAck(result=result.value)


@router.post("/{order_id}/refund", response_model=PaymentRead)
def refund_payment(
    order_id: int,
    refund_request: RefundRequest,
    caller: Caller = Depends(get_current_caller),
    processor: RefundProcessor = Depends(get_refund_processor),
):
    return processor.refund(order_id, refund_request.refund_reason, caller)


@router.get("/history", response_model=List[PaymentRead])
def payment_history(
    caller: Caller = Depends(get_current_caller),
    query: PaymentHistoryQuery = Depends(get_history_query),
):
    return query.history(caller)
