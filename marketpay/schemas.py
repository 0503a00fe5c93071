from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from marketpay.models import PaymentStatus

# Amounts go out as JSON numbers rather than strings.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebhookPayload(CamelModel):
    order_id: int
    status: str
    transaction_id: Optional[str] = None
    method: Optional[str] = Field(default=None, max_length=50)
    cancellation_reason: Optional[str] = None


class RefundRequest(CamelModel):
    refund_reason: str = Field(min_length=1)


class PaymentRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    order_id: int
    amount: Money
    status: PaymentStatus
    transaction_id: Optional[str] = None
    method: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    refund_amount: Optional[Money] = None
    refunded_at: Optional[datetime] = None
    refund_transaction_id: Optional[str] = None
    refund_reason: Optional[str] = None


class WebhookAck(BaseModel):
    ok: bool = True
    result: str
