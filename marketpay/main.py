from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from marketpay.config import Settings
from marketpay.database import Base, make_engine, make_session_factory
from marketpay.errors import ErrorKind, PaymentError
from marketpay.logger_config import configure_logger, log
from marketpay.payment_service import PaymentHistoryQuery, PaymentRequestHandler
from marketpay.refund import RefundProcessor
from marketpay.repositories import OrderRepository, PaymentRepository
from marketpay.routes import router
from marketpay.stock_client import StockClient, StockRestorer
from marketpay.webhook import WebhookProcessor


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    stock: Optional[StockRestorer] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Build the payment service with its collaborators wired explicitly.
    Anything not supplied is built from ``settings``.
    """
    settings = settings or Settings.from_env()
    configure_logger(settings.log_level, settings.log_file)

    engine = None
    if session_factory is None:
        engine = make_engine(settings.database_url)
        session_factory = make_session_factory(engine)
    if stock is None:
        stock = StockClient(settings.stock_service_url, settings.stock_service_timeout)
    clock = clock or (lambda: datetime.now(timezone.utc))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            Base.metadata.create_all(bind=engine)
        log.info("Payment service started")
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(title="Marketplace Payment Service", lifespan=lifespan)

    orders = OrderRepository()
    payments = PaymentRepository()
    app.state.settings = settings
    app.state.payment_request_handler = PaymentRequestHandler(session_factory, orders, payments)
    app.state.webhook_processor = WebhookProcessor(
        session_factory, orders, payments, stock, settings.webhook_secret, clock
    )
    app.state.refund_processor = RefundProcessor(session_factory, orders, payments, clock)
    app.state.history_query = PaymentHistoryQuery(session_factory, payments)

    app.include_router(router)

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        log.warning(
            "Request failed",
            path=request.url.path,
            kind=exc.kind.value,
            message=exc.message,
        )
        return JSONResponse(
            status_code=exc.kind.status_code,
            content={"error": exc.kind.value, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            message = f"{location}: {first.get('msg')}"
        return JSONResponse(
            status_code=ErrorKind.VALIDATION.status_code,
            content={"error": ErrorKind.VALIDATION.value, "message": message},
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
