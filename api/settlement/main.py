"""Booking Settlement API application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settlement.core.config import settings
from settlement.core.database import async_session_factory, engine
from settlement.core.locks import BookingLocks
from settlement.routes import bookings, refund_requests, webhooks
from settlement.schemas import RefundCalculationOut
from settlement.services.errors import ErrorKind, SettlementError
from settlement.services.review_queue import ManualReviewQueue
from settlement.services.settlement import SettlementCoordinator
from settlement.services.stripe_service import StripeGateway

logging.basicConfig(level=settings.log_level)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.REQUEST_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_CANCELLED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_ELIGIBLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NO_COMPLETED_PAYMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_AMOUNT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.GATEWAY_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.GATEWAY_REJECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.LEDGER_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.NOTIFICATION_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def build_coordinator() -> SettlementCoordinator:
    return SettlementCoordinator(async_session_factory, StripeGateway(), BookingLocks())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the settlement components; dispose the engine on shutdown."""
    coordinator = build_coordinator()
    app.state.coordinator = coordinator
    app.state.review_queue = ManualReviewQueue(coordinator)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url=f"{settings.api_prefix}/docs",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# CORS - permissive in dev, lock down in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    calculation = None
    if exc.calculation is not None:
        calculation = RefundCalculationOut.from_calculation(exc.calculation).model_dump(mode="json")
    return JSONResponse(
        status_code=ERROR_STATUS[exc.kind],
        content={
            "error": exc.kind.value,
            "message": exc.message,
            "retryable": exc.retryable,
            "calculation": calculation,
        },
    )


# Mount routes
app.include_router(bookings.router, prefix=settings.api_prefix)
app.include_router(refund_requests.router, prefix=settings.api_prefix)
app.include_router(webhooks.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}
