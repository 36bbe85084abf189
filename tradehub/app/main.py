from __future__ import annotations

import dataclasses
import logging
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tradehub.app.api.v1.router import router as v1_router
from tradehub.app.core.config import get_settings
from tradehub.app.core.logging_config import configure_logging
from tradehub.services.errors import (
    ConflictError,
    DomainError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    PaymentGatewayError,
    RuleViolationError,
    SignatureError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),  # InvalidTransitionError inclus
    (ExpiredError, 410),
    (RuleViolationError, 422),
    (SignatureError, 400),
    (PaymentGatewayError, 502),
]


def _status_for(exc: DomainError) -> int:
    for klass, status in STATUS_BY_ERROR:
        if isinstance(exc, klass):
            return status
    return 400


def _details(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    # montants en chaîne, comme dans les réponses normales
    return jsonable_encoder(value, custom_encoder={Decimal: str})


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"error": exc.code, "detail": exc.message}
    if exc.details is not None:
        body["details"] = _details(exc.details)
    return JSONResponse(status_code=status, content=body)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "INVALID_INPUT", "detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="TradeHub", version="0.1.0")
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
