from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from teestore.domain.enums import CouponFailureReason
from teestore.services.exceptions import (
    ConflictError,
    DiscountRejectedError,
    DomainValidationError,
    ResourceNotFoundError,
    ServiceError,
)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(DiscountRejectedError)
    async def handle_discount_rejected(_: Request, exc: DiscountRejectedError) -> JSONResponse:
        status_code = 409 if exc.reason == CouponFailureReason.usage_limit_reached else 422
        content = {"detail": exc.detail, "reason": exc.reason.value}
        if exc.shortfall is not None:
            content["shortfall"] = float(exc.shortfall)
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})
