"""RFC 7807 *Problem Details* support for FastAPI."""
from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dlq_explorer.core.exceptions import (
    BrokerTimeout,
    BrokerUnavailable,
    InvalidEncoding,
    InvalidRequest,
    OperationCancelled,
    ReplayCancelled,
)

logger = logging.getLogger(__name__)


class ProblemDetail(BaseModel):
    """Data model that serialises to RFC 7807 JSON.

    Attributes
    ----------
    type : str
        A URI reference that identifies the problem type.
    title : str
        A short human-readable summary of the problem type.
    status : int
        The HTTP status code.
    detail : str | None
        A human-readable explanation specific to this occurrence.
    instance : str
        A URI reference that identifies the specific occurrence.
    published : int | None
        Items already sent when a replay was cut short.
    """

    type: str = Field(default="about:blank", examples=["/invalid-request"])
    title: str
    status: int = Field(..., ge=400, le=599)
    detail: Optional[str] = None
    instance: str = Field(default_factory=lambda: f"urn:uuid:{uuid4()}")
    published: Optional[int] = None


def _problem(status_code: int, title: str, type_: str, exc: Exception, **extra) -> JSONResponse:
    body = ProblemDetail(status=status_code, title=title, type=type_, detail=str(exc), **extra)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        media_type="application/problem+json",
    )


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidEncoding)
    async def invalid_encoding_handler(_: Request, exc: InvalidEncoding):
        return _problem(
            status.HTTP_400_BAD_REQUEST, "Invalid Encoding", "/invalid-encoding", exc,
            published=exc.published,
        )

    @app.exception_handler(InvalidRequest)
    async def invalid_request_handler(_: Request, exc: InvalidRequest):
        return _problem(status.HTTP_400_BAD_REQUEST, "Bad Request", "/invalid-request", exc)

    @app.exception_handler(BrokerTimeout)
    async def broker_timeout_handler(_: Request, exc: BrokerTimeout):
        logger.warning("Broker timeout: %s", exc)
        return _problem(status.HTTP_504_GATEWAY_TIMEOUT, "Broker Timeout", "/broker-timeout", exc)

    @app.exception_handler(BrokerUnavailable)
    async def broker_unavailable_handler(_: Request, exc: BrokerUnavailable):
        logger.warning("Broker unavailable: %s", exc)
        return _problem(
            status.HTTP_503_SERVICE_UNAVAILABLE, "Broker Unavailable", "/broker-unavailable", exc
        )

    @app.exception_handler(OperationCancelled)
    async def cancelled_handler(_: Request, exc: OperationCancelled):
        extra = {"published": exc.published} if isinstance(exc, ReplayCancelled) else {}
        return _problem(
            status.HTTP_503_SERVICE_UNAVAILABLE, "Cancelled", "/cancelled", exc, **extra
        )

    # Catch-all
    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        logger.exception("Unexpected error")
        return JSONResponse(
            status_code=500,
            content=ProblemDetail(
                status=500, title="Internal Server Error", detail="Unexpected error"
            ).model_dump(mode="json", exclude_none=True),
            media_type="application/problem+json",
        )
