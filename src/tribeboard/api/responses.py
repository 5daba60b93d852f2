"""Response builders for the envelope format.

Every response, success or failure, carries the CORS headers the front-end
needs to call the endpoints cross-origin.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from tribeboard.api.models import ErrorDetail, ErrorEnvelope, SuccessEnvelope
from tribeboard.core.config import DEFAULT_CORS_ALLOW_HEADERS
from tribeboard.core.errors import STATUS_BY_CODE, ErrorCode, PipelineError

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(DEFAULT_CORS_ALLOW_HEADERS),
}


def ok(data: BaseModel | dict[str, Any] | None, status: int = 200) -> JSONResponse:
    """Build a success envelope response."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    envelope = SuccessEnvelope(data=data)
    return JSONResponse(envelope.model_dump(mode="json"), status_code=status, headers=CORS_HEADERS)


def fail(code: ErrorCode, message: str, status: int | None = None) -> JSONResponse:
    """Build a failure envelope response.

    Args:
        code: Error code from the taxonomy.
        message: Human-readable message.
        status: HTTP status; defaults to the status fixed for *code*.
    """
    envelope = ErrorEnvelope(error=ErrorDetail(code=code, message=message))
    return JSONResponse(
        envelope.model_dump(mode="json"),
        status_code=status if status is not None else STATUS_BY_CODE[code],
        headers=CORS_HEADERS,
    )


def error_response(exc: PipelineError) -> JSONResponse:
    return fail(exc.code, exc.message, exc.status)


def preflight() -> PlainTextResponse:
    """Answer a CORS pre-flight request."""
    return PlainTextResponse("ok", status_code=200, headers=CORS_HEADERS)
