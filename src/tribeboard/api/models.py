"""Pydantic response envelope models for the Tribeboard API.

Every endpoint answers with one of two shapes:

SuccessEnvelope
    ``{"success": true, "data": {...}}``
ErrorEnvelope
    ``{"success": false, "error": {"code": "...", "message": "..."}}``

Request bodies are validated by :mod:`tribeboard.core.validation` rather than
by Pydantic so each failure maps to its own error code instead of a generic
422.  The ``*Data`` models describe the ``data`` payloads.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from tribeboard.core.errors import ErrorCode


class ErrorDetail(BaseModel):
    """Machine-readable code plus a human-readable message."""

    code: ErrorCode = Field(..., description="Error code from the closed taxonomy.")
    message: str = Field(..., description="Human-readable failure description.")


class SuccessEnvelope(BaseModel):
    success: Literal[True] = True
    data: Any = Field(default=None, description="Endpoint-specific payload.")


class ErrorEnvelope(BaseModel):
    success: Literal[False] = False
    error: ErrorDetail


class UploadMoodboardImageData(BaseModel):
    """``data`` payload of a successful moodboard upload."""

    imageUrl: str = Field(..., description="Public URL of the uploaded image.")


class GeneratedImageData(BaseModel):
    url: str
    prompt: str


class GenerateImageData(BaseModel):
    """``data`` payload of a successful generation.

    Attributes:
        imageUrl: URL of the first image in the batch.
        userResultId: Echo of the request's result identifier.
        images: Every generated image with the prompt used.
    """

    imageUrl: str
    userResultId: str
    images: list[GeneratedImageData]
