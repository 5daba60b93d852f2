"""Request validation for the upload and generation endpoints.

Both validators take the raw JSON body (already parsed into Python objects)
and either return a fully decoded domain request or raise a
:class:`~tribeboard.core.errors.ValidationError` subclass.  Checks
short-circuit on the first failure and run before any storage work, so a
rejected request never has side effects.

Upload check order:

1. Required string fields present and non-empty.
2. Declared ``fileSize`` is a number within ``[0, max_bytes]``.
3. ``subcultureId`` has UUID shape.
4. ``fileType`` is in the allow-list.

The payload is decoded only after all four pass, and the decoded length is
checked against the ceiling again since the declared size is advisory.
"""

import logging
import math
import re
from collections.abc import Iterable
from typing import Any

from tribeboard.core.codec import decode_payload
from tribeboard.core.errors import (
    DecodeError,
    FileTooLargeError,
    InvalidFileTypeError,
    ValidationError,
)
from tribeboard.core.models import GenerationRequest, UploadRequest

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

_MIB = 1024 * 1024


def is_uuid(value: str) -> bool:
    """Return True if *value* has the textual shape of a UUID."""
    return bool(UUID_PATTERN.match(value))


def _format_limit(max_bytes: int) -> str:
    if max_bytes % _MIB == 0:
        return f"{max_bytes // _MIB}MB"
    return f"{max_bytes} bytes"


def _require_object(body: Any) -> dict:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require_string(body: dict, field: str, description: str = "a string") -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required and must be {description}")
    return value


def _require_uuid(value: str, field: str) -> None:
    if not is_uuid(value):
        raise ValidationError(f"{field} must be a valid UUID")


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false is not a size
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_upload_request(
    body: Any,
    *,
    max_bytes: int,
    allowed_types: Iterable[str],
) -> UploadRequest:
    """Validate and decode a moodboard upload request body.

    Args:
        body: Parsed JSON body.
        max_bytes: Size ceiling applied to the declared and decoded size.
        allowed_types: Accepted MIME types.

    Returns:
        The validated :class:`UploadRequest` with the decoded payload.

    Raises:
        ValidationError: Missing/malformed field, bad UUID, or bad base64.
        FileTooLargeError: Declared or decoded size above ``max_bytes``.
        InvalidFileTypeError: ``fileType`` outside ``allowed_types``.
    """
    body = _require_object(body)

    # --- 1. Required fields ------------------------------------------------
    subculture_id = _require_string(body, "subcultureId")
    file_name = _require_string(body, "fileName")
    file_type = _require_string(body, "fileType")
    file_data = _require_string(body, "fileData", "a base64 string")

    # --- 2. Declared size --------------------------------------------------
    file_size = body.get("fileSize")
    if not _is_number(file_size):
        raise ValidationError("fileSize is required and must be a number")
    if not math.isfinite(file_size):
        raise ValidationError("fileSize must be a finite number")
    if file_size < 0:
        raise ValidationError("fileSize must not be negative")
    if file_size > max_bytes:
        raise FileTooLargeError(f"File size exceeds {_format_limit(max_bytes)} limit.")

    # --- 3. Identifier shape -----------------------------------------------
    _require_uuid(subculture_id, "subcultureId")

    # --- 4. MIME allow-list ------------------------------------------------
    allowed = list(allowed_types)
    if file_type not in allowed:
        raise InvalidFileTypeError(
            f"Invalid file type. Allowed types: {', '.join(allowed)}."
        )

    # --- Decode and re-check the authoritative size -------------------------
    try:
        payload = decode_payload(file_data)
    except DecodeError as e:
        raise DecodeError("fileData must be a valid base64 string") from e

    if not payload:
        raise ValidationError("fileData must not be empty")
    if len(payload) > max_bytes:
        raise FileTooLargeError(f"File size exceeds {_format_limit(max_bytes)} limit.")

    if int(file_size) != len(payload):
        logger.debug(
            f"Declared size {file_size} differs from decoded size {len(payload)} "
            f"for {file_name}"
        )

    return UploadRequest(
        owner_id=subculture_id,
        file_name=file_name,
        mime_type=file_type,
        declared_size=int(file_size),
        payload=payload,
    )


def validate_generation_request(body: Any, *, max_images: int) -> GenerationRequest:
    """Validate and decode a generate-image request body.

    ``prompt`` is optional; a blank prompt counts as absent, which sends the
    request through tribe prompt resolution.  ``numberOfImages`` defaults
    to 1.

    Args:
        body: Parsed JSON body.
        max_images: Upper bound for ``numberOfImages``.

    Returns:
        The validated :class:`GenerationRequest` with the decoded selfie.

    Raises:
        ValidationError: On any malformed field or undecodable photo.
    """
    body = _require_object(body)

    result_id = _require_string(body, "userResultId")
    user_photo = _require_string(body, "userPhoto", "a base64 string")
    _require_uuid(result_id, "userResultId")

    prompt = body.get("prompt")
    if prompt is not None and not isinstance(prompt, str):
        raise ValidationError("prompt must be a string")
    explicit_prompt = prompt.strip() if prompt and prompt.strip() else None

    image_count = body.get("numberOfImages")
    if image_count is None:
        image_count = 1
    elif isinstance(image_count, bool) or not isinstance(image_count, int):
        raise ValidationError("numberOfImages must be an integer")
    if image_count < 1 or image_count > max_images:
        raise ValidationError(f"numberOfImages must be between 1 and {max_images}")

    try:
        photo = decode_payload(user_photo)
    except DecodeError as e:
        raise DecodeError("userPhoto must be a valid base64 encoded image") from e
    if not photo:
        raise ValidationError("userPhoto must be a valid base64 encoded image")

    return GenerationRequest(
        result_id=result_id,
        photo=photo,
        explicit_prompt=explicit_prompt,
        image_count=image_count,
    )
