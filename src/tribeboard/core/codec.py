"""Base64 payload decoding for image uploads.

Clients send images either as bare base64 or as a data URI produced by
``FileReader.readAsDataURL`` (``data:image/png;base64,iVBOR...``).  Both forms
decode to the same bytes once the framing is stripped.
"""

from __future__ import annotations

import base64
import binascii
import re

from tribeboard.core.errors import DecodeError

DATA_URI_PATTERN = re.compile(r"^data:(image/[\w.+-]+);base64,", re.IGNORECASE)


def split_data_uri(payload: str) -> tuple[str | None, str]:
    """Separate an optional data-URI prefix from the base64 body.

    Args:
        payload: Raw base64 text, optionally prefixed with
            ``data:image/<subtype>;base64,``.

    Returns:
        Tuple of ``(mime_type, base64_text)``.  ``mime_type`` is ``None`` when
        the payload carried no prefix.
    """
    payload = payload.strip()
    match = DATA_URI_PATTERN.match(payload)
    if match is None:
        return None, payload
    return match.group(1).lower(), payload[match.end() :]


def decode_payload(payload: str) -> bytes:
    """Decode a base64 image payload into raw bytes.

    Decoding is strict: characters outside the base64 alphabet or bad padding
    raise :class:`DecodeError`.  No size limit is applied here.

    Args:
        payload: Base64 text with or without a data-URI prefix.

    Returns:
        The decoded bytes.

    Raises:
        DecodeError: If the payload is not valid base64.
    """
    _, body = split_data_uri(payload)
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e
