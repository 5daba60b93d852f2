"""Error taxonomy for the image submission pipeline.

Every failure the pipeline handles is an instance of :class:`PipelineError`,
which carries the wire-level error ``code`` and the HTTP ``status`` it maps to.
Internal components raise these exceptions; only the HTTP layer turns them
into response envelopes.

======================  ======  ==============================================
Code                    Status  Raised for
======================  ======  ==============================================
INVALID_REQUEST         400     missing/malformed field, bad UUID, bad base64
INVALID_FILE_TYPE       400     MIME type outside the allow-list
FILE_TOO_LARGE          400     declared or decoded size above the ceiling
INVALID_JSON            400     request body is not JSON
METHOD_NOT_ALLOWED      405     verb other than POST/OPTIONS
CONFIGURATION_ERROR     500     deployment config missing, tribe has no prompt
UPLOAD_ERROR            500     storage write failed
DELETE_ERROR            500     storage delete failed
INTERNAL_ERROR          500     lookups, dependencies, anything uncaught
======================  ======  ==============================================
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Closed set of error codes returned in failure envelopes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_JSON = "INVALID_JSON"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    DELETE_ERROR = "DELETE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_FILE_TYPE: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.INVALID_JSON: 400,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.CONFIGURATION_ERROR: 500,
    ErrorCode.UPLOAD_ERROR: 500,
    ErrorCode.DELETE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class PipelineError(Exception):
    """Base class for handled pipeline failures.

    The message is intended to be returned to the caller verbatim.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status(self) -> int:
        return STATUS_BY_CODE[self.code]


class ValidationError(PipelineError):
    """Request failed validation before any decode or upload work."""

    code = ErrorCode.INVALID_REQUEST


class InvalidFileTypeError(ValidationError):
    code = ErrorCode.INVALID_FILE_TYPE


class FileTooLargeError(ValidationError):
    code = ErrorCode.FILE_TOO_LARGE


class InvalidJSONError(ValidationError):
    code = ErrorCode.INVALID_JSON


class MethodNotAllowedError(PipelineError):
    code = ErrorCode.METHOD_NOT_ALLOWED


class DecodeError(ValidationError):
    """Payload is not valid base64 or not a decodable image."""


class ConfigurationError(PipelineError):
    code = ErrorCode.CONFIGURATION_ERROR


class NotFoundError(PipelineError):
    """Referenced record does not exist.

    Reported as INTERNAL_ERROR: a missing result means the onboarding flow
    upstream is broken, not that the caller sent a malformed request.
    """


class DependencyError(PipelineError):
    """A collaborator (database lookup, generator) failed."""


class UploadError(PipelineError):
    code = ErrorCode.UPLOAD_ERROR


class DeleteError(PipelineError):
    code = ErrorCode.DELETE_ERROR


class CollaboratorError(Exception):
    """Raised by collaborator adapters; carries the collaborator's own message.

    Pipeline components translate this into the matching :class:`PipelineError`.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
