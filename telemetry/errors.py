"""
errors.py — Error taxonomy and the standard error envelope.

Every failure a route can surface is a TelemetryError subclass. main.py
registers one exception handler that renders any of them as:

    {"error": {"code": "...", "message": "...", "details": [{field, issue}]}}

Nothing here is fatal to the process; each request is isolated.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Envelope schemas
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single field-level validation error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "click_x"
    issue: str                     # Human-readable description of the problem


class ErrorBody(BaseModel):
    """Error envelope body."""
    model_config = ConfigDict(extra="forbid")

    code: str                                      # VALIDATION_ERROR, STORAGE_ERROR, etc.
    message: str                                   # High-level error description
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """
    Standard error response format for all telemetry endpoints.

    Structure: {"error": {"code": "...", "message": "...", "details": [...]}}
    """
    model_config = ConfigDict(extra="forbid")

    error: ErrorBody


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TelemetryError(Exception):
    """Base class; subclasses pin the HTTP status and envelope code."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorBody(
                code=self.code,
                message=self.message,
                details=[ErrorDetail(**d) for d in self.details],
            )
        )


class ValidationError(TelemetryError):
    """Malformed or incomplete event payload. Client fault; the event is dropped."""

    code = "VALIDATION_ERROR"
    status_code = 400


class MappingError(TelemetryError):
    """A validated event could not be converted to a storage row."""

    code = "MAPPING_ERROR"
    status_code = 500


class StorageError(TelemetryError):
    """Write, query or connection failure against the database. Never retried."""

    code = "STORAGE_ERROR"
    status_code = 500


class NotFoundError(TelemetryError):
    code = "NOT_FOUND"
    status_code = 404
