"""Error taxonomy for schema generation.

Every domain error carries an ``ErrorKind`` so the service facade can turn it
into a tagged failure result without inspecting exception types.

Caller-facing kinds:
- InvalidInput: empty/too-long prompt or a malformed field on save
- SessionNotFound: refine/show flows on a missing or expired session
- ValidationExceeded: the model never produced a valid schema
- ServiceUnavailable: rate limit budget exhausted, transport failure
- ModelUnavailable: configured model is decommissioned, never retried
- StoreUnavailable: session store connectivity, fatal for the request
- FormNotFound: amend-from-form on a missing or foreign form
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    INVALID_INPUT = "InvalidInput"
    SESSION_NOT_FOUND = "SessionNotFound"
    VALIDATION_EXCEEDED = "ValidationExceeded"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    MODEL_UNAVAILABLE = "ModelUnavailable"
    STORE_UNAVAILABLE = "StoreUnavailable"
    FORM_NOT_FOUND = "FormNotFound"


class Prompt2FormError(Exception):
    """Base class for all domain errors."""

    kind: ErrorKind = ErrorKind.SERVICE_UNAVAILABLE


class InvalidInput(Prompt2FormError):
    kind = ErrorKind.INVALID_INPUT


class SessionNotFound(Prompt2FormError):
    kind = ErrorKind.SESSION_NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__(f"Session not found or expired: {session_id}")
        self.session_id = session_id


class FormNotFound(Prompt2FormError):
    kind = ErrorKind.FORM_NOT_FOUND

    def __init__(self, form_id: str):
        super().__init__(f"Form not found or unauthorized: {form_id}")
        self.form_id = form_id


class ValidationExceeded(Prompt2FormError):
    """Raised when every validation attempt produced an invalid schema."""

    kind = ErrorKind.VALIDATION_EXCEEDED

    def __init__(self, attempts: int, last_error: Optional["SchemaValidationError"] = None):
        super().__init__(
            f"AI output failed validation after {attempts} attempts"
            + (f": {last_error}" if last_error else "")
        )
        self.attempts = attempts
        self.last_error = last_error


class ServiceUnavailable(Prompt2FormError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class ModelUnavailable(Prompt2FormError):
    """The configured model was rejected as decommissioned or unknown."""

    kind = ErrorKind.MODEL_UNAVAILABLE


class StoreUnavailable(Prompt2FormError):
    kind = ErrorKind.STORE_UNAVAILABLE


class SchemaValidationError(Prompt2FormError):
    """A candidate schema broke a structural rule.

    ``field_index`` is None when the whole payload is unusable (not JSON, not a list).
    """

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, reason: str, field_index: Optional[int] = None):
        self.reason = reason
        self.field_index = field_index
        where = f"Invalid field at index {field_index}: " if field_index is not None else ""
        super().__init__(f"{where}{reason}")


# --- LLM adapter errors (translated by the orchestrator) ---


class LLMError(RuntimeError):
    """Base class for completion API failures."""


class RateLimited(LLMError):
    """The completion API rejected the call with HTTP 429."""


class ModelDecommissioned(LLMError):
    """The completion API no longer serves the requested model."""


class LLMTransportError(LLMError):
    """Connection, timeout or unexpected API status."""


class LLMConfigurationError(LLMError):
    """The client cannot be opened (missing API key)."""
