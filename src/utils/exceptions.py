"""
Error taxonomy for itinerary generation and its collaborators.

ConfigurationError is the only one meant to surface as an operational alert;
ModelError and ParseError are routine and are absorbed by the fallback path.
"""

from typing import List, Optional


class TripPlannerError(Exception):
    """Base class for all service errors"""


class ConfigurationError(TripPlannerError):
    """No candidate model could be initialized; AI generation is unavailable for this process."""


class ModelError(TripPlannerError):
    """The generative model call failed (transport, timeout, provider error, empty output)."""

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


class RetryableModelError(ModelError):
    """Transient failure; the call may be attempted again after a backoff."""


class EmptyResponseError(ModelError):
    """The provider answered but no text could be recovered from the response envelope."""


class ParseError(TripPlannerError):
    """Model output could not be turned into a valid itinerary, even after repair."""

    def __init__(self, message: str, raw_text: Optional[str] = None, preview_chars: int = 500):
        super().__init__(message)
        self.raw_text = raw_text
        if raw_text and len(raw_text) > preview_chars:
            self.raw_preview = raw_text[:preview_chars] + "…"
        else:
            self.raw_preview = raw_text


class TripValidationError(TripPlannerError):
    """A trip request failed precondition checks before the pipeline was invoked."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Invalid trip request")
        self.errors = errors


class AuthError(TripPlannerError):
    """Identity token could not be verified."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code
