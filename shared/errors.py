"""
Shared error handling for the UI Rules layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class UIRulesException(Exception):
    """Base exception for UI Rules services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class DefaultEffectsUnavailableError(UIRulesException):
    """The default effects store could not be reached or returned garbage."""

    def __init__(self, message: str = "Default effects unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("DEFAULT_EFFECTS_UNAVAILABLE", message, details)


class CatalogUnavailableError(UIRulesException):
    """A remote catalog (flex features, actions) could not be loaded."""

    def __init__(self, message: str = "Catalog unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CATALOG_UNAVAILABLE", message, details)


class InvalidRenderRequestError(UIRulesException):
    """Render request payload failed validation."""

    def __init__(self, message: str = "Invalid render request", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_RENDER_REQUEST", message, details)
