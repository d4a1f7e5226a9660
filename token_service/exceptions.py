"""Error types raised while issuing tokens.

Each error carries the HTTP status it maps to so the server can turn it into
a JSON response without knowing about every failure mode.
"""
from typing import Any, Dict, Optional


class TokenServiceError(Exception):
    """Base class for errors that end a single request."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class IdentityMissing(TokenServiceError):
    """Neither the headers nor a combined client id named a user."""

    status_code = 400

    def __init__(self, message: str = "User ID required: could not determine user identity"):
        super().__init__(message)


class IssuanceFailed(TokenServiceError):
    """The issuing authority refused or failed to create a token."""

    status_code = 500

    def __init__(self, details: str):
        super().__init__("Failed to create token", details=details)


class NotFound(TokenServiceError):
    status_code = 404

    def __init__(self, message: str = "Not Found"):
        super().__init__(message)


class ConfigurationError(Exception):
    """Raised when the service is started without the settings it needs."""
