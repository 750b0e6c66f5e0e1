"""Error taxonomy for the Blog API.

Every expected failure is raised as a BlogAPIError subclass carrying the
HTTP status it maps to. The Flask application registers a single handler
for BlogAPIError (see api.api.create_app) that renders the JSON body, so
route handlers simply raise.

Classes:
    BlogAPIError: Base class, status 500
    ValidationError: Field-level validation failures, 400
    BadRequestError: Body is not a JSON object or form, 400
    IdentifierError: Malformed path identifier, 400
    BusinessRuleError: Well-formed request that would break a domain rule, 400
    AuthError: Bad credentials or missing/invalid/expired token, 401
    NotFoundError: No matching resource, 404
"""
from typing import Any, Dict, List, Optional


class BlogAPIError(Exception):
    """Base class for errors that are reported to the client as JSON."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> Any:
        return {"error": self.message}


class ValidationError(BlogAPIError):
    """Raised when a request body fails field validation.

    Attributes:
        errors: Ordered list of {"error": message} entries, one per failing field
    """

    status_code = 400
    default_message = "Validation failed."

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        super().__init__("; ".join(e["error"] for e in errors) or None)

    def to_body(self) -> Any:
        return self.errors


class BadRequestError(BlogAPIError):
    status_code = 400
    default_message = "Request body must be a JSON object."


class IdentifierError(BlogAPIError):
    status_code = 400
    default_message = "Invalid path parameter."


class BusinessRuleError(BlogAPIError):
    status_code = 400
    default_message = "Request cannot be applied."


class AuthError(BlogAPIError):
    status_code = 401
    default_message = "Unauthorized."


class NotFoundError(BlogAPIError):
    status_code = 404
    default_message = "Resource not found."


__all__ = [
    "BlogAPIError",
    "ValidationError",
    "BadRequestError",
    "IdentifierError",
    "BusinessRuleError",
    "AuthError",
    "NotFoundError",
]
