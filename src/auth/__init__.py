"""Authentication Package.

Single-admin login, JWT issue/verification and the require_token route
decorator.
"""
from .auth import (
    LOGIN_FAILED_MESSAGE,
    UNAUTHORIZED_MESSAGE,
    authenticate_request,
    decode_token,
    extract_bearer_token,
    hash_password,
    issue_token,
    login,
    require_token,
)

__all__ = [
    "LOGIN_FAILED_MESSAGE",
    "UNAUTHORIZED_MESSAGE",
    "authenticate_request",
    "decode_token",
    "extract_bearer_token",
    "hash_password",
    "issue_token",
    "login",
    "require_token",
]
