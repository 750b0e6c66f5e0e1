"""
Authorization Gate for the Blog API.

The blog has a single admin user. Logging in with the admin credentials
returns a signed JWT that is valid for a fixed window (24 hours by default).
Mutating post and comment routes are wrapped with require_token, which
expects the token in an "Authorization: Bearer <token>" header.

Token Format:
    HS256 JWT with claims:
        id:  the admin user's id
        iat: issue time
        exp: iat + lifetime

Security Considerations:
    - Passwords are checked with werkzeug.security.check_password_hash, which
      compares digests in constant time
    - Unknown usernames are checked against a dummy hash so both failure
      paths cost the same
    - Login failures never say which credential was wrong
    - The embedded user id must still resolve to a stored user, so deleting
      the user revokes every token issued to it
    - Expiry is absolute; there is no refresh
"""
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthError
from validation import validate_login

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
DEFAULT_TOKEN_LIFETIME_HOURS = 24

LOGIN_FAILED_MESSAGE = "Authentication failed."
UNAUTHORIZED_MESSAGE = "Unauthorized."

_dummy_hash: Optional[str] = None


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return generate_password_hash(password)


def _get_dummy_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = generate_password_hash("not-the-admin-password")
    return _dummy_hash


def issue_token(user_id: str, secret: str, lifetime_hours: float = DEFAULT_TOKEN_LIFETIME_HOURS,
                now: Optional[datetime] = None) -> str:
    """Create a signed token embedding the user id.

    Args:
        user_id: Id of the authenticated user
        secret: HMAC signing secret
        lifetime_hours: Validity window from the issue time
        now: Issue time (defaults to the current UTC time)

    Returns:
        The encoded JWT
    """
    issued_at = now or datetime.now(timezone.utc)
    claims = {
        "id": user_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=lifetime_hours),
    }
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    """Verify a token's signature and expiry and return its claims.

    Raises:
        AuthError: If the token is malformed, tampered with or expired
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"require": ["exp", "id"]})
    except jwt.ExpiredSignatureError as e:
        logger.warning("Rejected expired token")
        raise AuthError(UNAUTHORIZED_MESSAGE) from e
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid token: {e}")
        raise AuthError(UNAUTHORIZED_MESSAGE) from e
    return claims


def extract_bearer_token(header: Optional[str]) -> str:
    """Return the token from an Authorization header value.

    Raises:
        AuthError: If the header is missing or not a Bearer credential
    """
    if not header:
        raise AuthError(UNAUTHORIZED_MESSAGE)
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError(UNAUTHORIZED_MESSAGE)
    return token


def login(store, payload: Dict[str, Any], secret: str,
          lifetime_hours: float = DEFAULT_TOKEN_LIFETIME_HOURS) -> str:
    """Check admin credentials and issue a token.

    Args:
        store: BlogDataStore holding the user record
        payload: Request body with username and password
        secret: JWT signing secret
        lifetime_hours: Token validity window

    Returns:
        Signed token

    Raises:
        ValidationError: If the body fails field validation
        AuthError: If the username is unknown or the password is wrong
    """
    credentials = validate_login(payload)
    username = credentials["username"]

    user = store.get_user_by_username(username)
    if user is None:
        check_password_hash(_get_dummy_hash(), credentials["password"])
        logger.warning(f"Login failed for unknown user {username[:16]!r}")
        raise AuthError(LOGIN_FAILED_MESSAGE)

    if not check_password_hash(user["password"], credentials["password"]):
        logger.warning(f"Login failed for user {username!r}: wrong password")
        raise AuthError(LOGIN_FAILED_MESSAGE)

    logger.info(f"User {username!r} logged in")
    return issue_token(user["_id"], secret, lifetime_hours)


def authenticate_request() -> str:
    """Resolve the current request's bearer token to a stored user id.

    Raises:
        AuthError: If the token is missing, invalid, expired, or names a user
            that no longer exists
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    claims = decode_token(token, current_app.config["JWT_SECRET"])

    store = current_app.config["BLOG_STORE"]
    user_id = claims["id"]
    if not isinstance(user_id, str) or store.get_user(user_id) is None:
        logger.warning("Rejected token for a user that no longer exists")
        raise AuthError(UNAUTHORIZED_MESSAGE)
    return user_id


def require_token(view: Callable) -> Callable:
    """Route decorator: reject the request with 401 unless it carries a valid token.

    The authenticated user id is stored in flask.g.user_id.
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.user_id = authenticate_request()
        return view(*args, **kwargs)

    return wrapper
