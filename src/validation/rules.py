"""
Request Validation Rules.

Field validation for request bodies and path parameters. Rules are
declarative: each body type has a JSON Schema (see the schema package) and
a table of per-field messages. Validation is a pure function of its input:

    1. Keep only the fields the route accepts
    2. Trim string values
    3. Run the JSON Schema (Draft 7) validator
    4. Apply custom predicates (the published flag)
    5. Report one {"error": message} entry per failing field, in field order

Identifier Guard:
    Path identifiers must be 24 lowercase hex characters (the rendering of a
    12-byte object id). The comment list route also accepts the sentinel
    "all" to list comments across every post.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jsonschema import Draft7Validator
from slugify import slugify as _slugify

from errors import IdentifierError, ValidationError
from schema import COMMENT_SCHEMA, LOGIN_SCHEMA, POST_SCHEMA

logger = logging.getLogger(__name__)

# Object id validation pattern (24 hex characters - 12-byte ObjectID format)
OBJECT_ID_PATTERN = re.compile(r'^[a-f0-9]{24}$')

ALL_SENTINEL = "all"

DEFAULT_AVATAR_COLOUR = "#FFB937"

SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 200
SLUG_REPLACEMENTS = [["'", ""], ["&", " and "]]
SLUG_MESSAGE = "Post title must contain at least 3 letters or digits."

POST_FIELDS = ("title", "content", "author", "published")
COMMENT_FIELDS = ("author", "content", "avatar_colour")
LOGIN_FIELDS = ("username", "password")

POST_MESSAGES = {
    "title": "Post title field must contain between 3 and 160 characters.",
    "content": "Post content field must contain at least 3 characters.",
    "author": "Post author field must contain between 3 and 64 characters.",
    "published": "Post publish value must be either true or false.",
}

COMMENT_MESSAGES = {
    "author": "Comment author field must contain between 3 and 64 characters.",
    "content": "Comment content field must contain between 3 and 320 characters.",
    "avatar_colour": "Avatar colour must be a hex colour such as #FFB937.",
}

LOGIN_MESSAGES = {
    "username": "Username field must contain between 1 and 16 characters.",
    "password": "Password field must contain between 1 and 16 characters.",
}

_post_validator = Draft7Validator(POST_SCHEMA)
_comment_validator = Draft7Validator(COMMENT_SCHEMA)
_login_validator = Draft7Validator(LOGIN_SCHEMA)


def validate_object_id(value: Any) -> bool:
    """
    Validate that a value is a structurally valid object id.

    Args:
        value: The path segment to validate

    Returns:
        True if valid, False otherwise

    Examples:
        >>> validate_object_id("507f1f77bcf86cd799439011")
        True
        >>> validate_object_id("xyz")
        False
    """
    if not value or not isinstance(value, str):
        return False
    return bool(OBJECT_ID_PATTERN.match(value))


def require_object_id(value: Any, allow_all: bool = False) -> str:
    """Return the id unchanged or raise IdentifierError.

    Args:
        value: The path segment to check
        allow_all: Accept the "all" sentinel as well

    Raises:
        IdentifierError: If the value is neither a valid id nor an allowed sentinel
    """
    if allow_all and value == ALL_SENTINEL:
        return value
    if not validate_object_id(value):
        logger.warning(f"Invalid path parameter rejected: {str(value)[:50]!r}")
        raise IdentifierError("Invalid path parameter.")
    return value


def published_is_valid(value: Any) -> bool:
    """Check the published flag: its string form must be exactly "true" or "false".

    JSON booleans are rendered the way a JSON encoder would, so true/false
    pass while "TRUE", 1 or "yes" do not.
    """
    if isinstance(value, bool):
        value = "true" if value else "false"
    return str(value) in ("true", "false")


def parse_published(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value) == "true"


def slugify(title: str) -> str:
    """
    Derive a URL-safe slug from a post title.

    Transliterates to ASCII, lowercases, drops apostrophes, spells out "&"
    and joins words with single hyphens.

    Examples:
        >>> slugify("Hello World")
        'hello-world'
        >>> slugify("What's New?  2024!")
        'whats-new-2024'
        >>> slugify("Café & Olé")
        'cafe-and-ole'
    """
    return _slugify(title, lowercase=True, max_length=SLUG_MAX_LENGTH, replacements=SLUG_REPLACEMENTS)


def post_slug(title: str) -> str:
    """Return the slug for a post title.

    Raises:
        ValidationError: If the title yields fewer than 3 slug characters
    """
    slug = slugify(title)
    if len(slug) < SLUG_MIN_LENGTH:
        logger.warning(f"Rejected title {title!r}: slug {slug!r} is too short")
        raise ValidationError([{"error": SLUG_MESSAGE}])
    return slug


def _trim(payload: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    cleaned = {}
    for field in fields:
        if field not in payload or payload[field] is None:
            continue
        value = payload[field]
        # The published flag is matched literally
        if isinstance(value, str) and field != "published":
            value = value.strip()
        cleaned[field] = value
    return cleaned


def validate_fields(
    payload: Dict[str, Any],
    validator: Draft7Validator,
    messages: Dict[str, str],
    fields: Tuple[str, ...],
) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
    """
    Validate a request body against a schema and per-field message table.

    Args:
        payload: Raw request body
        validator: Draft7Validator for the body type
        messages: Field name to error message
        fields: Accepted fields, in reporting order

    Returns:
        Tuple of (cleaned, errors) where cleaned holds the trimmed accepted
        fields and errors is an ordered list of {"error": message} entries
    """
    cleaned = _trim(payload, fields)

    failed = set()
    for error in validator.iter_errors(cleaned):
        if error.validator == "required":
            failed.update(name for name in error.validator_value if name not in cleaned)
        elif error.path:
            failed.add(error.path[0])

    if "published" in fields and "published" in cleaned:
        if not published_is_valid(cleaned["published"]):
            failed.add("published")

    errors = [{"error": messages[field]} for field in fields if field in failed]
    return cleaned, errors


def validate_post(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a post body and return the cleaned fields.

    Raises:
        ValidationError: If any field fails
    """
    cleaned, errors = validate_fields(payload, _post_validator, POST_MESSAGES, POST_FIELDS)
    if errors:
        raise ValidationError(errors)
    cleaned["published"] = parse_published(cleaned["published"])
    return cleaned


def validate_comment(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a comment body and return the cleaned fields."""
    cleaned, errors = validate_fields(payload, _comment_validator, COMMENT_MESSAGES, COMMENT_FIELDS)
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_login(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a login body and return the cleaned credentials."""
    cleaned, errors = validate_fields(payload, _login_validator, LOGIN_MESSAGES, LOGIN_FIELDS)
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_published_filter(value: Optional[str]) -> Optional[bool]:
    """Parse the optional ?published= list filter."""
    if value is None:
        return None
    if not published_is_valid(value):
        raise ValidationError([{"error": POST_MESSAGES["published"]}])
    return parse_published(value)
