"""Validation Package.

Declarative field validation for request bodies (JSON Schema plus per-field
messages), the path identifier guard and slug derivation.
"""
from .rules import (
    ALL_SENTINEL,
    DEFAULT_AVATAR_COLOUR,
    parse_published,
    post_slug,
    published_is_valid,
    require_object_id,
    slugify,
    validate_comment,
    validate_fields,
    validate_login,
    validate_object_id,
    validate_post,
    validate_published_filter,
)

__all__ = [
    "ALL_SENTINEL",
    "DEFAULT_AVATAR_COLOUR",
    "parse_published",
    "post_slug",
    "published_is_valid",
    "require_object_id",
    "slugify",
    "validate_comment",
    "validate_fields",
    "validate_login",
    "validate_object_id",
    "validate_post",
    "validate_published_filter",
]
