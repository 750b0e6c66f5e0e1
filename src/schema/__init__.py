"""Schema Package - JSON Schema Loading.

This package provides centralized loading and access to the JSON schemas
used to validate request bodies of the Blog API.

Schemas are stored as JSON files in src/schema/, loaded once when this
package is imported and exposed as constants.

Available Schemas:
    POST_SCHEMA: Body of POST /posts and PUT /posts/<id>
    COMMENT_SCHEMA: Body of comment create/edit routes
    LOGIN_SCHEMA: Body of POST /users/login

Usage:
    from schema import POST_SCHEMA
    Draft7Validator(POST_SCHEMA).iter_errors(body)
"""
from .schema import POST_SCHEMA, COMMENT_SCHEMA, LOGIN_SCHEMA

__all__ = ["POST_SCHEMA", "COMMENT_SCHEMA", "LOGIN_SCHEMA"]
