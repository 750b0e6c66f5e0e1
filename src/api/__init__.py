"""Blog API Package.

This package provides the Flask application serving the blog's REST API:
posts, comments and the single-admin login flow.

Key Components:
    create_app: Application factory (config and store are injected)

Usage:
    Start the API server:
        $ poetry run blog-api

    Or use Flask directly:
        $ flask --app "api.api:create_app()" run

    Try it with curl:
        $ curl -X POST http://localhost:5000/users/login \
               -H "Content-Type: application/json" \
               -d '{"username": "admin", "password": "secret"}'

Validation:
    Request bodies are validated against the JSON schemas in src/schema/
    before anything is written.

Logging:
    The API logs through the root logger configured by blog.main():
    - INFO: Post and comment changes, logins
    - WARNING: Rejected requests
    - ERROR: Unexpected exceptions
"""
from .api import create_app

__all__ = ["create_app"]
