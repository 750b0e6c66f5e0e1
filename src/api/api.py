"""
Blog API - Flask Application.

This module implements the Flask application serving the blog's REST API:
posts, comments and a single-admin login flow.

Architecture:
    Every request follows the same pipeline:
    1. Per-IP rate limiting (before_request)
    2. Route match
    3. Path-parameter identity guard (24-char hex object ids)
    4. Bearer token check on mutating routes
    5. Field validation against the JSON schemas in src/schema/
    6. Store call (BlogDataStore, SQLite)
    7. JSON response

Routes:
    GET    /                                        service banner
    GET    /health                                  health check
    POST   /users/login                             issue token
    GET    /posts                                   list posts
    POST   /posts                          (token)  create post
    PUT    /posts/publish-all              (token)  publish every draft
    PUT    /posts/unpublish-all            (token)  unpublish every post
    GET    /posts/<id>                              read post
    PUT    /posts/<id>                     (token)  edit post
    DELETE /posts/<id>                     (token)  delete post
    PUT    /posts/<id>/like                         like post
    PUT    /posts/<id>/unlike                       unlike post
    GET    /posts/<id>/comments                     list comments ("all" lists every post's)
    POST   /posts/<id>/comments                     create comment
    GET    /posts/<id>/comments/<cid>               read comment
    PUT    /posts/<id>/comments/<cid>      (token)  edit comment
    DELETE /posts/<id>/comments/<cid>      (token)  delete comment
    PUT    /posts/<id>/comments/<cid>/like          like comment
    PUT    /posts/<id>/comments/<cid>/unlike        unlike comment

Error Handling:
    Route handlers raise errors.BlogAPIError subclasses; one error handler
    renders them:
    - 200: Success (create included, no 201)
    - 400: Validation failure (array of {"error": msg}), invalid id,
           business-rule violation, malformed body
    - 401: Authentication failure
    - 404: Resource does not exist
    - 429: Rate limit exceeded
    - 500: Unexpected exception, logged with traceback

Logging Strategy:
    - INFO: State changes (post created, edited, deleted; login)
    - WARNING: Rejected requests (rate limit, bad id, failed auth)
    - ERROR: Unexpected exceptions
"""
import logging
import secrets
import threading
import time
from collections import defaultdict
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from auth import authenticate_request, login, require_token
from config import get_admin_credentials, get_database_path, get_jwt_secret, load_config
from errors import BadRequestError, BlogAPIError, BusinessRuleError, NotFoundError
from storage import BlogDataStore, TITLE_TAKEN_MESSAGE
from validation import (
    ALL_SENTINEL,
    DEFAULT_AVATAR_COLOUR,
    post_slug,
    require_object_id,
    validate_comment,
    validate_post,
    validate_published_filter,
)

# Logging is configured in blog.py main() - this module uses the configured logger
logger = logging.getLogger(__name__)

API_TITLE = "Blog API"
API_VERSION = "1.0.0"

POST_NOT_FOUND = "Post not found."
COMMENT_NOT_FOUND = "Comment not found."

# =============================================================================
# Security: Rate Limiting and Response Headers
# =============================================================================

# Request rate limiting per IP (in-memory, per worker process)
_request_rate_cache: Dict[str, list] = defaultdict(list)
_request_rate_lock = threading.Lock()
REQUEST_RATE_LIMIT = 40  # Max requests per IP per window
REQUEST_RATE_WINDOW_SECONDS = 60  # 1 minute window

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def clear_rate_limit_caches() -> None:
    """
    Clear all rate limiting caches.

    This is primarily useful for testing to ensure clean state between tests.
    Should not be called in production code.
    """
    with _request_rate_lock:
        _request_rate_cache.clear()


def check_request_rate_limit(client_ip: str, limit: int = REQUEST_RATE_LIMIT,
                             window_seconds: float = REQUEST_RATE_WINDOW_SECONDS) -> bool:
    """
    Check if request rate limit has been exceeded for a client IP.

    Args:
        client_ip: The client's IP address
        limit: Max requests allowed in the window
        window_seconds: Sliding window length

    Returns:
        True if limit exceeded (should reject), False if allowed
    """
    cutoff_time = time.time() - window_seconds

    with _request_rate_lock:
        # Clean up old timestamps
        _request_rate_cache[client_ip] = [
            ts for ts in _request_rate_cache[client_ip] if ts > cutoff_time
        ]
        return len(_request_rate_cache[client_ip]) >= limit


def record_request(client_ip: str, window_seconds: float = REQUEST_RATE_WINDOW_SECONDS) -> None:
    """Record a request for rate limiting."""
    with _request_rate_lock:
        _request_rate_cache[client_ip].append(time.time())

        # Periodic cleanup of stale IPs to prevent memory growth
        if len(_request_rate_cache) > 10000:
            cutoff_time = time.time() - window_seconds
            stale_ips = [
                ip for ip, timestamps in _request_rate_cache.items()
                if not timestamps or max(timestamps) < cutoff_time
            ]
            for ip in stale_ips:
                del _request_rate_cache[ip]


def get_client_ip() -> str:
    """Client address: X-Real-IP, then the first X-Forwarded-For hop, then the socket."""
    return (
        request.headers.get("X-Real-IP")
        or request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or request.remote_addr
        or "unknown"
    )


def sanitize_error_message(error: Exception) -> str:
    """
    Sanitize an error message to prevent information leakage.

    Removes potentially sensitive information like file paths, credentials,
    SQL and internal implementation details.

    Args:
        error: The exception to sanitize

    Returns:
        A safe, generic error message
    """
    error_str = str(error).lower()

    if "database is locked" in error_str or "busy" in error_str:
        return "Database busy"
    if "no such table" in error_str or "sqlite" in error_str or "database" in error_str:
        return "Database error"
    if "token" in error_str or "credential" in error_str or "secret" in error_str:
        return "Authentication error"
    if "timeout" in error_str or "timed out" in error_str:
        return "Request timed out"
    if "permission" in error_str or "read-only" in error_str:
        return "Storage not writable"

    return "Service temporarily unavailable"


def get_request_body() -> Dict[str, Any]:
    """Return the request body as a dict, from JSON or a url-encoded form.

    Raises:
        BadRequestError: If the body is neither a JSON object nor a form
    """
    if request.is_json:
        body = request.get_json(silent=True)
    else:
        body = request.form.to_dict()
    if not isinstance(body, dict):
        raise BadRequestError()
    return body


def _store() -> BlogDataStore:
    return current_app.config["BLOG_STORE"]


def _existing_post(post_id: str) -> Dict[str, Any]:
    post = _store().get_post(post_id)
    if post is None:
        raise NotFoundError(POST_NOT_FOUND)
    return post


def _title_holder(store: BlogDataStore, title: str, slug: str) -> Optional[Dict[str, Any]]:
    """Return the post already using this title or the slug derived from it."""
    return store.find_post_by_title(title) or store.find_post_by_slug(slug)


def create_app(config: Optional[Dict[str, Any]] = None, store: Optional[BlogDataStore] = None) -> Flask:
    """Factory function to create and configure the Flask application.

    Args:
        config: Optional configuration dictionary (if None, will be loaded from config.yml)
        store: Optional BlogDataStore (if None, one is opened at the configured path)

    Returns:
        Configured Flask application instance

    Example:
        >>> app = create_app()
        >>> # Use app with test client or run with Gunicorn
    """
    app = Flask(__name__)

    if config is None:
        config = load_config()

    # Configure CORS from config.yml
    cors_config = config.get("cors", {})
    if cors_config.get("enabled", False):
        cors_origins = cors_config.get("origins", [])
        if cors_origins:
            CORS(app, origins=cors_origins)
            logger.info(f"CORS enabled for origins: {cors_origins}")
        else:
            logger.warning("CORS enabled but no origins configured")
    else:
        logger.info("CORS is disabled in configuration")

    if store is None:
        store = BlogDataStore(get_database_path(config))
    app.config["BLOG_STORE"] = store

    # =================================================================
    # Security Configuration
    # =================================================================
    security_config = config.get("security", {})

    app.config["RATE_LIMIT_ENABLED"] = security_config.get("rate_limit_enabled", True)
    app.config["RATE_LIMIT"] = security_config.get("rate_limit", REQUEST_RATE_LIMIT)
    app.config["RATE_LIMIT_WINDOW"] = security_config.get("rate_limit_window_seconds", REQUEST_RATE_WINDOW_SECONDS)
    app.config["TOKEN_LIFETIME_HOURS"] = security_config.get("token_lifetime_hours", 24)

    jwt_secret = get_jwt_secret(config)
    if not jwt_secret:
        jwt_secret = secrets.token_urlsafe(32)
        logger.warning("No JWT secret configured; using a random secret (tokens will not survive a restart)")
    app.config["JWT_SECRET"] = jwt_secret

    admin = get_admin_credentials(config)
    if admin:
        store.provision_admin(admin["username"], admin["password_hash"])
    elif store.count_users() == 0:
        logger.warning("No admin user provisioned; login will always fail")

    # =================================================================
    # Request hooks and error handlers
    # =================================================================

    @app.before_request
    def enforce_rate_limit():
        if not current_app.config.get("RATE_LIMIT_ENABLED", True) or request.endpoint == "health_check":
            return None

        client_ip = get_client_ip()
        limit = current_app.config["RATE_LIMIT"]
        window = current_app.config["RATE_LIMIT_WINDOW"]
        if check_request_rate_limit(client_ip, limit, window):
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return jsonify({"error": "Too many requests, please try again later."}), 429

        record_request(client_ip, window)
        return None

    @app.after_request
    def add_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.errorhandler(BlogAPIError)
    def handle_api_error(error: BlogAPIError):
        return jsonify(error.to_body()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(f"Unexpected error handling {request.method} {request.path}: {error}", exc_info=True)
        return jsonify({
            "error": "Internal server error",
            "details": sanitize_error_message(error)
        }), 500

    # =================================================================
    # Index and health
    # =================================================================

    @app.route("/", methods=["GET"])
    def index():
        """Service banner."""
        return jsonify({"title": API_TITLE, "version": API_VERSION}), 200

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint for monitoring and load balancers.

        Not subject to rate limiting.

        Example:
            $ curl http://localhost:5000/health
            {"status": "healthy"}
        """
        return jsonify({"status": "healthy"}), 200

    # =================================================================
    # Users
    # =================================================================

    @app.route("/users/login", methods=["POST"])
    def log_in():
        """Exchange the admin credentials for a bearer token.

        Request Format:
            POST /users/login
            Content-Type: application/json

            {"username": "admin", "password": "secret"}

        Success Response (200):
            {"token": "<jwt>"}

        Error Response (400 - Validation Failed):
            [{"error": "Username field must contain between 1 and 16 characters."}]

        Error Response (401):
            {"error": "Authentication failed."}
        """
        token = login(
            _store(),
            get_request_body(),
            current_app.config["JWT_SECRET"],
            current_app.config["TOKEN_LIFETIME_HOURS"],
        )
        return jsonify({"token": token}), 200

    # =================================================================
    # Posts
    # =================================================================

    @app.route("/posts", methods=["GET"])
    def list_posts():
        """List posts, newest first.

        Query Parameters:
            published: optional "true" or "false" filter

        An empty collection is returned as an empty list with status 200.
        """
        published = validate_published_filter(request.args.get("published"))
        return jsonify(_store().list_posts(published=published)), 200

    @app.route("/posts", methods=["POST"])
    @require_token
    def create_post():
        """Create a post.

        Request Format:
            POST /posts
            Authorization: Bearer <token>
            Content-Type: application/json

            {"title": "Hello World", "content": "abc", "author": "Jane", "published": "true"}

        Success Response (200): the stored post, including _id, slug,
        create_date, update_date and likes.

        Error Responses:
            400: field validation failure, or the title is already taken
            401: missing or invalid token
        """
        fields = validate_post(get_request_body())
        slug = post_slug(fields["title"])
        store = _store()

        if _title_holder(store, fields["title"], slug):
            logger.warning(f"Post title already taken: {fields['title']!r}")
            raise BusinessRuleError(TITLE_TAKEN_MESSAGE)

        post = store.create_post(
            title=fields["title"],
            content=fields["content"],
            author=fields["author"],
            published=fields["published"],
            slug=slug,
        )
        logger.info(f"Created post: id={post['_id']}, title='{post['title']}'")
        return jsonify(post), 200

    @app.route("/posts/publish-all", methods=["PUT"])
    @require_token
    def publish_all_posts():
        """Publish every unpublished post; 400 when there is nothing to publish."""
        modified = _store().set_all_published(True)
        if modified == 0:
            raise BusinessRuleError("No posts to publish.")
        logger.info(f"Published {modified} post(s)")
        return jsonify({"message": "Posts published successfully.", "modified": modified}), 200

    @app.route("/posts/unpublish-all", methods=["PUT"])
    @require_token
    def unpublish_all_posts():
        modified = _store().set_all_published(False)
        if modified == 0:
            raise BusinessRuleError("No posts to unpublish.")
        logger.info(f"Unpublished {modified} post(s)")
        return jsonify({"message": "Posts unpublished successfully.", "modified": modified}), 200

    @app.route("/posts/<post_id>", methods=["GET"])
    def get_post(post_id: str):
        require_object_id(post_id)
        return jsonify(_existing_post(post_id)), 200

    @app.route("/posts/<post_id>", methods=["PUT"])
    def edit_post(post_id: str):
        """Replace a post's title, content, author and published flag.

        The slug is regenerated from the new title and update_date is bumped.
        The new title must not belong to a different post.

        Returns:
            200 with the updated post; 400, 401 or 404 otherwise
        """
        require_object_id(post_id)
        authenticate_request()
        fields = validate_post(get_request_body())
        slug = post_slug(fields["title"])
        store = _store()

        _existing_post(post_id)
        holder = _title_holder(store, fields["title"], slug)
        if holder and holder["_id"] != post_id:
            logger.warning(f"Post title already taken on edit: {fields['title']!r}")
            raise BusinessRuleError(TITLE_TAKEN_MESSAGE)

        post = store.update_post(
            post_id,
            title=fields["title"],
            content=fields["content"],
            author=fields["author"],
            published=fields["published"],
            slug=slug,
        )
        if post is None:
            raise NotFoundError(POST_NOT_FOUND)
        logger.info(f"Edited post: id={post_id}")
        return jsonify(post), 200

    @app.route("/posts/<post_id>", methods=["DELETE"])
    def delete_post(post_id: str):
        """Delete a post. Its comments are left in place."""
        require_object_id(post_id)
        authenticate_request()
        if not _store().delete_post(post_id):
            raise NotFoundError(POST_NOT_FOUND)
        logger.info(f"Deleted post: id={post_id}")
        return jsonify({"message": "Post deleted successfully."}), 200

    @app.route("/posts/<post_id>/like", methods=["PUT"])
    def like_post(post_id: str):
        require_object_id(post_id)
        if not _store().increment_likes("posts", post_id):
            raise NotFoundError(POST_NOT_FOUND)
        return jsonify(_existing_post(post_id)), 200

    @app.route("/posts/<post_id>/unlike", methods=["PUT"])
    def unlike_post(post_id: str):
        """Remove one like; 400 if the post has none.

        The floor check is part of the store's UPDATE, so concurrent unlikes
        cannot push the count below zero.
        """
        require_object_id(post_id)
        store = _store()
        if not store.decrement_likes("posts", post_id):
            _existing_post(post_id)
            raise BusinessRuleError("Post has no likes.")
        return jsonify(_existing_post(post_id)), 200

    # =================================================================
    # Comments
    # =================================================================

    def _existing_comment(post_id: str, comment_id: str) -> Dict[str, Any]:
        comment = _store().get_comment(post_id, comment_id)
        if comment is None:
            raise NotFoundError(COMMENT_NOT_FOUND)
        return comment

    @app.route("/posts/<post_id>/comments", methods=["GET"])
    def list_comments(post_id: str):
        """List a post's comments, newest first.

        The path segment "all" lists the comments of every post, including
        comments left behind by deleted posts.
        """
        require_object_id(post_id, allow_all=True)
        scope = None if post_id == ALL_SENTINEL else post_id
        return jsonify(_store().list_comments(scope)), 200

    @app.route("/posts/<post_id>/comments", methods=["POST"])
    def create_comment(post_id: str):
        """Add a comment to an existing post.

        Request Format:
            POST /posts/<post_id>/comments
            Content-Type: application/json

            {"author": "Jane", "content": "Nice post", "avatar_colour": "#FFB937"}

        avatar_colour is optional and defaults to #FFB937.

        Returns:
            200 with the stored comment, 400 on validation failure, 404 if the
            post does not exist
        """
        require_object_id(post_id)
        fields = validate_comment(get_request_body())
        _existing_post(post_id)

        comment = _store().create_comment(
            post_id,
            author=fields["author"],
            content=fields["content"],
            avatar_colour=fields.get("avatar_colour", DEFAULT_AVATAR_COLOUR),
        )
        logger.info(f"Created comment: id={comment['_id']}, post={post_id}")
        return jsonify(comment), 200

    @app.route("/posts/<post_id>/comments/<comment_id>", methods=["GET"])
    def get_comment(post_id: str, comment_id: str):
        require_object_id(post_id)
        require_object_id(comment_id)
        return jsonify(_existing_comment(post_id, comment_id)), 200

    @app.route("/posts/<post_id>/comments/<comment_id>", methods=["PUT"])
    def edit_comment(post_id: str, comment_id: str):
        require_object_id(post_id)
        require_object_id(comment_id)
        authenticate_request()
        fields = validate_comment(get_request_body())

        comment = _store().update_comment(
            post_id,
            comment_id,
            author=fields["author"],
            content=fields["content"],
            avatar_colour=fields.get("avatar_colour"),
        )
        if comment is None:
            raise NotFoundError(COMMENT_NOT_FOUND)
        logger.info(f"Edited comment: id={comment_id}, post={post_id}")
        return jsonify(comment), 200

    @app.route("/posts/<post_id>/comments/<comment_id>", methods=["DELETE"])
    def delete_comment(post_id: str, comment_id: str):
        require_object_id(post_id)
        require_object_id(comment_id)
        authenticate_request()
        if not _store().delete_comment(post_id, comment_id):
            raise NotFoundError(COMMENT_NOT_FOUND)
        logger.info(f"Deleted comment: id={comment_id}, post={post_id}")
        return jsonify({"message": "Comment deleted successfully."}), 200

    @app.route("/posts/<post_id>/comments/<comment_id>/like", methods=["PUT"])
    def like_comment(post_id: str, comment_id: str):
        require_object_id(post_id)
        require_object_id(comment_id)
        if not _store().increment_likes("comments", comment_id, post_id=post_id):
            raise NotFoundError(COMMENT_NOT_FOUND)
        return jsonify(_existing_comment(post_id, comment_id)), 200

    @app.route("/posts/<post_id>/comments/<comment_id>/unlike", methods=["PUT"])
    def unlike_comment(post_id: str, comment_id: str):
        require_object_id(post_id)
        require_object_id(comment_id)
        if not _store().decrement_likes("comments", comment_id, post_id=post_id):
            _existing_comment(post_id, comment_id)
            raise BusinessRuleError("Comment has no likes.")
        return jsonify(_existing_comment(post_id, comment_id)), 200

    return app


# Note: Do not create a module-level app instance.
# Always use create_app() so the store and configuration are injected.
