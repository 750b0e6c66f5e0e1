"""SQLite-backed storage for posts, comments and the admin user."""

from __future__ import annotations

import itertools
import logging
import os
import sqlite3
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import BusinessRuleError

logger = logging.getLogger(__name__)

TITLE_TAKEN_MESSAGE = "Post title already taken. Try a different title."

_LIKE_TABLES = ("posts", "comments")

# Constraint names sqlite reports when a title or its slug is reused
_TITLE_CONSTRAINTS = ("posts.title", "posts.slug")

_id_counter = itertools.count(int.from_bytes(os.urandom(3), "big"))
_id_lock = threading.Lock()
_process_random = os.urandom(5)


def new_object_id() -> str:
    """Generate a 24-char hex id laid out like a BSON ObjectId.

    4-byte big-endian seconds timestamp, 5 random bytes fixed per process,
    3-byte counter.
    """
    with _id_lock:
        counter = next(_id_counter) & 0xFFFFFF
    raw = int(time.time()).to_bytes(4, "big") + _process_random + counter.to_bytes(3, "big")
    return raw.hex()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _post_from_row(row: sqlite3.Row) -> Dict[str, Any]:
    post = dict(row)
    post["published"] = bool(post["published"])
    return post


def _is_title_conflict(error: sqlite3.IntegrityError) -> bool:
    return any(name in str(error) for name in _TITLE_CONSTRAINTS)


class BlogDataStore:
    """Persistent blog storage backed by SQLite.

    Every call opens its own connection so the store can be shared between
    Gunicorn worker threads. Like counters are changed with single UPDATE
    statements; the unlike floor is part of the UPDATE condition.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, mode=0o755, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS posts (
                    _id TEXT PRIMARY KEY,
                    title TEXT NOT NULL UNIQUE,
                    content TEXT NOT NULL,
                    author TEXT NOT NULL,
                    create_date TEXT NOT NULL,
                    update_date TEXT NOT NULL,
                    published INTEGER NOT NULL DEFAULT 0,
                    likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
                    slug TEXT NOT NULL UNIQUE
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_posts_create_date "
                "ON posts(create_date)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS comments (
                    _id TEXT PRIMARY KEY,
                    post TEXT NOT NULL,
                    author TEXT NOT NULL,
                    content TEXT NOT NULL,
                    create_date TEXT NOT NULL,
                    likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
                    avatar_colour TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_comments_post "
                "ON comments(post)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    _id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL
                )
                """
            )
        logger.debug(f"Blog database ready at {self.db_path}")

    # =========================================================================
    # Posts
    # =========================================================================

    def list_posts(self, published: Optional[bool] = None) -> List[Dict[str, Any]]:
        """Return posts newest first, optionally filtered by published state."""
        query = "SELECT * FROM posts"
        params: tuple = ()
        if published is not None:
            query += " WHERE published = ?"
            params = (int(published),)
        query += " ORDER BY create_date DESC, rowid DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_post_from_row(row) for row in rows]

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE _id = ?", (post_id,)).fetchone()
        return _post_from_row(row) if row else None

    def find_post_by_title(self, title: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE title = ?", (title,)).fetchone()
        return _post_from_row(row) if row else None

    def find_post_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE slug = ?", (slug,)).fetchone()
        return _post_from_row(row) if row else None

    def create_post(self, title: str, content: str, author: str, published: bool, slug: str) -> Dict[str, Any]:
        """Insert a post with server-assigned id, timestamps and zero likes.

        Raises:
            BusinessRuleError: If another post already has this title or slug
        """
        now = _now()
        post = {
            "_id": new_object_id(),
            "title": title,
            "content": content,
            "author": author,
            "create_date": now,
            "update_date": now,
            "published": bool(published),
            "likes": 0,
            "slug": slug,
        }
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO posts (_id, title, content, author, create_date,
                                       update_date, published, likes, slug)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (post["_id"], title, content, author, now, now, int(published), 0, slug),
                )
        except sqlite3.IntegrityError as e:
            if not _is_title_conflict(e):
                raise
            logger.warning(f"Rejected duplicate post title {title!r}: {e}")
            raise BusinessRuleError(TITLE_TAKEN_MESSAGE) from e
        return post

    def update_post(self, post_id: str, title: str, content: str, author: str, published: bool,
                    slug: str) -> Optional[Dict[str, Any]]:
        """Replace the mutable fields of a post and bump update_date.

        Returns:
            The updated post, or None if no post has this id
        """
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    UPDATE posts
                    SET title = ?, content = ?, author = ?, published = ?,
                        slug = ?, update_date = ?
                    WHERE _id = ?
                    """,
                    (title, content, author, int(published), slug, _now(), post_id),
                )
        except sqlite3.IntegrityError as e:
            if not _is_title_conflict(e):
                raise
            logger.warning(f"Rejected duplicate post title {title!r} on edit: {e}")
            raise BusinessRuleError(TITLE_TAKEN_MESSAGE) from e
        if cursor.rowcount == 0:
            return None
        return self.get_post(post_id)

    def delete_post(self, post_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM posts WHERE _id = ?", (post_id,))
        return cursor.rowcount > 0

    def set_all_published(self, published: bool) -> int:
        """Flip every post in the opposite state and return how many changed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE posts SET published = ? WHERE published = ?",
                (int(published), int(not published)),
            )
        return cursor.rowcount

    # =========================================================================
    # Comments
    # =========================================================================

    def list_comments(self, post_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return comments newest first, for one post or for every post."""
        query = "SELECT * FROM comments"
        params: tuple = ()
        if post_id is not None:
            query += " WHERE post = ?"
            params = (post_id,)
        query += " ORDER BY create_date DESC, rowid DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def get_comment(self, post_id: str, comment_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM comments WHERE _id = ? AND post = ?",
                (comment_id, post_id),
            ).fetchone()
        return dict(row) if row else None

    def create_comment(self, post_id: str, author: str, content: str, avatar_colour: str) -> Dict[str, Any]:
        comment = {
            "_id": new_object_id(),
            "post": post_id,
            "author": author,
            "content": content,
            "create_date": _now(),
            "likes": 0,
            "avatar_colour": avatar_colour,
        }
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO comments (_id, post, author, content, create_date, likes, avatar_colour)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (comment["_id"], post_id, author, content, comment["create_date"], 0, avatar_colour),
            )
        return comment

    def update_comment(self, post_id: str, comment_id: str, author: str, content: str,
                       avatar_colour: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Replace a comment's author and content; avatar_colour only when given."""
        with self._connect() as conn:
            if avatar_colour is None:
                cursor = conn.execute(
                    "UPDATE comments SET author = ?, content = ? WHERE _id = ? AND post = ?",
                    (author, content, comment_id, post_id),
                )
            else:
                cursor = conn.execute(
                    "UPDATE comments SET author = ?, content = ?, avatar_colour = ? "
                    "WHERE _id = ? AND post = ?",
                    (author, content, avatar_colour, comment_id, post_id),
                )
        if cursor.rowcount == 0:
            return None
        return self.get_comment(post_id, comment_id)

    def delete_comment(self, post_id: str, comment_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM comments WHERE _id = ? AND post = ?",
                (comment_id, post_id),
            )
        return cursor.rowcount > 0

    # =========================================================================
    # Likes
    # =========================================================================

    def increment_likes(self, table: str, resource_id: str, post_id: Optional[str] = None) -> bool:
        """Atomically add one like. Returns False if nothing matched."""
        return self._adjust_likes(table, resource_id, post_id, "likes = likes + 1", "")

    def decrement_likes(self, table: str, resource_id: str, post_id: Optional[str] = None) -> bool:
        """Atomically remove one like if the count is above zero.

        Returns False if nothing matched, either because the resource does
        not exist or because it has no likes.
        """
        return self._adjust_likes(table, resource_id, post_id, "likes = likes - 1", " AND likes > 0")

    def _adjust_likes(self, table: str, resource_id: str, post_id: Optional[str],
                      assignment: str, guard: str) -> bool:
        if table not in _LIKE_TABLES:
            raise ValueError(f"Unknown table for likes: {table}")
        query = f"UPDATE {table} SET {assignment} WHERE _id = ?"
        params: list = [resource_id]
        if post_id is not None:
            query += " AND post = ?"
            params.append(post_id)
        query += guard
        with self._connect() as conn:
            cursor = conn.execute(query, params)
        return cursor.rowcount > 0

    # =========================================================================
    # Users
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE _id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return dict(row) if row else None

    def count_users(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def provision_admin(self, username: str, password_hash: str) -> str:
        """Make the given credentials the only user record.

        An existing user with the same username keeps its id (so issued
        tokens stay valid); any other user is removed.

        Returns:
            The admin user's id
        """
        with self._connect() as conn:
            row = conn.execute("SELECT _id FROM users WHERE username = ?", (username,)).fetchone()
            if row:
                user_id = row["_id"]
                conn.execute("UPDATE users SET password = ? WHERE _id = ?", (password_hash, user_id))
            else:
                user_id = new_object_id()
                conn.execute(
                    "INSERT INTO users (_id, username, password) VALUES (?, ?, ?)",
                    (user_id, username, password_hash),
                )
            removed = conn.execute("DELETE FROM users WHERE _id != ?", (user_id,)).rowcount
        if removed:
            logger.info(f"Removed {removed} previous user record(s)")
        logger.info(f"Admin user '{username}' provisioned")
        return user_id

    def delete_user(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE _id = ?", (user_id,))
        return cursor.rowcount > 0
