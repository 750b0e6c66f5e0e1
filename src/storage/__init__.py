"""Storage Package.

SQLite-backed persistence for posts, comments and the admin user.
"""
from .store import BlogDataStore, TITLE_TAKEN_MESSAGE, new_object_id

__all__ = ["BlogDataStore", "TITLE_TAKEN_MESSAGE", "new_object_id"]
