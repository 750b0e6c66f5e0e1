"""Blog API service package.

Exported Functions:
    main: Entry point for the blog-api console command
"""
from .blog import main

__all__ = ["main"]
