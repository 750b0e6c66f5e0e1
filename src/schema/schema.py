"""
Centralized JSON Schema Loading Module.

This module is responsible for loading the request-body JSON schemas from
disk and exposing them as module-level constants for use throughout the
application.

Design Principles:
    1. Load Once: Schemas are loaded at module import time, not on every request
    2. Fail Fast: Missing or invalid schemas cause immediate import failure
    3. Single Source: All schema access goes through this module

File Location:
    Schemas are expected to be in the same directory as this module
    (src/schema/). The path is resolved using __file__ so it works
    regardless of the current working directory.

Error Handling:
    - FileNotFoundError: Schema file doesn't exist at expected path
    - json.JSONDecodeError: Schema file contains invalid JSON syntax
"""
import json
from pathlib import Path
from typing import Dict, Any

# Locate schema directory
SCHEMA_DIR = Path(__file__).parent


def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """
    Load a JSON schema file from the schema directory.

    Args:
        schema_filename: Name of the JSON schema file (e.g., "post_schema.json")

    Returns:
        Parsed JSON schema as a dictionary, ready for use with jsonschema library

    Raises:
        FileNotFoundError: If the schema file doesn't exist at the expected location.
        json.JSONDecodeError: If the schema file exists but contains invalid JSON.

    Example:
        >>> schema = _load_schema("post_schema.json")
        >>> schema["$schema"]
        "http://json-schema.org/draft-07/schema#"
    """
    schema_path = SCHEMA_DIR / schema_filename

    if not schema_path.exists():
        raise FileNotFoundError(
            f"Schema file not found: {schema_path}. "
            f"Expected location: {SCHEMA_DIR}"
        )

    try:
        with open(schema_path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        # Re-raise with the name of the file that failed
        raise json.JSONDecodeError(
            f"Invalid JSON in schema file {schema_filename}: {e.msg}",
            e.doc,
            e.pos
        ) from e


# Post body: title, content, author, published
POST_SCHEMA = _load_schema("post_schema.json")

# Comment body: author, content, optional avatar_colour
COMMENT_SCHEMA = _load_schema("comment_schema.json")

# Login body: username, password
LOGIN_SCHEMA = _load_schema("login_schema.json")

