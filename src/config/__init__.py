"""
Configuration Module for the Blog API.

This module provides configuration loading and management for the Blog API.
Configuration is loaded from config.yml and supports Docker secrets for the
JWT signing secret and the admin password hash.

Usage:
    >>> from config import load_config
    >>> config = load_config()
    >>> config.get("security", {}).get("rate_limit")
    40
"""
import os
import copy
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "./data/blog.db"
DEFAULT_TOKEN_LIFETIME_HOURS = 24
DEFAULT_RATE_LIMIT = 40
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60

_DEFAULT_CONFIG: Dict[str, Any] = {
    "database": {
        "path": DEFAULT_DB_PATH
    },
    "security": {
        "jwt_secret": None,
        "jwt_secret_file": "/run/secrets/jwt_secret",
        "token_lifetime_hours": DEFAULT_TOKEN_LIFETIME_HOURS,
        "rate_limit_enabled": True,
        "rate_limit": DEFAULT_RATE_LIMIT,
        "rate_limit_window_seconds": DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    },
    "admin": {
        "username": None,
        "password_hash": None,
        "password_hash_file": "/run/secrets/admin_password_hash"
    },
    "cors": {
        "enabled": False,
        "origins": []
    }
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from config.yml file.

    Args:
        config_path: Path to config.yml file. If None, looks in current directory
                    and parent directories.

    Returns:
        Dictionary containing configuration settings. Sections missing from the
        file are filled in from the defaults.

    Example:
        >>> config = load_config()
        >>> db_path = config["database"]["path"]
    """
    if config_path is None:
        # Try to find config.yml in current directory or parent directories
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            candidate = parent / "config.yml"
            if candidate.exists():
                config_path = str(candidate)
                break

        # If still not found, check the project root (where this file is located)
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            candidate = project_root / "config.yml"
            if candidate.exists():
                config_path = str(candidate)

    if config_path is None:
        logger.warning("config.yml not found, using default configuration")
        return get_default_config()

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
            if not isinstance(config, dict):
                logger.warning("Configuration root must be a mapping, using default configuration")
                return get_default_config()
            logger.info(f"Loaded configuration from {config_path}")
            return merge_with_defaults(config)
    except FileNotFoundError:
        logger.warning(f"Configuration file not found: {config_path}")
        return get_default_config()
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration when config.yml is not available.

    Returns:
        Dictionary with default configuration values
    """
    return copy.deepcopy(_DEFAULT_CONFIG)


def merge_with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay a loaded configuration on top of the defaults, one section deep."""
    merged = get_default_config()
    for section, values in config.items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def get_database_path(config: Dict[str, Any]) -> str:
    """Return the SQLite database path, honouring the BLOG_DB_PATH override."""
    env_path = os.environ.get("BLOG_DB_PATH")
    if env_path:
        return env_path
    return config.get("database", {}).get("path") or DEFAULT_DB_PATH


def get_jwt_secret(config: Dict[str, Any]) -> Optional[str]:
    """Resolve the JWT signing secret.

    Priority: config value > secret file > JWT_SECRET environment variable.

    Returns:
        The secret, or None when nothing is configured
    """
    security_config = config.get("security", {})
    secret = security_config.get("jwt_secret")
    if not secret:
        secret_file = security_config.get("jwt_secret_file")
        if secret_file:
            secret = read_secret_file(secret_file)
    if not secret:
        secret = os.environ.get("JWT_SECRET")
    return secret or None


def get_admin_credentials(config: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Return the configured admin username and password hash, if both are set."""
    admin_config = config.get("admin", {}) or {}
    username = admin_config.get("username")
    password_hash = admin_config.get("password_hash")
    if not password_hash:
        hash_file = admin_config.get("password_hash_file")
        if hash_file:
            password_hash = read_secret_file(hash_file)

    if not username or not password_hash:
        return None
    return {"username": username, "password_hash": password_hash}


def read_secret_file(filepath: str) -> Optional[str]:
    """Read a Docker secret from a file.

    Docker secrets are mounted as files in /run/secrets/ directory.
    This function reads the content of the secret file.

    Args:
        filepath: Path to the secret file

    Returns:
        Content of the secret file (stripped of whitespace), or None if file doesn't exist

    Example:
        >>> secret = read_secret_file("/run/secrets/jwt_secret")
    """
    try:
        with open(filepath, "r") as f:
            return f.read().strip()
    except FileNotFoundError:
        logger.debug(f"Secret file not found: {filepath}")
        return None
    except Exception as e:
        logger.error(f"Error reading secret file {filepath}: {e}")
        return None
