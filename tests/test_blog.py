"""Tests for the blog-api entry point."""
import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock, patch

import pytest

from blog import blog


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def test_configure_logging(tmp_path, monkeypatch, restore_root_logger):
    monkeypatch.chdir(tmp_path)

    blog.configure_logging(debug=True)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers)
    assert len(root_logger.handlers) == 2


def test_main_starts_gunicorn(tmp_path, monkeypatch, restore_root_logger):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BLOG_DB_PATH", str(tmp_path / "blog.db"))
    monkeypatch.setattr("sys.argv", ["blog-api"])

    with patch("gunicorn.app.base.BaseApplication.run") as run, \
            patch("api.create_app", return_value=MagicMock()) as create_app:
        blog.main()

    create_app.assert_called_once()
    run.assert_called_once()
