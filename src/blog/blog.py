"""
Blog API Entry Point.

The blog-api console command embeds Gunicorn to serve the Flask
application built by api.create_app().

Functions:
    configure_logging(debug) -> None:
        Installs the rotating file handler and stdout handler on the root logger.
    main() -> None:
        Entry point for the console script. Loads config.yml, opens the
        store, provisions the admin user and starts Gunicorn.

Example:
    Run via console script:
        $ poetry run blog-api
        Starting Gunicorn for the Blog API
        Gunicorn server is ready to accept connections
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

logger = logging.getLogger(__name__)

LOG_FILE = "blog.log"


def configure_logging(debug: bool = False) -> None:
    """Configure global logging with a 10MB rotating file and stdout.

    Args:
        debug: Log at DEBUG instead of INFO
    """
    log_level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear any existing handlers to avoid duplicates (e.g., from gunicorn)
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    log_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3
    )
    log_handler.setLevel(log_level)
    log_handler.setFormatter(formatter)
    root_logger.addHandler(log_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def main(debug: bool = False) -> None:
    """Main entry point for the blog-api console command.

    Args:
        debug: Enable debug logging and disable the worker timeout.
               Can be set via --debug flag or BLOG_DEBUG environment variable.

    Architecture:
        blog-api -> blog.py main() -> Gunicorn -> Flask app (api.create_app)
    """
    from gunicorn.app.base import BaseApplication
    from api import create_app
    from config import load_config

    if not debug:
        debug = os.environ.get("BLOG_DEBUG", "").lower() in ("true", "1", "yes")
        if len(sys.argv) > 1 and "--debug" in sys.argv:
            debug = True

    configure_logging(debug)
    if debug:
        logger.info("Debug mode enabled: verbose logging and worker timeout disabled")

    logger.info("Loading configuration from config.yml")
    config = load_config()

    app = create_app(config=config)

    config_path = os.path.join(os.path.dirname(__file__), "..", "api", "gunicorn_config.py")

    class StandaloneApplication(BaseApplication):
        """Custom Gunicorn application for embedding within the blog-api entry point."""

        def __init__(self, app, options=None):
            self.options = options or {}
            self.application = app
            super().__init__()

        def load_config(self):
            config_file = self.options.get("config")
            if config_file:
                # Execute the config file and copy every known setting
                with open(config_file, "r") as f:
                    config_code = f.read()
                config_namespace = {}
                exec(config_code, config_namespace)
                for key, value in config_namespace.items():
                    if key in self.cfg.settings and value is not None:
                        self.cfg.set(key.lower(), value)

            if self.options.get("debug"):
                self.cfg.set("timeout", 0)
                self.cfg.set("loglevel", "debug")

        def load(self):
            return self.application

    options = {
        "config": config_path,
        "debug": debug,
    }
    StandaloneApplication(app, options).run()


# Allow running as a script for development/testing
if __name__ == "__main__":
    main()
