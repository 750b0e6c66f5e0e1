"""Gunicorn configuration for the Blog API.

All logs are sent to stdout/stderr so they show up in `docker compose logs`.
The application's own handlers are installed by blog.main().
"""

import os
import sys

# Bind to all interfaces on port 5000 unless BLOG_BIND overrides it
bind = os.environ.get("BLOG_BIND", "0.0.0.0:5000")

# Worker configuration
# Sync workers; every request opens its own SQLite connection
workers = int(os.environ.get("BLOG_WORKERS", "2"))
worker_class = "sync"
timeout = 30
keepalive = 2

# Logging
accesslog = "-"  # Log all HTTP requests to stdout
errorlog = "-"   # Log all errors to stderr
loglevel = "info"

# %(h)s remote IP, %(t)s time, %(r)s request line, %(s)s status,
# %(b)s response size, %(a)s user agent, %(D)s request time in microseconds
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s "%(a)s" %(D)s'

capture_output = True
enable_stdio_inheritance = True


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting Gunicorn for the Blog API")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info("Gunicorn server is ready to accept connections")


def on_exit(server):
    server.log.info("Shutting down Gunicorn")


def worker_abort(worker):
    """Called when a worker receives a SIGABRT signal."""
    worker.log.error("Worker received SIGABRT signal - likely timeout")


preload_app = False
reload = False
daemon = False

# Request limits
limit_request_line = 4096
limit_request_fields = 100
limit_request_field_size = 8190

logconfig_dict = {
    'version': 1,
    'disable_existing_loggers': False,
    'loggers': {
        'gunicorn.error': {
            'level': 'INFO',
            'handlers': ['error_console'],
            'propagate': False,
            'qualname': 'gunicorn.error'
        },
        'gunicorn.access': {
            'level': 'INFO',
            'handlers': ['console'],
            'propagate': False,
            'qualname': 'gunicorn.access'
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'generic',
            'stream': sys.stdout
        },
        'error_console': {
            'class': 'logging.StreamHandler',
            'formatter': 'generic',
            'stream': sys.stderr
        },
    },
    'formatters': {
        'generic': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
            'class': 'logging.Formatter'
        }
    }
}
