"""Logging setup and HTTP request logging middleware."""
import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

request_logger = logging.getLogger("bookswap.requests")
_configured = False


def configure_logging(level: str = None, log_file: str = None) -> None:
    """Configure the root logger once; safe to call again."""
    global _configured
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    log_file = log_file or settings.log_file
    if log_file:
        handler = RotatingFileHandler(
            log_file,
            maxBytes=settings.log_file_max_bytes,
            backupCount=settings.log_backup_count,
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configured = True


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code and response time of every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception:
            request_logger.exception("%s %s | IP: %s | unhandled error", method, path, client_ip)
            raise

        duration = time.time() - start_time
        level = logging.INFO if response.status_code < 500 else logging.ERROR
        request_logger.log(
            level,
            "%s %s | Status: %d | Time: %.3fs | IP: %s",
            method, path, response.status_code, duration, client_ip,
        )
        return response
