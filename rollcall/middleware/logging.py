import logging
import os
import sys
import time
import uuid
from pathlib import Path
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rollcall.core.config import settings


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        os.makedirs(Path(settings.log_file).parent, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Quieten noisy libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger("rollcall")
    logger.setLevel(log_level)
    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its duration and stamps the response with X-Request-ID."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("rollcall.request")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.time()
        request.state.request_id = request_id

        self.logger.info(
            "Request started: %s %s [client: %s] [request_id: %s]",
            request.method,
            request.url.path,
            request.client.host if request.client else "unknown",
            request_id,
        )

        try:
            response = await call_next(request)
        except Exception:
            self.logger.error(
                "Request failed: %s %s [request_id: %s]",
                request.method,
                request.url.path,
                request_id,
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        self.logger.info(
            "Request completed: %s %s [status: %s] [duration: %.3fs] [request_id: %s]",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response


def add_logging_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)
