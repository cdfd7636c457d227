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

from app.config import settings

# Configure logging
def setup_logging():
    """Configure application logging."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FILE:
        log_dir = Path(settings.LOG_FILE).parent
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.LOG_FILE) if settings.LOG_FILE else logging.NullHandler(),
        ]
    )

    # Per-request upstream calls are logged by the ORDS client itself
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger("app")
    logger.setLevel(log_level)

    return logger

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging request details."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("app.request")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.time()

        request.state.request_id = request_id

        self.logger.info(
            f"Request started: {request.method} {request.url.path} "
            f"[client: {request.client.host if request.client else 'unknown'}] "
            f"[request_id: {request_id}]"
        )

        try:
            response = await call_next(request)

            duration = time.time() - start_time

            # The authenticated user and workspace are only known once the route dependencies ran
            user = getattr(request.state, "user", None)
            workspace = getattr(request.state, "workspace", None)
            self.logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"[status: {response.status_code}] [duration: {duration:.3f}s] "
                f"[user_id: {user.user_id if user else None}] "
                f"[scope: {(workspace.guard.current_key or None) if workspace else None}] "
                f"[request_id: {request_id}]"
            )

            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            self.logger.error(
                f"Request failed: {request.method} {request.url.path} "
                f"[error: {str(e)}] [request_id: {request_id}]",
                exc_info=True
            )
            raise

def add_logging_middleware(app: FastAPI):
    """Add request logging middleware to the FastAPI app."""
    app.add_middleware(RequestLoggingMiddleware)
