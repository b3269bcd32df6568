"""Structured logging for the service.

Plain text locally, one JSON object per line when json_logs is set. Every
HTTP request gets an id (taken from X-Request-ID or generated), which is
attached to all records logged while the request is handled.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

access_log = logging.getLogger("loadflow.access")

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Record attributes passed through `extra=` that end up in JSON entries
_EXTRA_FIELDS = (
    "method", "path", "status_code", "duration_ms",
    "converged", "iterations", "max_mismatch", "n_bus", "n_branch",
)
_QUIET_LOGGERS = ("uvicorn.access", "celery")


class JSONFormatter(logging.Formatter):
    """Serialise a record, its request id and known extras as JSON."""

    def __init__(self, extra_fields: Iterable[str] = _EXTRA_FIELDS, **kwargs: Any):
        super().__init__(**kwargs)
        self.extra_fields = tuple(extra_fields)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update({
            key: getattr(record, key)
            for key in self.extra_fields
            if getattr(record, key, None) is not None
        })
        return json.dumps(entry, default=str)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log its method, path, status and timing."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            response.headers["X-Request-ID"] = request_id
            access_log.info(
                "%s %s → %s (%.1fms)",
                request.method, request.url.path, response.status_code, elapsed_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
            )
            return response
        finally:
            request_id_var.reset(token)


def setup_logging(json_format: bool = False, level: int = logging.INFO) -> None:
    """Replace the root handlers with a single stderr handler."""
    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt=_DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
