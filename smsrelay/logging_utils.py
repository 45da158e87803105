import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from smsrelay.metrics import record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter to ensure ISO-8601 timestamps and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if 'request_id' not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record['request_id'] = req_id


def setup_logging(log_level: str = "INFO"):
    """
    Setup structured JSON logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger = logging.getLogger()
    logger.setLevel(log_level.upper())

    # Remove existing handlers
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        '%(ts)s %(level)s %(name)s %(message)s'
    )
    json_handler.setFormatter(formatter)

    logger.addHandler(json_handler)

    # Route Uvicorn through the same JSON handler
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(json_handler)
        uvicorn_logger.propagate = False

    # Our middleware logs every request already
    logging.getLogger("uvicorn.access").disabled = True

    # The Twilio client logs full request bodies at INFO
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)

    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests in structured JSON format.

    Log keys:
    - ts, level, request_id
    - method, path, status, latency_ms

    For POST /messages, also includes:
    - message_id: id of the stored message (when one was created)
    - result: created, validation_error, persistence_error, auth_error
    - dispatched: whether the gateway accepted the SMS
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_ctx.set(request_id)
        start_time = time.time()
        logger = logging.getLogger("smsrelay.requests")

        try:
            try:
                response = await call_next(request)
            except Exception:
                # Rendered as a 500 by the outer exception handler
                self._record(request, request_id, 500, start_time, logger)
                raise

            response.headers["X-Request-ID"] = request_id
            self._record(request, request_id, response.status_code, start_time, logger)
            return response
        finally:
            request_id_ctx.reset(token)

    def _record(self, request: Request, request_id: str, status: int, start_time: float, logger: logging.Logger) -> None:
        latency_seconds = time.time() - start_time

        # Exclude /metrics to avoid self-instrumentation noise
        if request.url.path != "/metrics":
            record_http_request(
                method=request.method,
                path=request.url.path,
                status=status,
                latency_seconds=latency_seconds
            )

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": status,
            "latency_ms": round(latency_seconds * 1000, 2),
        }

        if hasattr(request.state, "submission_log_data"):
            log_data.update(request.state.submission_log_data)

        if status >= 500:
            logger.error("Request completed", extra=log_data)
        elif status >= 400:
            logger.warning("Request completed", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)


def log_submission_data(request: Request, message_id: str = None, dispatched: bool = False, result: str = None):
    """
    Attach submission-specific logging data to the request state.
    This data will be included in the request log by the middleware.

    Args:
        request: FastAPI request object
        message_id: Id of the stored message, if one was created
        dispatched: Whether the SMS gateway accepted the message
        result: Processing result (created, validation_error, persistence_error, auth_error)
    """
    submission_data = {}

    if message_id is not None:
        submission_data["message_id"] = message_id

    if result is not None:
        submission_data["result"] = result

    submission_data["dispatched"] = dispatched

    request.state.submission_log_data = submission_data
