"""
Structured JSON logging for the portal.

Every line carries the service identity, the request trace (request id,
correlation id, session user) and any `extra_fields` passed by the caller.
Bearer tokens and credential fields are redacted before a line is written.
"""

import logging
import os
import re
import sys
import json
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

def _trace_context() -> Optional[Dict[str, str]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "user_id": user_id_var.get(),
    }
    context = {k: v for k, v in context.items() if v}
    return context or None

class StructuredFormatter(logging.Formatter):
    """One JSON object per record, in the shape ELK and CloudWatch Insights index."""

    def __init__(self, service_name: str = "unknown-service", version: str = "1.0.0", environment: Optional[str] = None):
        super().__init__()
        self.service_name = service_name
        self.version = version
        self.environment = environment or os.getenv('ENVIRONMENT', 'development')

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "@timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "version": self.version,
            "location": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
                "module": record.module
            },
        }

        trace = _trace_context()
        if trace:
            log_obj["trace"] = trace

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        return json.dumps(log_obj, default=str)

class SecurityFilter(logging.Filter):
    """Filter to redact credentials from messages and structured fields"""

    SENSITIVE_FIELDS = [
        'password', 'token', 'api_key', 'secret',
        'authorization', 'cookie', 'x-auth-token'
    ]
    REDACTED = "***REDACTED***"
    # Bearer credentials and bare JWTs
    CREDENTIAL_PATTERN = re.compile(
        r"(Bearer\s+)[A-Za-z0-9\-_.=]+|eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*"
    )

    def _redact_text(self, text: str) -> str:
        return self.CREDENTIAL_PATTERN.sub(
            lambda m: f"{m.group(1)}{self.REDACTED}" if m.group(1) else self.REDACTED,
            text
        )

    def _redact_fields(self, fields: Any) -> Any:
        if isinstance(fields, dict):
            return {
                k: self.REDACTED if str(k).lower() in self.SENSITIVE_FIELDS else self._redact_fields(v)
                for k, v in fields.items()
            }
        if isinstance(fields, list):
            return [self._redact_fields(v) for v in fields]
        if isinstance(fields, str):
            return self._redact_text(fields)
        return fields

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        if hasattr(record, 'extra_fields'):
            record.extra_fields = self._redact_fields(record.extra_fields)

        return True

def setup_logging(service_name: str, level: str = "INFO", version: Optional[str] = None) -> None:
    """
    Route all logging through one redacting JSON handler on stdout

    Args:
        service_name: Name reported in every line
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        version: Service version reported in every line
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(service_name, version or os.getenv('SERVICE_VERSION', '1.0.0')))
    handler.addFilter(SecurityFilter())
    root_logger.addHandler(handler)

    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level}}
    )

class LoggerAdapter(logging.LoggerAdapter):
    """Injects the current request trace into every record"""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        extra.update(_trace_context() or {})
        kwargs['extra'] = extra
        return msg, kwargs

def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})

def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    """Set the trace fields for the current request; None leaves a field unchanged"""
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id:
        user_id_var.set(user_id)

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs start, completion and failure of every portal request
    and echoes the request id back in X-Request-ID
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get(CORRELATION_ID_HEADER)
        )

        logger = get_logger(__name__)
        fields = {'method': request.method, 'path': request.url.path}
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={'extra_fields': {**fields, 'client_host': request.client.host if request.client else None}}
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {**fields, 'duration_ms': (time.time() - start_time) * 1000}}
            )
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                **fields,
                'status_code': response.status_code,
                'duration_ms': (time.time() - start_time) * 1000
            }}
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
