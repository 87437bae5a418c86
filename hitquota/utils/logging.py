"""Application-wide logging initialization

IMPORTANT: Call `initialize_logging()` in the lambda handler's `__init__.py` file
before any other logging is done, and decorate the handler with
`log_lambda_request` so every line carries the invocation it belongs to.

Logging format:
{
    "timestamp": "2025-12-26T12:00:00.000Z",
    "level": "INFO",
    "logger": "hitquota.lambdas.track_hit.app",
    "message": "Hit recorded. Responding with 200.",
    "requestId": "c6af9ac6-7b61-11e6-9a41-93e8deadbeef",
    "functionName": "hitquota-track-hit",
    "event": "HIT_RECORDED",
    "userId": "user123",
    "resetsAt": "2025-12-31T22:00:00Z"
}

Functions:
    initialize_logging()
        Route all loggers to a single JSON stdout handler at LOG_LEVEL.
    log_lambda_request(handler) -> handler
        Tag log lines emitted during an invocation with its request id.
"""

import os
import json
import logging
import logging.config
import functools
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, UTC
from typing import Any

from hitquota.constants import ENV
from hitquota.types import LambdaContext


# Attributes every LogRecord has; anything else was passed via `extra`
_RECORD_ATTRS = frozenset(logging.LogRecord('', 0, '', 0, '', None, None).__dict__) | {'message', 'asctime'}

_lambda_request: ContextVar[dict[str, str]] = ContextVar('lambda_request', default={})


def _context_field(context: LambdaContext, name: str) -> str | None:
    # Real invocations get a LambdaContext object, SAM local and tests may pass a dict
    if isinstance(context, dict):
        return context.get(name)
    return getattr(context, name, None)


def log_lambda_request(handler: Callable) -> Callable:
    """Decorator: attach the Lambda request id and function name to every log line of an invocation"""

    @functools.wraps(handler)
    def wrapper(event, context):
        fields = {
            'requestId': _context_field(context, 'aws_request_id'),
            'functionName': _context_field(context, 'function_name'),
        }
        token = _lambda_request.set({k: v for k, v in fields.items() if v is not None})
        try:
            return handler(event, context)
        finally:
            _lambda_request.reset(token)

    return wrapper


def _json_default(value: Any) -> str:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).isoformat(timespec='seconds').replace('+00:00', 'Z')
    return str(value)


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes the Lambda request and LogRecord extras"""

    def format(self, record: logging.LogRecord) -> str:
        # fmt: off
        timestamp = datetime.fromtimestamp(record.created, tz=UTC) \
                            .isoformat(timespec="milliseconds") \
                            .replace("+00:00", "Z")
        # fmt: on

        log = {
            'timestamp': timestamp,
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            **_lambda_request.get(),
        }
        log.update((key, value) for key, value in record.__dict__.items() if key not in _RECORD_ATTRS)

        if record.exc_info:
            log['exception'] = self.formatException(record.exc_info)

        return json.dumps(log, default=_json_default)


def initialize_logging() -> None:
    log_level = os.getenv(ENV.App.LOG_LEVEL, 'INFO').upper()
    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {'json': {'()': JsonFormatter}},
            'handlers': {
                'stdout': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'json',
                    'stream': 'ext://sys.stdout',
                }
            },
            'root': {'level': log_level, 'handlers': ['stdout']},
        }
    )
