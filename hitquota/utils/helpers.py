"""Helper utilities for AWS lambda functions.

Functions:
    seconds_until(moment: datetime) -> int
        Whole seconds left until a given moment (never negative)
    require_environment(*names: str) -> Callable
        Decorator: Ensure required environment variables are present
    guarantee_500_response(handler: Callable) -> Callable
        Decorator: Turn uncaught handler errors into a 500 response
    format_utc(moment: datetime) -> str
        ISO 8601 representation of a moment in UTC

Example:
    Typical usage around a Lambda handler:

        >>> @guarantee_500_response
        ... def lambda_handler(event, context):
        ...     raise RuntimeError('boom')
        >>> lambda_handler({}, None)['statusCode']
        500
"""

import os
import math
import logging
import functools
from datetime import datetime, UTC
from collections.abc import Callable

from hitquota.constants import UNKNOWN_INTERNAL_SERVER_ERROR
from hitquota.exceptions import MissingEnvironmentVariableError
from hitquota.utils.runtime import running_locally
from hitquota.utils.responses import response_500


logger = logging.getLogger(__name__)


def seconds_until(moment: datetime) -> int:
    """Return the whole number of seconds left until `moment`, rounded up.

    Used to fill in Retry-After headers. Moments in the past yield 0.

    Example:
        >>> seconds_until(datetime.now(UTC) + timedelta(minutes=1))
        60
    """
    delta = (moment - datetime.now(UTC)).total_seconds()
    return max(math.ceil(delta), 0)


def require_environment(*names: str) -> Callable:
    """Decorator ensuring required environment variables are present.

    Args:
        *names (str):
            Names of required environment variables.

    Raises:
        MissingEnvironmentVariableError:
            If any required environment variable is missing or empty.

    Example:
        >>> @require_environment('APPCONFIG_APP_ID', 'APPCONFIG_ENV_ID')
        ... def my_function():
        ...     pass
        >>> my_function()
        MissingEnvironmentVariableError: Missing required environment variables: 'APPCONFIG_APP_ID', 'APPCONFIG_ENV_ID'
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            missing = [name for name in names if not os.environ.get(name)]
            if missing:
                missing_list = ', '.join(f"'{name}'" for name in missing)
                raise MissingEnvironmentVariableError(f'Missing required environment variables: {missing_list}')
            return func(*args, **kwargs)

        return wrapper

    return decorator


def guarantee_500_response(handler: Callable) -> Callable:
    """Decorator: respond with 500 instead of crashing the lambda on uncaught errors.

    When running locally the error is re-raised, so it shows up in the SAM console.
    """

    @functools.wraps(handler)
    def wrapper(event, context):
        try:
            return handler(event, context)
        except Exception:
            if running_locally():
                raise
            logger.exception(
                'Unhandled error in lambda handler. Responding with 500.',
                extra={'event': UNKNOWN_INTERNAL_SERVER_ERROR},
            )
            return response_500(error_code=UNKNOWN_INTERNAL_SERVER_ERROR)

    return wrapper


def format_utc(moment: datetime) -> str:
    """Format an aware datetime as an ISO 8601 UTC string, e.g. '2025-11-01T00:00:00Z'."""
    return moment.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%SZ')
