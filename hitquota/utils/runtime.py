"""Runtime utilities

Functions:
    running_locally() -> bool:
        True if lambda is running in local SAM, False otherwise.

    get_user_id(event) -> str | None:
        Extract the Amazon Cognito user id from an API Gateway event.

Example:
    >>> from hitquota.utils.runtime import running_locally
    >>> os.environ['APP_ENV'] = 'local'
    >>> running_locally()
    True
    >>> os.environ['APP_ENV'] = 'dev'
    >>> running_locally()
    False
"""

import os
import random

from hitquota.types import LambdaEvent
from hitquota.constants import ENV


def running_locally() -> bool:
    """Return True if running in SAM local invoke/api, False otherwise."""
    env = os.getenv(ENV.App.APP_ENV, '').lower()
    return env == 'local' or os.getenv(ENV.App.AWS_SAM_LOCAL) == 'true'


def get_user_id(event: LambdaEvent) -> str | None:
    claims = (event.get('requestContext') or {}).get('authorizer', {}).get('claims', {})
    user_id = claims.get('sub')

    # sam local api doesn't run the Cognito authorizer, so there are no claims
    # to read a user id from. Hand out a throwaway id instead.
    if user_id is None and running_locally():
        return f'local{random.randint(100, 999)}'  # noqa: S311
    return user_id
