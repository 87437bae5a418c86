import json
import logging
from dataclasses import replace

from hitquota.types import LambdaEvent, LambdaContext, LambdaResponse
from hitquota.constants import MISSING_USER_ID, INVALID_JSON_BODY, CONFIGURATION_ERROR
from hitquota.exceptions import ConfigurationError
from hitquota.dao.redis import UserRedisDAO, ResetJobRedisDAO
from hitquota.utils import load_config, app_prefix, get_user_id, is_valid_timezone
from hitquota.utils.helpers import guarantee_500_response, format_utc
from hitquota.utils.logging import log_lambda_request
from hitquota.utils.resets import ensure_user, schedule_reset, next_reset_in_timezone
from hitquota.utils.responses import response_200, response_400, response_401, response_500
from hitquota.lambdas.set_timezone.constants import MISSING_TIMEZONE, INVALID_TIMEZONE, TIMEZONE_UPDATED, TIMEZONE_UNCHANGED


logger = logging.getLogger(__name__)


@log_lambda_request
@guarantee_500_response
def lambda_handler(event: LambdaEvent, context: LambdaContext) -> LambdaResponse:
    """Handle incoming API Gateway requests to change a user's timezone

    This Lambda handler follows this procedure:
    - Step 1: Extract Amazon Cognito user id from Lambda event
    - Step 2: Extract and validate the IANA timezone from request body
    - Step 3: Get user record (register new users directly in that timezone)
    - Step 4: Update timezone and reschedule the reset job at a local month start of the new timezone
    - Step 5: Respond to user with 200 success

    The hit counter of the ongoing month is kept. The new timezone only moves
    the moment it gets reset, never into a month that was already reset.

    HTTP responses:
        200: Timezone set
            timezone: user's timezone, resets_at: next reset (UTC)
        400: Bad client request
            message: invalid JSON body, missing or unknown timezone
        401: Unauthorized
            message: missing Cognito user id
        500: Internal server error
    """
    # 0- Get application's config
    try:
        app_config = load_config('set_timezone')
    except ConfigurationError:
        logger.exception('Failed to load AppConfig for set timezone function. Responding with 500.', extra={'event': CONFIGURATION_ERROR})
        return response_500(error_code=CONFIGURATION_ERROR)
    else:
        redis_config = {f'redis_{k}': v for k, v in app_config['redis'].items()}

    # 1- Extract user id from Cognito
    user_id = get_user_id(event)
    if user_id is None:
        logger.info("Missing 'sub' in JWT claims. Responding with 401.", extra={'event': MISSING_USER_ID})
        return response_401(message="missing 'sub' in JWT claims", error_code=MISSING_USER_ID)

    # 2- Extract and validate timezone from request body
    try:
        request_body = json.loads(event.get('body') or '{}')
    except json.JSONDecodeError:
        request_body = None
    if not isinstance(request_body, dict):
        logger.info('Invalid JSON body. Responding with 400.', extra={'userId': user_id, 'event': INVALID_JSON_BODY})
        return response_400(message='invalid JSON body', error_code=INVALID_JSON_BODY)

    timezone = request_body.get('timezone')
    if not timezone:
        logger.info('Missing timezone in JSON body. Responding with 400.', extra={'userId': user_id, 'event': MISSING_TIMEZONE})
        return response_400(message="missing 'timezone' in JSON body", error_code=MISSING_TIMEZONE)
    if not isinstance(timezone, str) or not is_valid_timezone(timezone):
        logger.info(
            'Unknown timezone. Responding with 400.',
            extra={'userId': user_id, 'timezone': timezone, 'event': INVALID_TIMEZONE},
        )
        return response_400(message=f'unknown timezone {timezone!r}', error_code=INVALID_TIMEZONE)

    user_dao = UserRedisDAO(**redis_config, prefix=app_prefix())
    job_dao = ResetJobRedisDAO(**redis_config, prefix=app_prefix())

    # 3- Get user record, registering new users in the requested timezone
    user = ensure_user(user_dao, job_dao, user_id, timezone=timezone)

    # 4- Update timezone and move the pending reset job
    if user.timezone == timezone and user.reset_job_id:
        event_code = TIMEZONE_UNCHANGED
    else:
        user_dao.update_timezone(user_id=user_id, timezone=timezone)
        run_at = next_reset_in_timezone(user, timezone)
        user = schedule_reset(user_dao, job_dao, replace(user, timezone=timezone), run_at)
        event_code = TIMEZONE_UPDATED

    # 5- Return successful response to user
    logger.info('Timezone set. Responding with 200.', extra={'userId': user_id, 'timezone': timezone, 'event': event_code})
    return response_200(
        {
            'message': f'Timezone set to {timezone}',
            'timezone': user.timezone,
            'hits': user.hits,
            'resets_at': format_utc(user.resets_at),
        }
    )
