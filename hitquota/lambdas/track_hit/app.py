import json
import logging

from hitquota.types import LambdaEvent, LambdaContext, LambdaResponse
from hitquota.models import HitModel
from hitquota.constants import MISSING_USER_ID, INVALID_JSON_BODY, CONFIGURATION_ERROR
from hitquota.exceptions import ConfigurationError
from hitquota.dao.redis import UserRedisDAO, HitRedisDAO, ResetJobRedisDAO
from hitquota.utils import load_config, monthly_quota, app_prefix, get_user_id, resolve_timezone, beginning_of_next_month
from hitquota.utils.helpers import guarantee_500_response, seconds_until, format_utc
from hitquota.utils.logging import log_lambda_request
from hitquota.utils.resets import ensure_user
from hitquota.utils.responses import response_200, response_400, response_401, response_429, response_500
from hitquota.lambdas.track_hit.constants import API_QUOTA_EXCEEDED, HIT_RECORDED, INVALID_ENDPOINT


logger = logging.getLogger(__name__)


@log_lambda_request
@guarantee_500_response
def lambda_handler(event: LambdaEvent, context: LambdaContext) -> LambdaResponse:
    """Handle incoming API Gateway requests to track an API hit

    This Lambda handler follows this procedure to track API hits:
    - Step 1: Extract Amazon Cognito user id from Lambda event
    - Step 2: Extract called endpoint from request body
    - Step 3: Get user record (register new users with their first reset job)
    - Step 4: Consume a hit and check if monthly quota is exceeded
    - Step 5: Record the hit
    - Step 6: Respond to user with 200 success

    HTTP responses:
        200: Hit tracked
            hits: hits used this month, remaining: leftover hits, resets_at: next reset (UTC)
        400: Bad client request
            message: invalid JSON body, non-string endpoint
        401: Unauthorized
            message: missing Cognito user id
        429: Too many requests
            headers:
                Retry-After: seconds until the user's local month starts over
            message: monthly API hit quota exceeded
        500: Internal server error
            message: server experienced an internal error

    Example:
        >>> event = {'body': '{"endpoint": "/v1/reports"}', 'requestContext': {...}}
        >>> response = lambda_handler(event, None)
        >>> response['statusCode']
        200
    """
    # 0- Get application's config
    try:
        app_config = load_config('track_hit')
        quota = monthly_quota(app_config)
    except ConfigurationError:
        logger.exception('Failed to load AppConfig for track hit function. Responding with 500.', extra={'event': CONFIGURATION_ERROR})
        return response_500(error_code=CONFIGURATION_ERROR)
    else:
        logger.debug('Assuming Redis as the backend database for users and hits')
        redis_config = {f'redis_{k}': v for k, v in app_config['redis'].items()}

    # 1- Extract user id from Cognito
    user_id = get_user_id(event)
    if user_id is None:
        logger.info("Missing 'sub' in JWT claims. Responding with 401.", extra={'event': MISSING_USER_ID})
        return response_401(message="missing 'sub' in JWT claims", error_code=MISSING_USER_ID)

    # 2- Extract called endpoint from request body
    try:
        request_body = json.loads(event.get('body') or '{}')
    except json.JSONDecodeError:
        request_body = None
    if not isinstance(request_body, dict):
        logger.info('Invalid JSON body. Responding with 400.', extra={'userId': user_id, 'event': INVALID_JSON_BODY})
        return response_400(message='invalid JSON body', error_code=INVALID_JSON_BODY)
    endpoint = request_body.get('endpoint')
    if endpoint is not None and not isinstance(endpoint, str):
        logger.info('Non-string endpoint in JSON body. Responding with 400.', extra={'userId': user_id, 'event': INVALID_ENDPOINT})
        return response_400(message="'endpoint' must be a string", error_code=INVALID_ENDPOINT)
    endpoint = endpoint or event.get('path') or '/'

    user_dao = UserRedisDAO(**redis_config, prefix=app_prefix())
    hit_dao = HitRedisDAO(**redis_config, prefix=app_prefix())
    job_dao = ResetJobRedisDAO(**redis_config, prefix=app_prefix())

    # 3- Get user record, registering new users
    user = ensure_user(user_dao, job_dao, user_id)
    resets_at = user.resets_at or beginning_of_next_month(user.timezone)

    # 4- Consume a hit and check if quota is exceeded
    leftover_hits = user_dao.hit(user_id=user_id, quota=quota)
    if leftover_hits < 0:
        local_reset = resets_at.astimezone(resolve_timezone(user.timezone))
        logger.info(
            'Monthly API hit quota exceeded. Responding with 429.',
            extra={'userId': user_id, 'quota': quota, 'event': API_QUOTA_EXCEEDED},
        )
        return response_429(
            retry_after=seconds_until(resets_at),
            error_code=API_QUOTA_EXCEEDED,
            message=f'Monthly API hit quota of {quota} exceeded. Try again after {local_reset.isoformat()}.',
        )

    # 5- Record the hit
    hit = HitModel(user_id=user_id, endpoint=endpoint)
    hit_dao.insert(hit=hit)

    # 6- Return successful response to user
    logger.info(
        'Hit recorded. Responding with 200.',
        extra={'userId': user_id, 'endpoint': endpoint, 'leftoverHits': leftover_hits, 'event': HIT_RECORDED},
    )
    return response_200(
        {
            'message': 'Hit recorded',
            'hit_id': hit.hit_id,
            'endpoint': endpoint,
            'hits': quota - leftover_hits,
            'quota': quota,
            'remaining': leftover_hits,
            'timezone': user.timezone,
            'resets_at': format_utc(resets_at),
        }
    )
