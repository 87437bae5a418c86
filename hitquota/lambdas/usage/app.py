import logging

from hitquota.types import LambdaEvent, LambdaContext, LambdaResponse
from hitquota.constants import MISSING_USER_ID, CONFIGURATION_ERROR
from hitquota.exceptions import ConfigurationError
from hitquota.dao.redis import UserRedisDAO, HitRedisDAO, ResetJobRedisDAO
from hitquota.utils import load_config, monthly_quota, app_prefix, get_user_id
from hitquota.utils import beginning_of_month, beginning_of_next_month, month_key
from hitquota.utils.helpers import guarantee_500_response, format_utc
from hitquota.utils.logging import log_lambda_request
from hitquota.utils.resets import ensure_user
from hitquota.utils.responses import response_200, response_401, response_500
from hitquota.lambdas.usage.constants import USAGE_REPORTED


logger = logging.getLogger(__name__)


def _include_hits(event: LambdaEvent) -> bool:
    params = event.get('queryStringParameters') or {}
    return str(params.get('include_hits', '')).lower() in {'1', 'true', 'yes'}


@log_lambda_request
@guarantee_500_response
def lambda_handler(event: LambdaEvent, context: LambdaContext) -> LambdaResponse:
    """Report the caller's API hit usage for their current local month

    HTTP responses:
        200: Usage report
            hits, quota, remaining, timezone, period ('YYYY-MM' in the user's timezone),
            period_start and resets_at (UTC), plus the period's hit records
            when called with ?include_hits=true
        401: Unauthorized
            message: missing Cognito user id
        500: Internal server error
    """
    # 0- Get application's config
    try:
        app_config = load_config('usage')
        quota = monthly_quota(app_config)
    except ConfigurationError:
        logger.exception('Failed to load AppConfig for usage function. Responding with 500.', extra={'event': CONFIGURATION_ERROR})
        return response_500(error_code=CONFIGURATION_ERROR)
    else:
        redis_config = {f'redis_{k}': v for k, v in app_config['redis'].items()}

    # 1- Extract user id from Cognito
    user_id = get_user_id(event)
    if user_id is None:
        logger.info("Missing 'sub' in JWT claims. Responding with 401.", extra={'event': MISSING_USER_ID})
        return response_401(message="missing 'sub' in JWT claims", error_code=MISSING_USER_ID)

    user_dao = UserRedisDAO(**redis_config, prefix=app_prefix())
    job_dao = ResetJobRedisDAO(**redis_config, prefix=app_prefix())

    # 2- Read the counter cache (registering new users with an empty counter)
    user = ensure_user(user_dao, job_dao, user_id)
    period_start = beginning_of_month(user.timezone)
    resets_at = user.resets_at or beginning_of_next_month(user.timezone)

    body = {
        'hits': user.hits,
        'quota': quota,
        'remaining': max(quota - user.hits, 0),
        'timezone': user.timezone,
        'period': month_key(user.timezone),
        'period_start': format_utc(period_start),
        'resets_at': format_utc(resets_at),
    }

    # 3- Attach this period's hit records on request
    if _include_hits(event):
        hit_dao = HitRedisDAO(**redis_config, prefix=app_prefix())
        hits = hit_dao.list_hits(user_id=user_id, since=period_start)
        body['hit_records'] = [
            {'hit_id': hit.hit_id, 'endpoint': hit.endpoint, 'created_at': format_utc(hit.created_at)} for hit in hits
        ]

    logger.info('Usage reported. Responding with 200.', extra={'userId': user_id, 'hits': user.hits, 'event': USAGE_REPORTED})
    return response_200(body)
