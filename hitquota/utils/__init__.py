from hitquota.utils.config import app_env, app_name, project_root, app_prefix, load_config, monthly_quota
from hitquota.utils.helpers import seconds_until, format_utc, require_environment, guarantee_500_response
from hitquota.utils.runtime import running_locally, get_user_id
from hitquota.utils.timezones import (
    resolve_timezone,
    is_valid_timezone,
    beginning_of_month,
    beginning_of_next_month,
    month_key,
)
from hitquota.utils.logging import initialize_logging


__all__ = [
    'app_env',
    'app_name',
    'app_prefix',
    'project_root',
    'load_config',
    'monthly_quota',
    'seconds_until',
    'format_utc',
    'require_environment',
    'guarantee_500_response',
    'running_locally',
    'get_user_id',
    'resolve_timezone',
    'is_valid_timezone',
    'beginning_of_month',
    'beginning_of_next_month',
    'month_key',
    'initialize_logging',
]
