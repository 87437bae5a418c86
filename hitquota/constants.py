from enum import StrEnum


class TTL:
    """TTL durations in seconds."""

    # Hit record retention period (90 days in seconds)
    HIT_RETENTION = 7_776_000  # 60 * 60 * 24 * 90
    # Upper bound of a calendar month (31 days in seconds)
    ONE_MONTH = 2_678_400  # 60 * 60 * 24 * 31


class DefaultQuota:
    """Default quota values."""

    MONTHLY_API_HITS = 1_000  # Default monthly API hit quota for users


class Reset:
    """Reset job processing parameters."""

    BATCH_SIZE = 100  # Max due jobs picked up per reset_quotas invocation
    MAX_ATTEMPTS = 5  # Failed resets are dropped after this many attempts
    RETRY_DELAY = 60  # Base backoff in seconds (doubled on every attempt)
    OVERDUE_AFTER = 86_400  # A pending job this late (seconds) is considered lost


class Transaction:
    """Optimistic locking parameters."""

    MAX_RETRIES = 10  # WATCH retries before giving up on a contended key


# Timezone assigned to users who never set one
DEFAULT_TIMEZONE = 'UTC'


class ENV:
    """Environment variable names."""

    class App(StrEnum):
        APP_ENV = 'APP_ENV'
        APP_NAME = 'APP_NAME'
        PROJECT_ROOT = 'PROJECT_ROOT'
        AWS_SAM_LOCAL = 'AWS_SAM_LOCAL'
        LOG_LEVEL = 'LOG_LEVEL'

    class AppConfig(StrEnum):
        APP_ID = 'APPCONFIG_APP_ID'
        ENV_ID = 'APPCONFIG_ENV_ID'
        PROFILE_ID = 'APPCONFIG_PROFILE_ID'
        AGENT_URL = 'APPCONFIG_AGENT_URL'
        PROFILE_NAME = 'APPCONFIG_PROFILE_NAME'


# Error codes shared by API handlers
UNKNOWN_INTERNAL_SERVER_ERROR = 'UNKNOWN_INTERNAL_SERVER_ERROR'
MISSING_USER_ID = 'MISSING_USER_ID'
INVALID_JSON_BODY = 'INVALID_JSON_BODY'
CONFIGURATION_ERROR = 'CONFIGURATION_ERROR'
