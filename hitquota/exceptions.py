class HitQuotaError(Exception):
    """Base exception for all application-specific errors."""

    error_code = 'app:hitquota_error'


class InvalidTimezoneError(HitQuotaError):
    """Raised when a timezone name can't be resolved to an IANA timezone."""

    error_code = 'app:invalid_timezone_error'


class ConfigurationError(HitQuotaError):
    """Base exception for all configuration errors."""

    error_code = 'config:configuration_error'


class MissingEnvironmentVariableError(ConfigurationError):
    """Raised when a required environment variable is missing."""

    error_code = 'config:missing_environment_variable_error'


class BadConfigurationError(ConfigurationError):
    """Raised when the application is configured with invalid parameters."""

    error_code = 'config:bad_configuration_error'
