"""Exceptions related to Data Access Objects (DAO) operations.

Classes:
    DAOError:
        Generic base class for DAO-related exceptions.

    DataStoreError:
        Raised when there is an error in the data store (e.g., connection issues, contention, OOM, etc.).

    UserDoesNotExistError:
        Raised when a user is not found in the data store.

    UserAlreadyExistsError:
        Raised when inserting a user that already exists.

    ResetJobNotFoundError:
        Raised when a reset job is not found in the data store.

    StaleResetJobError:
        Raised when a reset job is no longer the user's pending reset job.

Example:
    >>> from hitquota.dao.exceptions import UserDoesNotExistError
    >>> raise UserDoesNotExistError("User with ID 'user123' does not exist.")
    Traceback (most recent call last):
        ...
    hitquota.dao.exceptions.UserDoesNotExistError: User with ID 'user123' does not exist.
"""

from hitquota.exceptions import HitQuotaError


class DAOError(HitQuotaError):
    """Generic base class for DAO-related exceptions."""

    error_code = 'dao:dao_error'


class DataStoreError(DAOError):
    """Raised when the data store encounters an error.

    Examples include connection issues, timeouts, lock contention and out-of-memory failures.
    """

    error_code = 'dao:data_store_error'


class UserDoesNotExistError(DAOError):
    """Raised when a user is not found in the data store."""

    error_code = 'dao:user_does_not_exist_error'


class UserAlreadyExistsError(DAOError):
    """Raised when inserting a UserModel that already exists in the data store."""

    error_code = 'dao:user_already_exists_error'


class ResetJobNotFoundError(DAOError):
    """Raised when a reset job is not found in the data store."""

    error_code = 'dao:reset_job_not_found_error'


class StaleResetJobError(DAOError):
    """Raised when a reset job has been superseded by another pending job of the same user."""

    error_code = 'dao:stale_reset_job_error'
