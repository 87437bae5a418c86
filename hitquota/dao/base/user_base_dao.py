"""Abstract base class for user data access objects (DAOs).

This interface defines the contract for accessing and managing users and
their monthly API hit counters across different storage systems (e.g., Redis,
DynamoDB, PostgreSQL).

Responsibilities:
    - Register users and their IANA timezone.
    - Maintain the per-user hit counter (counter cache) for the current local month.
    - Guard the counter against concurrent writers.
    - Track the single pending reset job allowed to zero the counter.

Example:
    Typical usage with a datastore-specific implementation:

        >>> from hitquota.dao.redis import UserRedisDAO
        >>> dao = UserRedisDAO(...)

        >>> dao.insert(UserModel(user_id='user-123', timezone='Europe/Sofia'))
        <UserRedisDAO>

        >>> dao.hit('user-123', quota=1000)
        999

        >>> dao.hits('user-123')
        1
"""

from abc import ABC, abstractmethod

from hitquota.models import UserModel, ResetJobModel


class UserBaseDAO(ABC):
    """Interface for per-user monthly API hit counter data access objects (DAOs)

    Methods:
        insert(user: UserModel, **kwargs) -> UserBaseDAO:
            Register a new user.
            Raises UserAlreadyExistsError if the user already exists.

        get(user_id: str, **kwargs) -> UserModel:
            Retrieve a user record.
            Raises UserDoesNotExistError if the user does not exist.

        update_timezone(user_id: str, timezone: str, **kwargs) -> UserBaseDAO:
            Change a user's timezone.

        hits(user_id: str, **kwargs) -> int:
            Retrieve the user's hit counter for the current local month.

        hit(user_id: str, quota: int, **kwargs) -> int:
            Atomically consume one hit unless the quota is reached.

        set_reset_job(user_id: str, job: ResetJobModel, **kwargs) -> UserBaseDAO:
            Make `job` the user's pending reset job.

        reset_hits(user_id: str, job_id: str, next_job: ResetJobModel, **kwargs) -> int:
            Zero the hit counter on behalf of the pending reset job.

    All methods raise DataStoreError on data store failures.

    Subclassing:
        Concrete implementations (e.g., UserRedisDAO) must implement all
        abstract methods with proper data store logic.
    """

    @abstractmethod
    def insert(self, user: UserModel, **kwargs) -> 'UserBaseDAO':
        """Register a new user.

        Args:
            user (UserModel):
                User record to store. The hit counter starts at `user.hits`.

            **kwargs:
                Additional keyword arguments, used by data store.

        Returns:
            UserBaseDAO: self (for method chaining)

        Raises:
            UserAlreadyExistsError:
                If a user with the same ID already exists.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def get(self, user_id: str, **kwargs) -> UserModel:
        """Retrieve a user record, including the current hit counter.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def update_timezone(self, user_id: str, timezone: str, **kwargs) -> 'UserBaseDAO':
        """Change a user's IANA timezone. The hit counter is left untouched.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def hits(self, user_id: str, **kwargs) -> int:
        """Retrieve the user's hit counter for the current local month.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def hit(self, user_id: str, quota: int, **kwargs) -> int:
        """Consume one API hit from the user's monthly quota.

        The check against `quota` and the increment happen atomically, so
        concurrent requests can never push the counter past the quota.

        Args:
            user_id (str):
                The user's unique identifier.

            quota (int):
                Monthly API hit quota.

            **kwargs:
                Additional keyword arguments, used by data store.

        Returns:
            int:
                Leftover hits for this month after consuming one hit.
                -1 if the quota was already reached (nothing was consumed).

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def set_reset_job(self, user_id: str, job: ResetJobModel, **kwargs) -> 'UserBaseDAO':
        """Make `job` the user's pending reset job.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            DataStoreError:
                If there is an error in the data store.
        """
        pass

    @abstractmethod
    def reset_hits(self, user_id: str, job_id: str, next_job: ResetJobModel, **kwargs) -> int:
        """Zero the user's hit counter and install the next pending reset job.

        Only the user's pending reset job may reset the counter. Both changes
        are applied atomically.

        Args:
            user_id (str):
                The user's unique identifier.

            job_id (str):
                ID of the reset job performing the reset.

            next_job (ResetJobModel):
                Reset job for the following local month.

            **kwargs:
                Additional keyword arguments, used by data store.

        Returns:
            int:
                Value of the hit counter before the reset.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.

            StaleResetJobError:
                If `job_id` is not the user's pending reset job.

            DataStoreError:
                If there is an error in the data store.
        """
        pass
