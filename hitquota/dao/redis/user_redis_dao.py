"""Data Access Object (DAO) implementation for users and their monthly hit counters in Redis

Each user is a Redis hash:

    <app>:users:<user_id> = {
        user_id:      'user123',
        timezone:     'Europe/Sofia',
        hits:         '42',           # counter cache for the current local month
        reset_job_id: '9f1c...',      # pending reset job
        resets_at:    '1761948000',   # next local month start (epoch seconds)
        created_at:   '1760000000',
    }

Writes that depend on what was read (quota check, reset) run as WATCH/MULTI/EXEC
transactions, the Redis equivalent of locking the user's row.

Example:
    >>> dao = UserRedisDAO(prefix='hitquota:dev')
    >>> dao.insert(UserModel(user_id='user123', timezone='Asia/Tokyo'))
    <UserRedisDAO>
    >>> dao.hit('user123', quota=1000)
    999
"""

from dataclasses import replace
from datetime import datetime, UTC

from beartype import beartype

from hitquota.constants import DEFAULT_TIMEZONE
from hitquota.models import UserModel, ResetJobModel
from hitquota.dao.base import UserBaseDAO
from hitquota.dao.redis.mixins import RedisClientMixin
from hitquota.dao.redis.helpers import handle_redis_connection_error, to_timestamp, from_timestamp
from hitquota.dao.exceptions import UserAlreadyExistsError, UserDoesNotExistError, StaleResetJobError


class UserRedisDAO(RedisClientMixin, UserBaseDAO):
    """Redis-based Data Access Object (DAO) for users and their monthly API hit counters

    This class implements the UserBaseDAO interface using Redis as a data store.

    Attributes (see RedisClientMixin):
        redis (redis.Redis):
            Redis client used to communicate with the Redis datastore.
        keys (RedisKeySchema):
            Key schema helper for generating namespaced Redis keys.
    """

    @handle_redis_connection_error
    @beartype
    def insert(self, user: UserModel, **kwargs) -> 'UserRedisDAO':
        """Register a new user

        The existence check and the write form one transaction, so two
        concurrent registrations of the same user can't both succeed.

        Raises:
            UserAlreadyExistsError:
                If a user with the same ID already exists.
            DataStoreError:
                If a Redis connection issue occurs during the transaction.
        """
        user_key = self.keys.user_key(user.user_id)
        if user.created_at is None:
            user = replace(user, created_at=datetime.now(UTC))

        def body(pipe) -> None:
            if pipe.exists(user_key):
                raise UserAlreadyExistsError(f"User with ID '{user.user_id}' already exists.")
            pipe.multi()
            pipe.hset(user_key, mapping=self._serialize(user))
            pipe.execute()

        self._watch_transaction(user_key, body)
        return self

    @handle_redis_connection_error
    @beartype
    def get(self, user_id: str, **kwargs) -> UserModel:
        user_key = self.keys.user_key(user_id)
        data = self.redis.hgetall(user_key)
        if not data:
            raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
        return self._deserialize(user_id, data)

    @handle_redis_connection_error
    @beartype
    def update_timezone(self, user_id: str, timezone: str, **kwargs) -> 'UserRedisDAO':
        user_key = self.keys.user_key(user_id)
        if not self.redis.exists(user_key):
            raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
        self.redis.hset(user_key, 'timezone', timezone)
        return self

    @handle_redis_connection_error
    @beartype
    def hits(self, user_id: str, **kwargs) -> int:
        hits = self.redis.hget(self.keys.user_key(user_id), 'hits')
        if hits is None:
            raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
        return int(hits)

    @handle_redis_connection_error
    @beartype
    def hit(self, user_id: str, quota: int, **kwargs) -> int:
        """Consume one API hit unless the monthly quota is reached

        NOTE: the quota check and HINCRBY run under WATCH on the user's hash.
              Without it two concurrent requests could both read hits == quota - 1
              and both increment, pushing the counter past the quota:

              (lambda 1): HGET <app>:users:<user_id> hits  => quota - 1
              (lambda 2): HGET <app>:users:<user_id> hits  => quota - 1
              (lambda 1): HINCRBY <app>:users:<user_id> hits 1  => quota
              (lambda 2): HINCRBY <app>:users:<user_id> hits 1  => quota + 1

              With WATCH, the EXEC of (lambda 2) is aborted and it re-reads hits == quota.

        Returns:
            int:
                Leftover hits for this month, or -1 if the quota was already reached.

        Example:
            >>> dao.hit('user123', quota=1000)
            999
        """
        user_key = self.keys.user_key(user_id)

        def body(pipe) -> int:
            hits = pipe.hget(user_key, 'hits')
            if hits is None:
                raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
            if int(hits) >= quota:
                return -1
            pipe.multi()
            pipe.hincrby(user_key, 'hits', 1)
            (new_hits,) = pipe.execute()
            return quota - int(new_hits)

        return self._watch_transaction(user_key, body)

    @handle_redis_connection_error
    @beartype
    def set_reset_job(self, user_id: str, job: ResetJobModel, **kwargs) -> 'UserRedisDAO':
        user_key = self.keys.user_key(user_id)
        if not self.redis.exists(user_key):
            raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
        self.redis.hset(user_key, mapping={'reset_job_id': job.job_id, 'resets_at': to_timestamp(job.run_at)})
        return self

    @handle_redis_connection_error
    @beartype
    def reset_hits(self, user_id: str, job_id: str, next_job: ResetJobModel, **kwargs) -> int:
        """Zero the hit counter on behalf of the user's pending reset job

        NOTE: a timezone change replaces the pending job while the old one may
              already be running. The job ID check and the reset form one
              transaction, so a superseded job can never zero the counter.

        Raises:
            UserDoesNotExistError:
                If the user does not exist.
            StaleResetJobError:
                If `job_id` is not the user's pending reset job.
            DataStoreError:
                If Redis connectivity issues occur.
        """
        user_key = self.keys.user_key(user_id)

        def body(pipe) -> int:
            data = pipe.hgetall(user_key)
            if not data:
                raise UserDoesNotExistError(f"User with ID '{user_id}' does not exist.")
            if data.get('reset_job_id') != job_id:
                raise StaleResetJobError(f"Reset job '{job_id}' is not the pending reset job of user '{user_id}'.")
            pipe.multi()
            # fmt: off
            pipe.hset(user_key, mapping={'hits': 0,
                                         'reset_job_id': next_job.job_id,
                                         'resets_at': to_timestamp(next_job.run_at)})
            # fmt: on
            pipe.execute()
            return int(data.get('hits', 0))

        return self._watch_transaction(user_key, body)

    @staticmethod
    def _serialize(user: UserModel) -> dict[str, str | int]:
        mapping = {
            'user_id': user.user_id,
            'timezone': user.timezone,
            'hits': user.hits,
        }
        if user.reset_job_id is not None:
            mapping['reset_job_id'] = user.reset_job_id
        if user.resets_at is not None:
            mapping['resets_at'] = to_timestamp(user.resets_at)
        if user.created_at is not None:
            mapping['created_at'] = to_timestamp(user.created_at)
        return mapping

    @staticmethod
    def _deserialize(user_id: str, data: dict[str, str]) -> UserModel:
        return UserModel(
            user_id=user_id,
            timezone=data.get('timezone') or DEFAULT_TIMEZONE,
            hits=int(data.get('hits', 0)),
            reset_job_id=data.get('reset_job_id') or None,
            resets_at=from_timestamp(data.get('resets_at')),
            created_at=from_timestamp(data.get('created_at')),
        )
