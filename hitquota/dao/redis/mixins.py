"""Redis mixin providing shared client initialization and connectivity checks.

Responsibilities:
    - Initialized Redis client
    - Healthcheck Redis client

Classes:
    - RedisClientMixin: Base mixin to inject Redis key management, client setup & healthcheck.

Example:
    Typical usage with a DAO implementation:

        >>> class UserRedisDAO(RedisClientMixin, UserBaseDAO):
        ...     pass
        ...
        >>> dao = UserRedisDAO(prefix="hitquota:prod")
        >>> dao._healthcheck()
        True
"""

import logging
from typing import Optional
from collections.abc import Callable

import redis

from hitquota.constants import Transaction
from hitquota.dao.redis.redis_key_schema import RedisKeySchema
from hitquota.dao.exceptions import DataStoreError


logger = logging.getLogger(__name__)


class RedisClientMixin:
    """Mixin Redis client setup and health check for Redis-backed DAOs.

    Attributes:
        redis (redis.Redis):
            Active Redis client instance used by subclasses.

        keys (RedisKeySchema):
            Helper class for generating namespaced Redis key names.

    Methods:
        _healthcheck(raise_error: bool = True) -> bool:
            Ping Redis to verify connectivity.
            Optionally raise a DataStoreError if unreachable.

        _watch_transaction(key: str, body: Callable) -> Any:
            Run a WATCH/MULTI/EXEC transaction, retrying on concurrent writes.
    """

    def __init__(
        self,
        redis_host: Optional[str] = 'localhost',
        redis_port: Optional[int] = 6379,
        redis_db: Optional[int] = 0,
        redis_decode_responses: Optional[bool] = True,
        redis_username: Optional[str] = None,
        redis_password: Optional[str] = None,
        redis_client: Optional[redis.Redis] = None,
        prefix: Optional[str] = None,
    ):
        """Initialize a Redis-based DAO

        The option is given to either use an existing Redis client instance or
        create one via the appropriate Redis connection parameters. Several DAOs
        can share one client (and its connection pool) this way.

        Args:
            redis_host (Optional[str]):
                Hostname of the Redis server. Defaults to 'localhost'.

            redis_port (Optional[int]):
                Redis server port. Defaults to 6379.

            redis_db (Optional[int]):
                Redis database index. Defaults to 0.

            redis_decode_responses (Optional[bool]):
                If True, decodes Redis responses. Defaults to True.

            redis_username (Optional[str]):
                Username for Redis authentication (if required).

            redis_password (Optional[str]):
                Password for Redis authentication (if required).

            redis_client (Optional[redis.Redis]):
                Pre-initialized Redis client. If None, a new client is created.

            prefix (Optional[str]):
                Namespace prefix for all Redis keys, e.g. 'app:env'.

        Raises:
            DataStoreError:
                If Redis healthcheck fails (connectivity issues).
        """
        if redis_client is None:
            redis_client = redis.Redis(
                host=redis_host,
                port=int(redis_port),
                db=int(redis_db),
                decode_responses=redis_decode_responses,
                username=redis_username,
                password=redis_password,
            )

        self.redis = redis_client
        self.keys = RedisKeySchema(prefix=prefix)

        self._healthcheck()

    def _healthcheck(self, raise_error: bool = True) -> bool:
        """PING Redis to healthcheck connectivity

        Args:
            raise_error (bool):
                If True, raises DataStoreError on failure. Defaults to True.

        Returns:
            bool:
                True if Redis is reachable, False otherwise (only if raise_error=False).

        Raises:
            DataStoreError:
                If Redis connection cannot be established and raise_error=True.
        """
        try:
            self.redis.ping()
        except redis.exceptions.ConnectionError as e:
            if raise_error:
                info = self.redis.connection_pool.connection_kwargs
                redis_host = info.get('host')
                redis_port = info.get('port')
                redis_db = info.get('db')
                raise DataStoreError(
                    f"Can't connect to Redis at {redis_host}:{redis_port}/{redis_db}. Check the provided configuration parameters."
                ) from e
            return False
        else:
            return True

    def _watch_transaction[T](self, key: str, body: Callable[[redis.client.Pipeline], T]) -> T:
        """Run `body` as an optimistic transaction guarded by WATCH on `key`.

        `body` receives a pipeline in immediate mode (reads execute right away).
        It switches to buffered mode with `pipe.multi()`, queues its writes and
        calls `pipe.execute()`. If `key` changes in between, Redis aborts the
        transaction and `body` runs again from scratch.

        Raises:
            DataStoreError:
                If the transaction keeps getting aborted by concurrent writers.
        """
        with self.redis.pipeline(transaction=True) as pipe:
            for attempt in range(1, Transaction.MAX_RETRIES + 1):
                try:
                    pipe.watch(key)
                    return body(pipe)
                except redis.exceptions.WatchError:
                    logger.debug('Concurrent write on watched key. Retrying transaction.', extra={'key': key, 'attempt': attempt})
                    continue
        raise DataStoreError(f"Transaction on '{key}' aborted {Transaction.MAX_RETRIES} times by concurrent writers.")
