import functools
import redis
from datetime import datetime, UTC
from typing import TypeVar, Any
from collections.abc import Callable

from hitquota.dao.exceptions import DataStoreError


__all__ = []

F = TypeVar('F', bound=Callable[..., Any])


def handle_redis_connection_error(method: F) -> F:
    """Wrap Redis-interacting DAO methods to handle connection errors

    Args:
        method (Callable[..., Any]):
            DAO method performing Redis operations which may raise redis.exceptions.ConnectionError.

    Returns:
        Callable[..., Any]:
            Wrapped method which raises DataStoreError on connectivity issues with Redis.

    Example:
        >>> @handle_redis_connection_error
        ... def hits(self, user_id):
        ...     return self.redis.hget(f'users:{user_id}', 'hits')
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except redis.exceptions.ConnectionError as e:
            info = self.redis.connection_pool.connection_kwargs
            redis_host = info.get('host')
            redis_port = info.get('port')
            redis_db = info.get('db')
            raise DataStoreError(f"Can't connect to Redis at {redis_host}:{redis_port}/{redis_db}.") from e

    return wrapper


def to_timestamp(moment: datetime) -> int:
    """Serialize an aware datetime as whole epoch seconds."""
    return int(moment.timestamp())


def from_timestamp(value: str | int | float | None) -> datetime | None:
    """Deserialize epoch seconds stored in Redis into an aware UTC datetime."""
    if value is None or value == '':
        return None
    return datetime.fromtimestamp(int(float(value)), tz=UTC)
