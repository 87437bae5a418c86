import functools
from collections.abc import Callable


__all__ = ['RedisKeySchema']  # hide internal decorator prefix_key from imports


def prefix_key(func: Callable) -> Callable:
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs) -> str:
        key = func(self, *args, **kwargs)
        return f'{self.prefix}:{key}' if self.prefix is not None else key

    return wrapper


class RedisKeySchema:
    """Provide standardized Redis keys for storing data models.

    An optional prefix can be provided to namespace all generated keys.
    It is highly encouraged to set a custom prefix for each app and environment,
    e.g. "hitquota:prod" or "hitquota:dev".

    Keys:
        users:<user_id>              (hash)        user record with its hit counter
        users:<user_id>:hits         (sorted set)  hit records scored by epoch seconds
        jobs:reset:queue             (sorted set)  reset job IDs scored by due time
        jobs:reset:<job_id>          (hash)        reset job record
    """

    def __init__(self, prefix: str | None = None):
        if prefix is not None and not isinstance(prefix, str):
            raise TypeError(f'Prefix must be of type string (given type: {type(prefix)}).')

        self.prefix = prefix

    @prefix_key
    def user_key(self, user_id: str) -> str:
        return f'users:{user_id}'

    @prefix_key
    def user_hits_key(self, user_id: str) -> str:
        return f'users:{user_id}:hits'

    @prefix_key
    def reset_queue_key(self) -> str:
        return 'jobs:reset:queue'

    @prefix_key
    def reset_job_key(self, job_id: str) -> str:
        return f'jobs:reset:{job_id}'
