from hitquota.dao.redis.redis_key_schema import RedisKeySchema
from hitquota.dao.redis.mixins import RedisClientMixin
from hitquota.dao.redis.user_redis_dao import UserRedisDAO
from hitquota.dao.redis.hit_redis_dao import HitRedisDAO
from hitquota.dao.redis.reset_job_redis_dao import ResetJobRedisDAO


__all__ = [
    'RedisKeySchema',
    'RedisClientMixin',
    'UserRedisDAO',
    'HitRedisDAO',
    'ResetJobRedisDAO',
]
