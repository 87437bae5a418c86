"""Data Access Object (DAO) implementation for hit records in Redis

Hit records of a user live in one sorted set, scored by the hit's epoch time:

    <app>:users:<user_id>:hits = {
        '{"hit_id": "...", "endpoint": "/v1/reports", "created_at": "2025-10-15T12:00:00+00:00"}': 1760529600.0,
        ...
    }

Range queries by time (ZCOUNT, ZRANGEBYSCORE) then cost O(log N). Records older
than TTL.HIT_RETENTION are trimmed on every insert.
"""

import json
from datetime import datetime, UTC

from beartype import beartype

from hitquota.models import HitModel
from hitquota.constants import TTL
from hitquota.dao.base import HitBaseDAO
from hitquota.dao.redis.mixins import RedisClientMixin
from hitquota.dao.redis.helpers import handle_redis_connection_error


class HitRedisDAO(RedisClientMixin, HitBaseDAO):
    """Redis-based Data Access Object (DAO) for hit records

    Methods:
        insert(hit: HitModel, **kwargs) -> HitRedisDAO:
            Record a hit, trim expired records and refresh the key's TTL.
            Raises DataStoreError on connectivity issues with Redis.

        count(user_id: str, since: datetime, until: datetime | None = None, **kwargs) -> int:
            Count a user's hits in [since, until).

        list_hits(user_id: str, since: datetime, until: datetime | None = None, limit: int | None = None, **kwargs) -> list[HitModel]:
            List a user's hits in [since, until), oldest first.
    """

    @handle_redis_connection_error
    @beartype
    def insert(self, hit: HitModel, **kwargs) -> 'HitRedisDAO':
        user_hits_key = self.keys.user_hits_key(hit.user_id)
        member = json.dumps(
            {
                'hit_id': hit.hit_id,
                'endpoint': hit.endpoint,
                'created_at': hit.created_at.isoformat(),
            }
        )
        cutoff = datetime.now(UTC).timestamp() - TTL.HIT_RETENTION

        with self.redis.pipeline(transaction=True) as pipe:
            pipe.zadd(user_hits_key, {member: hit.created_at.timestamp()})
            pipe.zremrangebyscore(user_hits_key, '-inf', f'({cutoff}')
            pipe.expire(user_hits_key, TTL.HIT_RETENTION)
            pipe.execute()
        return self

    @handle_redis_connection_error
    @beartype
    def count(self, user_id: str, since: datetime, until: datetime | None = None, **kwargs) -> int:
        min_score, max_score = self._score_range(since, until)
        return int(self.redis.zcount(self.keys.user_hits_key(user_id), min_score, max_score))

    @handle_redis_connection_error
    @beartype
    def list_hits(
        self,
        user_id: str,
        since: datetime,
        until: datetime | None = None,
        limit: int | None = None,
        **kwargs,
    ) -> list[HitModel]:
        min_score, max_score = self._score_range(since, until)
        user_hits_key = self.keys.user_hits_key(user_id)
        if limit is None:
            members = self.redis.zrangebyscore(user_hits_key, min_score, max_score)
        else:
            members = self.redis.zrangebyscore(user_hits_key, min_score, max_score, start=0, num=limit)

        hits = []
        for member in members:
            record = json.loads(member)
            hits.append(
                HitModel(
                    user_id=user_id,
                    endpoint=record['endpoint'],
                    hit_id=record['hit_id'],
                    created_at=datetime.fromisoformat(record['created_at']),
                )
            )
        return hits

    @staticmethod
    def _score_range(since: datetime, until: datetime | None) -> tuple[float, str]:
        # '(' makes the upper bound exclusive
        max_score = '+inf' if until is None else f'({until.timestamp()}'
        return since.timestamp(), max_score
