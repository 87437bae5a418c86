"""Data Access Object (DAO) implementation for the reset job queue in Redis

The queue is a sorted set of job IDs scored by due time. Job details are kept
in a separate hash per job:

    <app>:jobs:reset:queue     = {<job_id>: <run_at epoch>, ...}
    <app>:jobs:reset:<job_id>  = {user_id: ..., run_at: ..., attempts: ...}

Workers poll due() and claim() each job with ZREM. ZREM removes a member at
most once, so exactly one worker wins a job even if several poll at the same time.

Example:
    >>> dao = ResetJobRedisDAO(prefix='hitquota:dev')
    >>> job = dao.schedule('user123', run_at=datetime(2025, 11, 1, tzinfo=UTC))
    >>> [j.job_id for j in dao.due(now=datetime(2025, 11, 1, 0, 5, tzinfo=UTC))]
    ['9f1c...']
    >>> dao.claim(job.job_id)
    True
    >>> dao.claim(job.job_id)
    False
"""

import uuid
import logging
from dataclasses import replace
from datetime import datetime, timedelta, UTC

from beartype import beartype

from hitquota.constants import Reset
from hitquota.models import ResetJobModel
from hitquota.dao.base import ResetJobBaseDAO
from hitquota.dao.redis.mixins import RedisClientMixin
from hitquota.dao.redis.helpers import handle_redis_connection_error, to_timestamp, from_timestamp
from hitquota.dao.exceptions import ResetJobNotFoundError


logger = logging.getLogger(__name__)


class ResetJobRedisDAO(RedisClientMixin, ResetJobBaseDAO):
    """Redis-based Data Access Object (DAO) for delayed reset jobs"""

    @handle_redis_connection_error
    @beartype
    def schedule(self, user_id: str, run_at: datetime, **kwargs) -> ResetJobModel:
        """Queue a reset job for `user_id` due at `run_at`

        The job hash and its queue entry are written in one transaction, so a
        worker never sees a queued job without its details.
        """
        job = ResetJobModel(job_id=uuid.uuid4().hex, user_id=user_id, run_at=run_at)
        run_at_ts = to_timestamp(run_at)

        with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(self.keys.reset_job_key(job.job_id), mapping={'user_id': user_id, 'run_at': run_at_ts, 'attempts': 0})
            pipe.zadd(self.keys.reset_queue_key(), {job.job_id: run_at_ts})
            pipe.execute()

        logger.debug('Scheduled reset job.', extra={'jobId': job.job_id, 'userId': user_id, 'runAt': run_at})
        return job

    @handle_redis_connection_error
    @beartype
    def get(self, job_id: str, **kwargs) -> ResetJobModel:
        data = self.redis.hgetall(self.keys.reset_job_key(job_id))
        if not data:
            raise ResetJobNotFoundError(f"Reset job with ID '{job_id}' not found.")
        return self._deserialize(job_id, data)

    @handle_redis_connection_error
    @beartype
    def due(self, now: datetime | None = None, limit: int = Reset.BATCH_SIZE, **kwargs) -> list[ResetJobModel]:
        """List up to `limit` queued jobs due at `now`, earliest first

        Queue entries whose job hash is gone (orphans) are dropped from the queue.
        """
        now = now or datetime.now(UTC)
        queue_key = self.keys.reset_queue_key()
        job_ids = self.redis.zrangebyscore(queue_key, '-inf', to_timestamp(now), start=0, num=limit)
        if not job_ids:
            return []

        with self.redis.pipeline(transaction=False) as pipe:
            for job_id in job_ids:
                pipe.hgetall(self.keys.reset_job_key(job_id))
            records = pipe.execute()

        jobs = []
        for job_id, data in zip(job_ids, records):
            if not data:
                logger.warning('Dropping orphaned reset job from queue.', extra={'jobId': job_id})
                self.redis.zrem(queue_key, job_id)
                continue
            jobs.append(self._deserialize(job_id, data))
        return jobs

    @handle_redis_connection_error
    @beartype
    def claim(self, job_id: str, **kwargs) -> bool:
        return self.redis.zrem(self.keys.reset_queue_key(), job_id) == 1

    @handle_redis_connection_error
    @beartype
    def retry(self, job: ResetJobModel, delay: int, **kwargs) -> ResetJobModel:
        run_at = datetime.now(UTC) + timedelta(seconds=delay)
        run_at_ts = to_timestamp(run_at)
        job_key = self.keys.reset_job_key(job.job_id)

        with self.redis.pipeline(transaction=True) as pipe:
            pipe.hincrby(job_key, 'attempts', 1)
            pipe.hset(job_key, 'run_at', run_at_ts)
            pipe.zadd(self.keys.reset_queue_key(), {job.job_id: run_at_ts})
            attempts, _, _ = pipe.execute()

        return replace(job, run_at=from_timestamp(run_at_ts), attempts=int(attempts))

    @handle_redis_connection_error
    @beartype
    def complete(self, job_id: str, **kwargs) -> None:
        self._remove(job_id)

    @handle_redis_connection_error
    @beartype
    def cancel(self, job_id: str, **kwargs) -> bool:
        return self._remove(job_id)

    def _remove(self, job_id: str) -> bool:
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self.keys.reset_queue_key(), job_id)
            pipe.delete(self.keys.reset_job_key(job_id))
            _, deleted = pipe.execute()
        return bool(deleted)

    @staticmethod
    def _deserialize(job_id: str, data: dict[str, str]) -> ResetJobModel:
        return ResetJobModel(
            job_id=job_id,
            user_id=data['user_id'],
            run_at=from_timestamp(data['run_at']),
            attempts=int(data.get('attempts', 0)),
        )
