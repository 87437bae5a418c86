"""Scheduled lambda zeroing monthly hit counters

Triggered by an EventBridge rate schedule (e.g. every 5 minutes). Each run
drains the reset jobs that became due since the previous run. A job is due at
local midnight on the 1st of the month in its user's timezone, so resets are
spread across the day as midnight moves around the globe.
"""

import logging
from datetime import datetime, timedelta, UTC

from hitquota.types import LambdaEvent, LambdaContext
from hitquota.constants import Reset
from hitquota.models import ResetJobModel
from hitquota.dao.base import UserBaseDAO, HitBaseDAO, ResetJobBaseDAO
from hitquota.dao.redis import UserRedisDAO, HitRedisDAO, ResetJobRedisDAO
from hitquota.dao.exceptions import DataStoreError, StaleResetJobError, UserDoesNotExistError
from hitquota.utils import load_config, app_prefix, beginning_of_month, beginning_of_next_month
from hitquota.utils.logging import log_lambda_request
from hitquota.lambdas.reset_quotas.constants import (
    QUOTA_RESET,
    RESET_JOB_ALREADY_CLAIMED,
    STALE_RESET_JOB,
    ORPHANED_RESET_JOB,
    RESET_JOB_RETRY,
    RESET_JOB_DROPPED,
    HIT_COUNTER_DRIFT,
)


logger = logging.getLogger(__name__)


def retry_delay(attempts: int) -> int:
    """Exponential backoff: RETRY_DELAY, 2 * RETRY_DELAY, 4 * RETRY_DELAY, ..."""
    return Reset.RETRY_DELAY * 2**attempts


def reset_user_quota(
    job: ResetJobModel,
    user_dao: UserBaseDAO,
    hit_dao: HitBaseDAO,
    job_dao: ResetJobBaseDAO,
    now: datetime | None = None,
) -> str:
    """Run one claimed reset job

    - Step 1: Load the job's user (drop the job if the user is gone)
    - Step 2: Skip the job if it is no longer the user's pending job
    - Step 3: Queue the next reset job at the following local month start
    - Step 4: Zero the hit counter and install the next job (atomically)
    - Step 5: Cross-check the old counter against the recorded hits
    - Step 6: Forget the finished job

    Returns:
        str: event code describing the outcome.

    Raises:
        DataStoreError:
            If Redis fails midway. The caller decides whether to retry.
    """
    now = now or datetime.now(UTC)
    extra = {'jobId': job.job_id, 'userId': job.user_id}

    # 1- Load the job's user
    try:
        user = user_dao.get(job.user_id)
    except UserDoesNotExistError:
        logger.warning('Reset job belongs to an unknown user. Dropping job.', extra={**extra, 'event': ORPHANED_RESET_JOB})
        job_dao.complete(job.job_id)
        return ORPHANED_RESET_JOB

    # 2- Skip superseded jobs (e.g. the user changed timezone)
    if user.reset_job_id != job.job_id:
        logger.info('Reset job was superseded. Dropping job.', extra={**extra, 'pendingJobId': user.reset_job_id, 'event': STALE_RESET_JOB})
        job_dao.complete(job.job_id)
        return STALE_RESET_JOB

    # 3- Queue next month's reset job
    next_job = job_dao.schedule(user.user_id, beginning_of_next_month(user.timezone, now))

    # 4- Zero the hit counter
    try:
        previous_hits = user_dao.reset_hits(user_id=user.user_id, job_id=job.job_id, next_job=next_job)
    except (StaleResetJobError, UserDoesNotExistError):
        # Lost a race against a timezone change or a deleted user
        job_dao.cancel(next_job.job_id)
        job_dao.complete(job.job_id)
        logger.info('Reset job was superseded while running. Dropping job.', extra={**extra, 'event': STALE_RESET_JOB})
        return STALE_RESET_JOB
    except DataStoreError:
        # A retried job schedules its own next job
        try:
            job_dao.cancel(next_job.job_id)
        except DataStoreError:
            logger.warning(
                'Failed to cancel unused reset job.',
                extra={**extra, 'nextJobId': next_job.job_id, 'event': ORPHANED_RESET_JOB},
            )
        raise

    # 5- Cross-check the counter cache against the hits recorded since the period that just ended began
    due_at = user.resets_at or job.run_at
    period_start = beginning_of_month(user.timezone, due_at - timedelta(seconds=1))
    recorded_hits = hit_dao.count(user_id=user.user_id, since=period_start, until=now)
    if recorded_hits != previous_hits:
        logger.warning(
            'Hit counter drifted from recorded hits.',
            extra={**extra, 'counterHits': previous_hits, 'recordedHits': recorded_hits, 'event': HIT_COUNTER_DRIFT},
        )

    # 6- Forget the finished job
    job_dao.complete(job.job_id)
    logger.info(
        'Monthly hit counter reset.',
        extra={
            **extra,
            'timezone': user.timezone,
            'previousHits': previous_hits,
            'nextJobId': next_job.job_id,
            'nextResetAt': next_job.run_at,
            'event': QUOTA_RESET,
        },
    )
    return QUOTA_RESET


def handle_failed_job(job: ResetJobModel, job_dao: ResetJobBaseDAO) -> None:
    """Queue a failed job again, or drop it after Reset.MAX_ATTEMPTS attempts

    Must be called while handling the job's DataStoreError. Redis is often
    still unreachable at this point, so a job may be lost here. Its user keeps
    pointing at it until ensure_user() replaces the overdue job.
    """
    extra = {'jobId': job.job_id, 'userId': job.user_id, 'attempts': job.attempts + 1}

    if job.attempts + 1 >= Reset.MAX_ATTEMPTS:
        logger.exception('Reset job failed too many times. Dropping job.', extra={**extra, 'event': RESET_JOB_DROPPED})
        try:
            job_dao.complete(job.job_id)
        except DataStoreError:
            logger.exception('Failed to delete dropped reset job.', extra={**extra, 'event': RESET_JOB_DROPPED})
        return

    try:
        retried = job_dao.retry(job, delay=retry_delay(job.attempts))
    except DataStoreError:
        logger.exception('Reset job failed and could not be queued again. Dropping job.', extra={**extra, 'event': RESET_JOB_DROPPED})
        return

    logger.exception(
        'Reset job failed. Retrying later.',
        extra={**extra, 'attempts': retried.attempts, 'retryAt': retried.run_at, 'event': RESET_JOB_RETRY},
    )


@log_lambda_request
def lambda_handler(event: LambdaEvent, context: LambdaContext) -> dict[str, int]:
    """Process all due reset jobs

    Failed jobs are queued again with exponential backoff and dropped after
    Reset.MAX_ATTEMPTS attempts.

    Returns:
        dict: {'processed': ..., 'reset': ..., 'skipped': ..., 'failed': ...}
    """
    app_config = load_config('reset_quotas')
    redis_config = {f'redis_{k}': v for k, v in app_config['redis'].items()}

    user_dao = UserRedisDAO(**redis_config, prefix=app_prefix())
    hit_dao = HitRedisDAO(**redis_config, prefix=app_prefix())
    job_dao = ResetJobRedisDAO(**redis_config, prefix=app_prefix())

    now = datetime.now(UTC)
    summary = {'processed': 0, 'reset': 0, 'skipped': 0, 'failed': 0}

    for job in job_dao.due(now=now):
        summary['processed'] += 1

        if not job_dao.claim(job.job_id):
            logger.debug('Reset job claimed by another worker.', extra={'jobId': job.job_id, 'event': RESET_JOB_ALREADY_CLAIMED})
            summary['skipped'] += 1
            continue

        try:
            outcome = reset_user_quota(job, user_dao, hit_dao, job_dao, now=datetime.now(UTC))
        except DataStoreError:
            summary['failed'] += 1
            handle_failed_job(job, job_dao)
            continue

        if outcome == QUOTA_RESET:
            summary['reset'] += 1
        else:
            summary['skipped'] += 1

    logger.info('Finished processing due reset jobs.', extra=summary)
    return summary
