"""Reset job scheduling shared by lambda handlers

Every user has exactly one pending reset job, due at their next local month
start. These helpers keep the user record and the job queue in step.

Functions:
    schedule_reset(user_dao, job_dao, user, run_at) -> UserModel
        Queue a reset job for the user at `run_at` and drop the previous one.
    schedule_next_reset(user_dao, job_dao, user, now=None) -> UserModel
        Queue the user's reset job at their next local month start.
    next_reset_in_timezone(user, timezone, now=None) -> datetime
        When the user's counter resets after moving them to `timezone`.
    ensure_user(user_dao, job_dao, user_id, timezone='UTC', now=None) -> UserModel
        Get a user, registering them (with their first reset job) if new.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, UTC

from hitquota.constants import DEFAULT_TIMEZONE, Reset
from hitquota.models import UserModel
from hitquota.dao.base import UserBaseDAO, ResetJobBaseDAO
from hitquota.dao.exceptions import UserAlreadyExistsError, UserDoesNotExistError
from hitquota.utils.timezones import beginning_of_next_month, month_key


logger = logging.getLogger(__name__)

OVERDUE_RESET_JOB = 'OVERDUE_RESET_JOB'
MISSING_RESET_JOB = 'MISSING_RESET_JOB'


def schedule_reset(
    user_dao: UserBaseDAO,
    job_dao: ResetJobBaseDAO,
    user: UserModel,
    run_at: datetime,
) -> UserModel:
    """Queue a reset job for `user` due at `run_at`

    The new job becomes the user's pending job before the previous one is
    cancelled. If the previous job fires in between, reset_hits() rejects it
    as stale.

    Returns:
        UserModel: the user with the new pending job.
    """
    job = job_dao.schedule(user.user_id, run_at)
    user_dao.set_reset_job(user.user_id, job)

    if user.reset_job_id and user.reset_job_id != job.job_id:
        job_dao.cancel(user.reset_job_id)

    logger.info(
        'Scheduled quota reset.',
        extra={'userId': user.user_id, 'jobId': job.job_id, 'timezone': user.timezone, 'resetsAt': run_at},
    )
    return replace(user, reset_job_id=job.job_id, resets_at=run_at)


def schedule_next_reset(
    user_dao: UserBaseDAO,
    job_dao: ResetJobBaseDAO,
    user: UserModel,
    now: datetime | None = None,
) -> UserModel:
    return schedule_reset(user_dao, job_dao, user, beginning_of_next_month(user.timezone, now))


def next_reset_in_timezone(user: UserModel, timezone: str, now: datetime | None = None) -> datetime:
    """Compute the user's next reset after a move to `timezone`

    Normally this is the next local month start in `timezone`. The pending
    reset opens a period (e.g. '2025-12' in the old timezone); the moved reset
    must open that period or a later one in the new timezone. Otherwise a user
    reset a moment ago could move west and be reset again in the same month.

    Example:
        A UTC user reset at 2025-11-01T00:00Z (pending reset 2025-12-01T00:00Z)
        moves to America/Los_Angeles at 00:30Z. Los Angeles starts '2025-11'
        at 07:00Z, so the reset moves to '2025-12' there: 2025-12-01T08:00Z.
    """
    run_at = beginning_of_next_month(timezone, now)
    if user.resets_at is None:
        return run_at

    pending_period = month_key(user.timezone, user.resets_at)
    while month_key(timezone, run_at) < pending_period:
        run_at = beginning_of_next_month(timezone, run_at)
    return run_at


def ensure_user(
    user_dao: UserBaseDAO,
    job_dao: ResetJobBaseDAO,
    user_id: str,
    timezone: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> UserModel:
    """Return the user, registering them on first sight

    New users start with an empty hit counter in `timezone` and get their
    first reset job right away.

    Existing users are repaired on the way:
        - no pending reset job (registration failed halfway): schedule one
        - pending reset job overdue by more than Reset.OVERDUE_AFTER (the job
          was dropped after failing too often): queue a reset due right now
    """
    now = now or datetime.now(UTC)

    try:
        user = user_dao.get(user_id)
    except UserDoesNotExistError:
        pass
    else:
        if user.reset_job_id is None:
            logger.warning('User has no pending reset job. Scheduling one.', extra={'userId': user_id, 'event': MISSING_RESET_JOB})
            return schedule_next_reset(user_dao, job_dao, user, now)
        if user.resets_at is not None and now - user.resets_at > timedelta(seconds=Reset.OVERDUE_AFTER):
            logger.warning(
                'Pending reset job is overdue. Queueing an immediate reset.',
                extra={'userId': user_id, 'jobId': user.reset_job_id, 'resetsAt': user.resets_at, 'event': OVERDUE_RESET_JOB},
            )
            return schedule_reset(user_dao, job_dao, user, now)
        return user

    user = UserModel(user_id=user_id, timezone=timezone)
    try:
        user_dao.insert(user)
    except UserAlreadyExistsError:
        # Registered by a concurrent request in the meantime
        return user_dao.get(user_id)

    logger.info('Registered new user.', extra={'userId': user_id, 'timezone': timezone})
    return schedule_next_reset(user_dao, job_dao, user, now)
