import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC

from hitquota.constants import DEFAULT_TIMEZONE


# fmt: off
@dataclass(frozen=True)
class UserModel:
    user_id: str                          # Unique user identifier (Cognito 'sub' claim)
    timezone: str = DEFAULT_TIMEZONE      # IANA timezone name, e.g. 'Europe/Sofia'
    hits: int = 0                         # Counter cache: API hits used in the current local month
    reset_job_id: str | None = None       # Pending reset job, the only job allowed to zero `hits`
    resets_at: datetime | None = None     # Next local month start (UTC), when `hits` is zeroed
    created_at: datetime | None = None    # Registration time (UTC)


@dataclass(frozen=True)
class HitModel:
    user_id: str                          # Owner of the hit
    endpoint: str                         # Called API endpoint, e.g. '/v1/reports'
    hit_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ResetJobModel:
    job_id: str                           # Unique job identifier
    user_id: str                          # User whose hit counter is zeroed
    run_at: datetime                      # Due time (UTC), a local month start of the user
    attempts: int = 0                     # Failed execution attempts so far
# fmt: on
