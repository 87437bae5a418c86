"""Timezone-aware calendar month arithmetic

A user's quota period is their *local* calendar month: it begins at local
midnight on the 1st and ends at the next one. All instants returned here are
timezone-aware and expressed in UTC, which is how they are stored.

Functions:
    resolve_timezone(name: str) -> ZoneInfo
        Resolve an IANA timezone name, raising InvalidTimezoneError if unknown.
    is_valid_timezone(name: str) -> bool
        True if `name` resolves to an IANA timezone.
    localize(naive: datetime, tz: ZoneInfo) -> datetime
        Attach a timezone to a local wall time, resolving DST gaps and overlaps.
    beginning_of_month(tz, now) -> datetime
        First local midnight of the month containing `now`, in UTC.
    beginning_of_next_month(tz, now) -> datetime
        First local midnight of the month after `now`, in UTC.
    month_key(tz, now) -> str
        Local month label ('YYYY-MM') of `now`.

Example:
    >>> now = datetime(2025, 10, 31, 16, 0, tzinfo=UTC)  # already November in Tokyo
    >>> month_key('Asia/Tokyo', now)
    '2025-11'
    >>> beginning_of_next_month('Asia/Tokyo', now)
    datetime.datetime(2025, 11, 30, 15, 0, tzinfo=datetime.timezone.utc)
"""

from datetime import datetime, timedelta, UTC
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hitquota.constants import DEFAULT_TIMEZONE
from hitquota.exceptions import InvalidTimezoneError


# Longest DST gap we are willing to skip over when local midnight doesn't exist
MAX_GAP_MINUTES = 180


def resolve_timezone(name: str) -> ZoneInfo:
    if not name or not isinstance(name, str):
        raise InvalidTimezoneError(f'Invalid timezone: {name!r}')
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f'Invalid timezone: {name!r}') from e


def is_valid_timezone(name: str) -> bool:
    try:
        resolve_timezone(name)
    except InvalidTimezoneError:
        return False
    return True


def _valid_folds(naive: datetime, tz: ZoneInfo) -> list[int]:
    valid = []
    for fold in (0, 1):
        candidate = naive.replace(tzinfo=tz, fold=fold)
        back = candidate.astimezone(UTC).astimezone(tz)
        if back.replace(tzinfo=None) == naive:
            valid.append(fold)
    return valid


def localize(naive: datetime, tz: ZoneInfo) -> datetime:
    """Attach `tz` to a naive local wall time.

    Ambiguous wall times (DST fall-back) resolve to their first occurrence.
    Wall times that don't exist (DST spring-forward gap) are moved forward to
    the first valid minute, e.g. midnight becomes 01:00 where clocks jump from
    00:00 to 01:00.

    Raises:
        InvalidTimezoneError:
            If no valid wall time exists within MAX_GAP_MINUTES.
    """
    for minutes in range(MAX_GAP_MINUTES + 1):
        candidate = naive + timedelta(minutes=minutes)
        folds = _valid_folds(candidate, tz)
        if folds:
            return candidate.replace(tzinfo=tz, fold=folds[0])
    raise InvalidTimezoneError(f'No valid local time near {naive.isoformat()} in {tz.key}')


def _local_now(tz: str, now: datetime | None) -> tuple[ZoneInfo, datetime]:
    zone = resolve_timezone(tz)
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return zone, now.astimezone(zone)


def beginning_of_month(tz: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> datetime:
    zone, local = _local_now(tz, now)
    start = localize(datetime(local.year, local.month, 1), zone)
    return start.astimezone(UTC)


def beginning_of_next_month(tz: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> datetime:
    """Compute the first moment of the user's next local calendar month.

    Args:
        tz (str):
            IANA timezone of the user. Defaults to UTC.
        now (datetime | None):
            Reference instant. Defaults to the current time.

    Returns:
        datetime:
            Local midnight on the 1st of next month, converted to UTC.

    Example:
        >>> beginning_of_next_month('Europe/Sofia', datetime(2025, 10, 15, tzinfo=UTC))
        datetime.datetime(2025, 10, 31, 22, 0, tzinfo=datetime.timezone.utc)
    """
    zone, local = _local_now(tz, now)
    next_month = (local.month % 12) + 1
    next_year = local.year + (1 if local.month == 12 else 0)
    start = localize(datetime(next_year, next_month, 1), zone)
    return start.astimezone(UTC)


def month_key(tz: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> str:
    _, local = _local_now(tz, now)
    return local.strftime('%Y-%m')
