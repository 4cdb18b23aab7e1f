"""Cache keys for blocked-date responses.

Keys embed a version number; bumping the version orphans every cached range
at once, so invalidation never has to enumerate the ranges it cached.
"""

from datetime import date

from django.core.cache import cache

BLOCKED_DATES_VERSION_KEY = "calendar:blocked:version"


def blocked_dates_version() -> int:
    return cache.get_or_set(BLOCKED_DATES_VERSION_KEY, 1, timeout=None)


def blocked_dates_key(start: date, end: date) -> str:
    return f"calendar:blocked:v{blocked_dates_version()}:{start.isoformat()}:{end.isoformat()}"


def invalidate_blocked_dates() -> None:
    try:
        cache.incr(BLOCKED_DATES_VERSION_KEY)
    except ValueError:
        cache.set(BLOCKED_DATES_VERSION_KEY, 2, timeout=None)
