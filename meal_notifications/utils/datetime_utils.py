from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def naive_utc_now() -> datetime:
    """
    Current UTC time without tzinfo.

    All DateTime columns store naive UTC, so anything compared against a column
    goes through here or through `to_naive_utc`.
    """
    return utc_now().replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    # Naive input is already UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def days_ago(days: int, now: datetime) -> datetime:
    """Return the instant exactly `days` days before `now`."""
    return now - timedelta(days=days)


def resolve_job_now(now: object = None) -> datetime:
    """
    Normalize the processing clock handed to a job.

    None means "now"; naive datetimes are taken as UTC. Anything that is not a
    datetime is rejected before any storage access.
    """
    if now is None:
        return naive_utc_now()
    if not isinstance(now, datetime):
        raise ValueError(f"now must be a datetime, got {type(now).__name__}")
    return to_naive_utc(now)
