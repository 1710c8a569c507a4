from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def date_stamp(moment: datetime | None = None) -> str:
    """Format a datetime (default now, UTC) as YYYY-MM-DD for output file names."""
    return (moment or utc_now()).strftime("%Y-%m-%d")
