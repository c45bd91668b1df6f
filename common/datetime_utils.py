from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_date(moment: datetime) -> date:
    """Calendar day of ``moment`` in UTC; naive datetimes are taken as UTC already."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()
