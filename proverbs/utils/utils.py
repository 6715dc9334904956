from datetime import datetime, timezone


def utcnow() -> datetime:
    # naive UTC, the form SQLite and BSON datetimes round-trip as
    return datetime.now(timezone.utc).replace(tzinfo=None)
