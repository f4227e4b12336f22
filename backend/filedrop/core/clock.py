from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the only clock used for stored and compared times."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
