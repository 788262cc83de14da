from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC so values compare cleanly with what SQLite hands back.
    return datetime.now(timezone.utc).replace(tzinfo=None)
