"""Date manipulation utilities"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for all persisted timestamps"""
    return datetime.now(timezone.utc)
