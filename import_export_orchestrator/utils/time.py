"""Time helpers."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def export_timestamp(moment: datetime) -> str:
    """Timestamp fragment used in generated export file names."""
    return moment.strftime("%Y%m%d_%H%M%S")
