"""
Time and naming helpers shared by the deployment modules.
"""

from datetime import datetime, timezone
from typing import Optional

SCRATCH_PREFIX = "simforge"


def get_utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def scratch_prefix(dt: Optional[datetime] = None) -> str:
    """Prefix for a scratch directory name, e.g. ``simforge-20250117_101500-``."""
    if dt is None:
        dt = get_utc_now()
    return f"{SCRATCH_PREFIX}-{dt.strftime('%Y%m%d_%H%M%S')}-"


def seconds_since(start_time: datetime) -> float:
    return (get_utc_now() - start_time).total_seconds()
