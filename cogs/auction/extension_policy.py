# cogs/auction/extension_policy.py
from datetime import datetime, timedelta
from typing import Optional

EXTENSION = timedelta(minutes=5)
# A bid landing inside the final WINDOW pushes the deadline out by EXTENSION
WINDOW = EXTENSION / 5


def extended_end_time(end_time: datetime, now: datetime) -> Optional[datetime]:
    """Return the new end time if a bid placed at ``now`` triggers snipe protection."""
    remaining = end_time - now
    if timedelta(0) < remaining <= WINDOW:
        return end_time + EXTENSION
    return None
