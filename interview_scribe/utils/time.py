from __future__ import annotations

import time


def now_unix_s() -> float:
    return time.time()


def format_offset(seconds: float) -> str:
    """Format a start offset as ``MM:SS``, or ``HH:MM:SS`` from one hour on."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
