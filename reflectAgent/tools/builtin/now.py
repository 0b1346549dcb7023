"""Get the current date and time."""

from datetime import datetime, timezone as dt_timezone
from typing import Annotated, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from langchain_core.tools import tool


@tool
def get_current_time(
    timezone: Annotated[Optional[str], "IANA timezone such as 'Asia/Tokyo' or 'UTC'. Defaults to UTC."] = None
) -> str:
    """Get the current date and time, optionally in a given timezone.

    Returns the formatted local time, the ISO 8601 timestamp and the Unix timestamp.

    Example:
        get_current_time("Europe/London")
    """
    now = datetime.now(dt_timezone.utc)
    if timezone:
        try:
            now = now.astimezone(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError):
            return f"Error: Unknown timezone: {timezone}"

    return (
        "Current Time:\n"
        f"• Formatted: {now.strftime('%A, %B %d, %Y %I:%M:%S %p %Z')}\n"
        f"• ISO 8601: {now.isoformat()}\n"
        f"• Unix timestamp: {int(now.timestamp())}"
    )


__all__ = ["get_current_time"]
