from datetime import datetime

from pytz import timezone as pytz_timezone  # type: ignore
from pytz import UnknownTimeZoneError  # type: ignore

GUESSED_LOCAL_TIMEZONE = None
try:
    GUESSED_LOCAL_TIMEZONE = pytz_timezone(str(datetime.now().astimezone().tzinfo))
except UnknownTimeZoneError:
    GUESSED_LOCAL_TIMEZONE = None

def now() -> datetime:
    return datetime.now(tz=GUESSED_LOCAL_TIMEZONE)


def parse_timestamp(text: str) -> datetime | None:
    """Parse an ISO 8601 timestamp as written by `date -Iseconds`, or None."""
    try:
        return datetime.fromisoformat(text.strip())
    except ValueError:
        return None
