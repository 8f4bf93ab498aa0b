import logging
import re
from datetime import datetime, timezone


class FilterRemoveDateFromWerkzeugLogs(logging.Filter):
    # '127.0.0.1 - - [19/Oct/2026 01:14:03] "%s" %s %s' -> '127.0.0.1 - "%s" %s %s'
    pattern: re.Pattern = re.compile(r' - - \[.+?] "')

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.pattern.sub(' - "', record.msg)
        return True


# Custom logging formatter to support colors
class ColoredFormatter(logging.Formatter):
    # Define color codes
    COLORS = {
        'DEBUG': '\033[94m',   # Blue
        'INFO': '\033[92m',    # Green
        'WARNING': '\033[93m', # Yellow
        'ERROR': '\033[91m',   # Red
        'CRITICAL': '\033[95m' # Magenta
    }
    RESET = '\033[0m'  # Reset color

    def format(self, record):
        # Add color to the log level name
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"

        return super().format(record)


def now_utc():
    """Returns current datetime in UTC (aware)"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """
    Ensure a datetime object is aware and in UTC.
    Handles ISO strings, None, and naive datetimes (SQLite returns those).
    """
    if dt is None:
        return None

    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.replace('Z', '+00:00'))
        except (ValueError, TypeError, AttributeError):
            return None

    if not hasattr(dt, 'tzinfo'):
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def from_timestamp(value):
    """Convert a unix timestamp (IGDB dates) to an aware UTC datetime"""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


# Steam ships release dates as display strings in a couple of layouts
_STEAM_DATE_FORMATS = ('%d %b, %Y', '%b %d, %Y', '%d %B, %Y', '%B %d, %Y', '%Y-%m-%d')


def parse_steam_date(text):
    """Parse a Steam release date string, returns None for 'Coming soon' and friends"""
    if not text or not isinstance(text, str):
        return None
    cleaned = text.strip()
    for fmt in _STEAM_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def days_between(earlier, later):
    """Whole days between two datetimes (naive values are treated as UTC)"""
    earlier = ensure_utc(earlier)
    later = ensure_utc(later)
    if earlier is None or later is None:
        return None
    return (later - earlier).days


def slugify(text):
    if not text:
        return ''
    slug = re.sub(r'[^a-z0-9]+', '-', str(text).lower())
    return slug.strip('-')

