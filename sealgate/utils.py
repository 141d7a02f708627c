import re
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from urllib.parse import urlsplit

def parse_file_size(size_str: str) -> int:
    """Parse file size string with units (B, KB, MB, GB) to bytes.

    Examples:
        "10" -> 10 bytes
        "10mb" or "10MB" -> 10485760 bytes
        "500kb" or "500KB" -> 512000 bytes
    """
    size_str = str(size_str).strip()

    # Check if it's just a number (bytes)
    if size_str.isdigit():
        return int(size_str)

    match = re.match(r'^(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)$', size_str, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid file size format: {size_str}")

    value = float(match.group(1))
    unit = match.group(2).lower()

    multipliers = {
        'b': 1,
        'kb': 1024 ** 1,
        'mb': 1024 ** 2,
        'gb': 1024 ** 3
    }

    return int(value * multipliers[unit])

def format_file_size(size: int) -> str:
    """Format a byte count the way the receiver screen shows it (B, KB, MB)."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"

def origin_of(url: str | None) -> str:
    """Return the ``scheme://host[:port]`` origin of *url*, or '' if it has none."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"

def url_matches(pattern: str, url: str) -> bool:
    """Match a tab URL against a ``https://host/*`` style pattern."""
    return fnmatchcase(url, pattern)

def parse_timestamp(value) -> datetime | None:
    """Parse an envelope timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (a trailing ``Z`` included) and numbers, which
    are read as epoch milliseconds. Returns None when the value can't be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
