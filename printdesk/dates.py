"""Date-time helpers.

Timestamps are stored as naive UTC ``DateTime`` columns. Due dates submitted
by clients go through :func:`parse_due_datetime`:

- an ISO 8601 value carrying an offset (``Z`` or ``+05:30``) is honoured;
- a naive value such as ``2026-01-23T14:41`` is read as civil time in the
  organization's zone, so every client submitting the same wall-clock value
  lands on the same UTC instant whatever the browser's own zone was;
- a naive value that never occurs on the local clock (skipped by a
  daylight-saving jump) is rejected; one that occurs twice (clocks going
  back) resolves to the first occurrence.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from printdesk.errors import ValidationError


def utcnow():
    """Current time as naive UTC, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def resolve_zone(tz_name):
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f'Unknown time zone: {tz_name}') from e


def parse_due_datetime(value, tz_name):
    """Parse a client due date into naive UTC.

    Args:
        value: ISO 8601 date-time string
        tz_name: IANA zone used when ``value`` has no offset

    Raises:
        ValidationError: If the value is missing or not parseable, or names
            a local time skipped by a daylight-saving change
    """
    if not value or not isinstance(value, str):
        raise ValidationError('due_at is required')

    text = value.strip()
    # fromisoformat() only accepts a trailing Z from Python 3.11 on
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f'Invalid due_at: {value}') from e

    if parsed.tzinfo is None:
        zone = resolve_zone(tz_name)
        wall_clock = parsed
        parsed = wall_clock.replace(tzinfo=zone)
        if parsed.astimezone(timezone.utc).astimezone(zone).replace(tzinfo=None) != wall_clock:
            raise ValidationError(f'Invalid due_at: {value} does not exist in {tz_name}')

    return parsed.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_utc(value):
    """Serialize a stored naive UTC value as ``YYYY-MM-DDTHH:MM:SSZ``."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec='seconds') + 'Z'
