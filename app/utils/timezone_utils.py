"""
Timezone utility functions for the Oscars Pool application

Timestamps are stored as naive UTC; everything that crosses into a query
goes through to_storage_time().
"""

from datetime import datetime, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def convert_to_utc(dt):
    """Convert a datetime to UTC"""
    if dt is None:
        return None

    # If datetime is naive, assume it's in the application timezone
    if dt.tzinfo is None:
        app_tz = get_app_timezone()
        dt = app_tz.localize(dt)

    return dt.astimezone(timezone.utc)


def to_storage_time(dt):
    """Naive UTC datetime as stored in DateTime columns"""
    if dt is None:
        return None
    return convert_to_utc(dt).replace(tzinfo=None)


def storage_now():
    return get_utc_time().replace(tzinfo=None)


def parse_timestamp(value):
    """Parse an ISO 8601 string (a trailing "Z" is accepted) into a UTC datetime"""
    if isinstance(value, datetime):
        return convert_to_utc(value)
    if not value or not isinstance(value, str):
        raise ValueError("Timestamp is required")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return convert_to_utc(datetime.fromisoformat(text))


def format_lock_time(dt, format_str="%B %d, %Y at %I:%M %p %Z"):
    """Format the ballot deadline in the application's timezone"""
    if dt is None:
        return "TBD"

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(get_app_timezone()).strftime(format_str)


def get_award_year():
    """Award year in play: AWARD_YEAR if configured, else the current UTC year"""
    configured = current_app.config.get("AWARD_YEAR")
    if configured:
        return str(configured)
    return str(get_utc_time().year)
