"""
Global ballot deadline

Independent of per-category winner locks, a deployment may close every
ballot at a fixed instant (BALLOT_LOCK_AT). Unset means no deadline.
"""

from flask import current_app

from app.utils.timezone_utils import format_lock_time, get_utc_time, parse_timestamp


def get_ballot_lock_time():
    value = current_app.config.get("BALLOT_LOCK_AT")
    if not value:
        return None
    return parse_timestamp(value)


def is_ballot_locked(now=None):
    lock_time = get_ballot_lock_time()
    if lock_time is None:
        return False
    now = now or get_utc_time()
    return now >= lock_time


def ballot_lock_message():
    return f"Ballot submissions are locked as of {format_lock_time(get_ballot_lock_time())}."
