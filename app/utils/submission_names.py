"""
Ballot display names

Members without a custom submission name are shown as "Ballot #N", numbered
by join order. Emails are never used as a display name.
"""

from datetime import datetime


def _join_time(member):
    if member.joined_at is None:
        return datetime.min
    return member.joined_at.replace(tzinfo=None)


def build_fallback_name_map(members, label="Ballot"):
    """Map user_id -> "<label> #N" ordered by joined_at, then user_id"""
    ordered = sorted(
        members,
        key=lambda member: (_join_time(member), member.user_id),
    )
    return {
        member.user_id: f"{label} #{index}" for index, member in enumerate(ordered, 1)
    }


def resolve_submission_name(submission_name, fallback_name):
    trimmed = (submission_name or "").strip()
    return trimmed or fallback_name
