"""
Category id helpers

Categories are identified by a base id ("best-picture") and an award year.
Odds snapshots and the Category table use the composite id
("best-picture-2026"); predictions, winners and pool settings use the base id.
Every conversion between the two goes through this module.
"""

import re

YEAR_SUFFIX = re.compile(r"-(\d{4})$")


def base_category_id(category_id):
    """Strip a trailing 4-digit year suffix, if any"""
    if not category_id:
        return category_id
    return YEAR_SUFFIX.sub("", category_id)


def category_year(category_id):
    """Return the year suffix of a composite id, or None for a base id"""
    match = YEAR_SUFFIX.search(category_id or "")
    return match.group(1) if match else None


def full_category_id(category_id, year):
    """Build the composite id for a base (or already composite) id"""
    return f"{base_category_id(category_id)}-{year}"
