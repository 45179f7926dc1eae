"""
Reference data loader

Categories and nominees for an award year come from a JSON file shaped
like:

    {"2026": [{"id": "best-picture", "name": "Best Picture",
               "defaultPoints": 10,
               "nominees": [{"id": "anora", "name": "Anora", "film": "Anora"}]}]}

A bare list of categories is accepted as well. Loading is an upsert, so it
can be re-run after nominee corrections without touching predictions.
"""

import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Category, Nominee, Pool, User
from app.services.exceptions import InvalidRequestError
from app.services.pool_service import PoolService
from app.utils.categories import base_category_id, full_category_id

logger = logging.getLogger(__name__)


def read_nominees_file(path, year):
    """Category entries for a year from a nominees JSON file"""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)

    if isinstance(data, dict):
        data = data.get(str(year))
        if data is None:
            raise InvalidRequestError(f"No categories for {year} in {path}")
    if not isinstance(data, list):
        raise InvalidRequestError("Nominees file must hold a list of categories")
    return data


def _entry_points(entry, base_id):
    points = entry.get("defaultPoints", entry.get("default_points"))
    if points is None:
        return Category.default_points_for(base_id)
    if isinstance(points, bool) or not isinstance(points, (int, float)) or points < 0:
        raise InvalidRequestError(f"Invalid default points for {base_id}")
    return points


class ReferenceDataService:
    def __init__(self, pool_service=None):
        self.pool_service = pool_service or PoolService()

    def load_categories(self, year, entries):
        """Upsert categories and their nominees; returns row counts"""
        year = str(year)
        summary = {"categories": 0, "nominees": 0}

        try:
            for order, entry in enumerate(entries, 1):
                if not isinstance(entry, dict) or not entry.get("id") or not entry.get("name"):
                    raise InvalidRequestError(f"Category entry {order} needs an id and a name")

                base_id = base_category_id(entry["id"])
                full_id = full_category_id(base_id, year)
                points = _entry_points(entry, base_id)

                category = db.session.get(Category, full_id)
                if category is None:
                    category = Category(base_id=base_id, year=year, name=entry["name"])
                    db.session.add(category)
                category.name = entry["name"]
                category.default_points = points
                category.display_order = order
                summary["categories"] += 1

                for nominee_entry in entry.get("nominees") or []:
                    nominee_id = nominee_entry.get("id")
                    if not nominee_id or not nominee_entry.get("name"):
                        raise InvalidRequestError(
                            f"Nominee in {base_id} needs an id and a name"
                        )
                    nominee = db.session.get(Nominee, (nominee_id, full_id))
                    if nominee is None:
                        nominee = Nominee(id=nominee_id, category_id=full_id)
                        db.session.add(nominee)
                    nominee.name = nominee_entry["name"]
                    nominee.film = nominee_entry.get("film")
                    summary["nominees"] += 1

            db.session.commit()
        except (InvalidRequestError, SQLAlchemyError):
            db.session.rollback()
            raise

        logger.info(
            f"Loaded {summary['categories']} categories and {summary['nominees']} "
            f"nominees for {year}"
        )
        return summary

    def ensure_superuser(self, username, email):
        user = User.query.filter_by(email=email).first()
        if user:
            if not user.is_superuser:
                user.role = User.ROLE_SUPERUSER
                db.session.commit()
            return user

        try:
            user = User(username=username, email=email, role=User.ROLE_SUPERUSER)
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info(f"Created superuser {username}")
        return user

    def ensure_global_pool(self, year, owner):
        """The year's public global pool; returns (pool, created)"""
        pool = Pool.get_global_pool(year)
        if pool:
            return pool, False

        pool = self.pool_service.create_pool(
            Pool.global_pool_name(year), year, owner, is_public=True
        )
        return pool, True
