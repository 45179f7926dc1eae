"""
Pool Submission Aggregator and pool settings

Per-member ballot summaries (completeness, correct picks, earned and
possible points) built on the same tally as the standings, plus pool
creation and owner-managed scoring settings.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Category, Pool, PoolSettings, Prediction
from app.services.exceptions import (
    InvalidRequestError,
    NotAMemberError,
    NotFoundError,
    PermissionDeniedError,
    SettingsLockedError,
)
from app.services.scoring_service import group_predictions_by_user, tally_ballot
from app.services.winner_service import WinnerService
from app.utils.cache_utils import invalidate_model_cache
from app.utils.categories import base_category_id
from app.utils.performance import timer
from app.utils.scoring import DEFAULT_FORMULA, MULTIPLIER_FORMULAS
from app.utils.submission_names import build_fallback_name_map, resolve_submission_name

logger = logging.getLogger(__name__)


def round_points(value):
    """One decimal, halves rounded up (5.25 -> 5.3)"""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class PoolService:
    def __init__(self, winner_service=None):
        self.winner_service = winner_service or WinnerService()

    def _get_pool(self, pool_id):
        pool = db.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundError("Pool not found")
        return pool

    def get_pool_for_member(self, pool_id, user):
        pool = self._get_pool(pool_id)
        if not user.is_superuser and not pool.is_user_member(user.id):
            raise NotAMemberError()
        return pool

    def create_pool(self, name, year, owner, is_public=False, submission_name=None):
        """Create a pool; the owner joins it and default settings are written"""
        name = (name or "").strip()
        if not name:
            raise InvalidRequestError("Pool name is required")
        year = str(year)

        try:
            pool = Pool(name=name, year=year, is_public=is_public, owner_id=owner.id)
            db.session.add(pool)
            db.session.flush()

            pool.add_member(owner, submission_name=submission_name)
            db.session.add(
                PoolSettings(
                    pool_id=pool.id,
                    category_points={},
                    odds_multiplier_enabled=True,
                    odds_multiplier_formula=current_app.config.get(
                        "DEFAULT_MULTIPLIER_FORMULA", DEFAULT_FORMULA
                    ),
                )
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create pool '{name}' for {year}: {e}")
            raise

        logger.info(f"Pool {pool.id} '{pool.name}' ({year}) created by user {owner.id}")
        return pool

    @timer
    def get_pool_submissions(self, pool_id):
        """
        Ballot summary for every member of a pool.

        Points are rounded to one decimal. Members without a custom
        submission name get "Ballot #N" by join order.
        """
        pool = self._get_pool(pool_id)
        members = pool.get_members_in_join_order()
        categories = Category.get_for_year(pool.year)
        winners = self.winner_service.get_effective_winners(pool)
        predictions = group_predictions_by_user(
            Prediction.query.filter_by(pool_id=pool.id).all()
        )
        fallback_names = build_fallback_name_map(members)
        total_categories = len(categories)

        submissions = []
        for member in members:
            tally = tally_ballot(
                predictions.get(member.user_id, {}), winners, categories, pool.settings
            )
            submissions.append(
                {
                    "user_id": member.user_id,
                    "submission_name": resolve_submission_name(
                        member.submission_name, fallback_names[member.user_id]
                    ),
                    "filled_categories": tally["filled"],
                    "total_categories": total_categories,
                    "is_complete": tally["filled"] == total_categories,
                    "correct_count": tally["correct_count"],
                    "total_possible_points": round_points(tally["possible"]),
                    "total_earned_points": round_points(tally["earned"]),
                    "has_paid": bool(member.has_paid),
                    "joined_at": member.joined_at.isoformat() if member.joined_at else None,
                }
            )

        submissions.sort(
            key=lambda s: (s["total_earned_points"], s["total_possible_points"]),
            reverse=True,
        )
        return submissions

    def get_settings(self, pool_id, user):
        pool = self.get_pool_for_member(pool_id, user)
        if pool.settings is None:
            return {
                "pool_id": pool.id,
                "category_points": {},
                "odds_multiplier_enabled": True,
                "odds_multiplier_formula": current_app.config.get(
                    "DEFAULT_MULTIPLIER_FORMULA", DEFAULT_FORMULA
                ),
                "updated_at": None,
            }
        return pool.settings.to_dict()

    def update_settings(
        self,
        pool_id,
        user,
        category_points=None,
        odds_multiplier_enabled=None,
        odds_multiplier_formula=None,
    ):
        """Owner (or superuser) edit of scoring settings, frozen once any winner is in"""
        pool = self._get_pool(pool_id)
        if not user.is_superuser and not pool.is_owner(user.id):
            raise PermissionDeniedError("Only the pool owner can update settings")

        if self.winner_service.has_announced_winners(pool):
            raise SettingsLockedError()

        if (
            odds_multiplier_formula is not None
            and odds_multiplier_formula not in MULTIPLIER_FORMULAS
        ):
            raise InvalidRequestError(
                f"Unknown multiplier formula '{odds_multiplier_formula}'"
            )

        points = None
        if category_points is not None:
            if not isinstance(category_points, dict):
                raise InvalidRequestError("category_points must be an object")
            points = {}
            for category_id, value in category_points.items():
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise InvalidRequestError(f"Points for {category_id} must be a number")
                if value < 0:
                    raise InvalidRequestError(f"Points for {category_id} cannot be negative")
                points[base_category_id(category_id)] = value

        try:
            settings = pool.settings
            if settings is None:
                settings = PoolSettings(
                    pool_id=pool.id,
                    category_points={},
                    odds_multiplier_formula=current_app.config.get(
                        "DEFAULT_MULTIPLIER_FORMULA", DEFAULT_FORMULA
                    ),
                )
                db.session.add(settings)

            if points is not None:
                # Reassign so the JSON column is flagged as changed
                settings.category_points = points
            if odds_multiplier_enabled is not None:
                settings.odds_multiplier_enabled = bool(odds_multiplier_enabled)
            if odds_multiplier_formula is not None:
                settings.odds_multiplier_formula = odds_multiplier_formula

            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to update settings for pool {pool.id}: {e}")
            raise

        invalidate_model_cache("scores")
        logger.info(f"Settings for pool {pool.id} updated by user {user.id}")
        return settings.to_dict()
