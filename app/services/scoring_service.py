"""
Scoring Engine for Oscars Pool

Realized scores against announced winners, and "possible points" (what a
ballot could still reach). The leaderboard, the standings and the pool
submissions list all go through tally_ballot() so they cannot drift apart.
"""

import logging

from flask import current_app

from app import db
from app.models import Category, Pool, Prediction
from app.services.exceptions import NotFoundError
from app.services.winner_service import WinnerService
from app.utils.categories import base_category_id
from app.utils.performance import timer
from app.utils.scoring import DEFAULT_FORMULA, multiplier_for_pick
from app.utils.submission_names import build_fallback_name_map, resolve_submission_name

logger = logging.getLogger(__name__)


def multiplier_settings(settings):
    """(enabled, formula) for a pool; pools without settings use the app default"""
    if settings is None:
        return True, current_app.config.get("DEFAULT_MULTIPLIER_FORMULA", DEFAULT_FORMULA)
    return bool(settings.odds_multiplier_enabled), settings.odds_multiplier_formula


def category_points(settings, base_id, category):
    default_points = (
        category.default_points
        if category is not None
        else Category.default_points_for(base_id)
    )
    if settings is None:
        return default_points
    return settings.points_for(base_id, default_points)


def tally_ballot(predictions, winners, categories, settings):
    """
    Score one member's ballot.

    Args:
        predictions: {base category id: Prediction}
        winners: {base category id: winning nominee id}
        categories: Category rows of the pool's year, in display order
        settings: PoolSettings of the pool, or None

    Returns:
        dict with earned, possible, correct_count, filled and a breakdown
        entry for every category that has both a winner and a pick.
    """
    enabled, formula = multiplier_settings(settings)
    by_base_id = {category.base_id: category for category in categories}

    # Year categories first, then anything a winner or pick refers to outside them
    ordered_ids = [category.base_id for category in categories]
    ordered_ids += sorted((set(predictions) | set(winners)) - set(by_base_id))

    tally = {
        "earned": 0.0,
        "possible": 0.0,
        "correct_count": 0,
        "filled": sum(1 for base_id in predictions if base_id in by_base_id),
        "breakdown": [],
    }

    for base_id in ordered_ids:
        prediction = predictions.get(base_id)
        if prediction is None:
            continue

        category = by_base_id.get(base_id)
        base_points = category_points(settings, base_id, category)
        multiplier = multiplier_for_pick(prediction.odds_percentage, enabled, formula)
        winner_id = winners.get(base_id)

        if winner_id is None:
            tally["possible"] += base_points * multiplier
            continue

        is_correct = prediction.nominee_id == winner_id
        adjusted_points = base_points * multiplier if is_correct else 0.0
        if is_correct:
            tally["earned"] += adjusted_points
            tally["possible"] += adjusted_points
            tally["correct_count"] += 1

        tally["breakdown"].append(
            {
                "category_id": base_id,
                "category_name": category.name if category else base_id,
                "nominee_id": prediction.nominee_id,
                "winner_nominee_id": winner_id,
                "is_correct": is_correct,
                "base_points": base_points,
                "multiplier": multiplier if is_correct else 1.0,
                "adjusted_points": adjusted_points,
                "odds_percentage": prediction.odds_percentage,
                "has_odds": prediction.odds_percentage is not None,
            }
        )

    return tally


def group_predictions_by_user(predictions):
    grouped = {}
    for prediction in predictions:
        grouped.setdefault(prediction.user_id, {})[
            base_category_id(prediction.category_id)
        ] = prediction
    return grouped


class ScoringService:
    def __init__(self, winner_service=None):
        self.winner_service = winner_service or WinnerService()

    def _get_pool(self, pool_id):
        pool = db.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundError("Pool not found")
        return pool

    def _pool_context(self, pool):
        """Everything a tally needs for one pool, loaded once"""
        predictions = Prediction.query.filter_by(pool_id=pool.id).all()
        return {
            "members": pool.get_members_in_join_order(),
            "predictions": group_predictions_by_user(predictions),
            "winners": self.winner_service.get_effective_winners(pool),
            "categories": Category.get_for_year(pool.year),
            "settings": pool.settings,
        }

    @timer
    def calculate_scores(self, pool_id):
        """Leaderboard of realized scores, highest first; ties keep join order"""
        pool = self._get_pool(pool_id)
        context = self._pool_context(pool)

        scores = []
        for member in context["members"]:
            tally = tally_ballot(
                context["predictions"].get(member.user_id, {}),
                context["winners"],
                context["categories"],
                context["settings"],
            )
            scores.append(
                {
                    "user_id": member.user_id,
                    "username": member.user.username,
                    "total_score": tally["earned"],
                    "correct_count": tally["correct_count"],
                    "breakdown": tally["breakdown"],
                }
            )

        scores.sort(key=lambda score: score["total_score"], reverse=True)

        return {
            "pool_id": pool.id,
            "scores": scores,
            "total_categories": len(context["winners"]),
        }

    def get_user_score(self, pool_id, user_id):
        result = self.calculate_scores(pool_id)
        for score in result["scores"]:
            if score["user_id"] == user_id:
                return score
        raise NotFoundError("User score not found")

    @timer
    def get_standings(self, pool_id, completed_only=True, limit=None):
        """
        Standings by possible points, then current score.

        With completed_only, ballots missing any category are left out.
        """
        pool = self._get_pool(pool_id)
        context = self._pool_context(pool)
        total_categories = len(context["categories"])
        fallback_names = build_fallback_name_map(context["members"])

        standings = []
        for member in context["members"]:
            tally = tally_ballot(
                context["predictions"].get(member.user_id, {}),
                context["winners"],
                context["categories"],
                context["settings"],
            )
            if completed_only and tally["filled"] < total_categories:
                continue
            standings.append(
                {
                    "user_id": member.user_id,
                    "submission_name": resolve_submission_name(
                        member.submission_name, fallback_names[member.user_id]
                    ),
                    "current_score": tally["earned"],
                    "possible_points": tally["possible"],
                    "correct_count": tally["correct_count"],
                }
            )

        standings.sort(
            key=lambda entry: (entry["possible_points"], entry["current_score"]),
            reverse=True,
        )
        total_members = len(standings)
        if limit is not None:
            standings = standings[:limit]
        for rank, entry in enumerate(standings, 1):
            entry["rank"] = rank

        return {
            "pool": {"id": pool.id, "year": pool.year},
            "standings": standings,
            "total_members": total_members,
            "total_categories": total_categories,
        }

    def get_global_standings(self, year, limit=10):
        """Top completed ballots of the year's global pool"""
        global_pool = Pool.get_global_pool(year)
        if not global_pool:
            logger.debug(f"No global pool for {year}, returning empty standings")
            return {"pool": None, "standings": [], "total_members": 0}
        return self.get_standings(global_pool.id, completed_only=True, limit=limit)
