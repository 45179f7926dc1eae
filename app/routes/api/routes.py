from flask import jsonify, request
from flask_login import current_user, login_required

from app import limiter
from app.models import Category
from app.routes.api import bp
from app.services.exceptions import InvalidRequestError
from app.services.odds_service import OddsService
from app.services.pool_service import PoolService
from app.services.prediction_service import PredictionService
from app.services.scoring_service import ScoringService
from app.services.winner_service import WinnerService
from app.utils.cache_utils import cached_route
from app.utils.categories import category_year, full_category_id
from app.utils.timezone_utils import get_award_year, parse_timestamp

odds_service = OddsService()
winner_service = WinnerService()
prediction_service = PredictionService(odds_service=odds_service, winner_service=winner_service)
scoring_service = ScoringService(winner_service=winner_service)
pool_service = PoolService(winner_service=winner_service)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return data


def _required(data, *fields):
    missing = [field for field in fields if not data.get(field)]
    if missing:
        raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")
    return [data[field] for field in fields]


def _odds_category_id(category_id):
    """Odds are keyed by composite id; a bare base id means the current award year"""
    if category_year(category_id):
        return category_id
    return full_category_id(category_id, get_award_year())


def _bool_arg(name, default):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


# ----------------------------------------------------------------------
# Account and categories
# ----------------------------------------------------------------------


@bp.route("/me")
@login_required
def me():
    return jsonify(
        {
            "user": current_user.to_dict(),
            "pools": [pool.to_dict() for pool in current_user.get_pools()],
        }
    )


@bp.route("/categories")
@cached_route(timeout=3600, key_prefix="categories")
def categories():
    """Categories of an award year with their nominees (public)"""
    year = request.args.get("year") or get_award_year()
    return {
        "year": year,
        "categories": [
            category.to_dict(include_nominees=True)
            for category in Category.get_for_year(year)
        ],
    }


# ----------------------------------------------------------------------
# Odds
# ----------------------------------------------------------------------


@bp.route("/odds/category/<category_id>")
@cached_route(timeout=300, key_prefix="odds")
def category_odds(category_id):
    """Current odds for every nominee of a category (public)"""
    category_id = _odds_category_id(category_id)
    nominees = odds_service.get_category_odds(category_id)
    if nominees is None:
        return {"error": "Category not found"}, 404
    return {"category_id": category_id, "nominees": nominees}


@bp.route("/odds/<category_id>/<nominee_id>")
@login_required
def current_odds(category_id, nominee_id):
    category_id = _odds_category_id(category_id)
    return jsonify(
        {
            "category_id": category_id,
            "nominee_id": nominee_id,
            "odds_percentage": odds_service.get_current_odds(category_id, nominee_id),
        }
    )


@bp.route("/odds/<category_id>/<nominee_id>/at-time", methods=["POST"])
@login_required
def odds_at_time(category_id, nominee_id):
    data = _json_body()
    (timestamp,) = _required(data, "timestamp")
    try:
        when = parse_timestamp(timestamp)
    except ValueError:
        raise InvalidRequestError("timestamp must be an ISO 8601 date-time")

    category_id = _odds_category_id(category_id)
    return jsonify(
        {
            "category_id": category_id,
            "nominee_id": nominee_id,
            "timestamp": when.isoformat(),
            "odds_percentage": odds_service.get_odds_at_time(category_id, nominee_id, when),
        }
    )


@bp.route("/odds/<category_id>/<nominee_id>/history")
@login_required
def odds_history(category_id, nominee_id):
    category_id = _odds_category_id(category_id)
    return jsonify(
        {
            "category_id": category_id,
            "nominee_id": nominee_id,
            "history": odds_service.get_odds_history(category_id, nominee_id),
        }
    )


# ----------------------------------------------------------------------
# Predictions
# ----------------------------------------------------------------------


@bp.route("/predictions/pool/<int:pool_id>", methods=["PUT"])
@login_required
@limiter.limit("120 per minute")
def save_prediction(pool_id):
    """Create or update the current user's pick for one category"""
    category_id, nominee_id = _required(_json_body(), "category_id", "nominee_id")
    prediction = prediction_service.create_or_update_prediction(
        current_user.id, pool_id, category_id, nominee_id
    )
    return jsonify(prediction)


@bp.route("/predictions/pool/<int:pool_id>")
@login_required
def my_predictions(pool_id):
    return jsonify(
        {"predictions": prediction_service.get_user_predictions(current_user.id, pool_id)}
    )


@bp.route("/predictions/pool/<int:pool_id>/all")
@login_required
def all_pool_predictions(pool_id):
    return jsonify(
        {"predictions": prediction_service.get_all_pool_predictions(pool_id, current_user.id)}
    )


@bp.route("/predictions/pool/<int:pool_id>/category/<category_id>", methods=["DELETE"])
@login_required
def delete_prediction(pool_id, category_id):
    return jsonify(
        prediction_service.delete_prediction(current_user.id, pool_id, category_id)
    )


@bp.route("/predictions/pool/<int:pool_id>", methods=["DELETE"])
@login_required
def delete_all_predictions(pool_id):
    return jsonify(prediction_service.delete_all_predictions(current_user.id, pool_id))


@bp.route("/predictions/pool/<int:pool_id>/category/<category_id>/upgrade", methods=["POST"])
@login_required
def upgrade_prediction_odds(pool_id, category_id):
    return jsonify(
        prediction_service.upgrade_odds_if_better(current_user.id, pool_id, category_id)
    )


@bp.route("/predictions/pool/<int:pool_id>/copy-from/<int:source_pool_id>", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def copy_predictions(pool_id, source_pool_id):
    return jsonify(
        prediction_service.copy_predictions_from_pool(
            current_user.id, pool_id, source_pool_id
        )
    )


@bp.route("/predictions/pool/<int:pool_id>/other-submissions")
@login_required
def other_pool_submissions(pool_id):
    """Completed ballots in the user's other pools, offered as copy sources"""
    return jsonify(
        {
            "submissions": prediction_service.get_user_other_pool_submissions(
                current_user.id, pool_id
            )
        }
    )


# ----------------------------------------------------------------------
# Scores
# ----------------------------------------------------------------------


@bp.route("/scores/pool/<int:pool_id>")
@login_required
def pool_scores(pool_id):
    pool_service.get_pool_for_member(pool_id, current_user)
    return jsonify(scoring_service.calculate_scores(pool_id))


@bp.route("/scores/pool/<int:pool_id>/user/<int:user_id>")
@login_required
def user_score(pool_id, user_id):
    pool_service.get_pool_for_member(pool_id, current_user)
    return jsonify(scoring_service.get_user_score(pool_id, user_id))


@bp.route("/scores/pool/<int:pool_id>/standings")
@login_required
def pool_standings(pool_id):
    pool_service.get_pool_for_member(pool_id, current_user)
    limit = request.args.get("limit", type=int)
    return jsonify(
        scoring_service.get_standings(
            pool_id, completed_only=_bool_arg("completed_only", True), limit=limit
        )
    )


@bp.route("/scores/global/standings")
@cached_route(timeout=120, key_prefix="scores")
def global_standings():
    """Top completed ballots of the year's global pool (public)"""
    year = request.args.get("year") or get_award_year()
    limit = request.args.get("limit", default=10, type=int)
    return scoring_service.get_global_standings(year, limit=limit)


# ----------------------------------------------------------------------
# Pools, settings and winners
# ----------------------------------------------------------------------


@bp.route("/pools", methods=["POST"])
@login_required
@limiter.limit("20 per hour")
def create_pool():
    data = _json_body()
    (name,) = _required(data, "name")
    pool = pool_service.create_pool(
        name,
        data.get("year") or get_award_year(),
        current_user,
        is_public=bool(data.get("is_public", False)),
        submission_name=data.get("submission_name"),
    )
    return jsonify(pool.to_dict()), 201


@bp.route("/pools/<int:pool_id>/submissions")
@login_required
def pool_submissions(pool_id):
    pool_service.get_pool_for_member(pool_id, current_user)
    return jsonify({"submissions": pool_service.get_pool_submissions(pool_id)})


@bp.route("/settings/<int:pool_id>")
@login_required
def get_pool_settings(pool_id):
    return jsonify(pool_service.get_settings(pool_id, current_user))


@bp.route("/settings/<int:pool_id>", methods=["PUT"])
@login_required
def update_pool_settings(pool_id):
    data = _json_body()
    return jsonify(
        pool_service.update_settings(
            pool_id,
            current_user,
            category_points=data.get("category_points"),
            odds_multiplier_enabled=data.get("odds_multiplier_enabled"),
            odds_multiplier_formula=data.get("odds_multiplier_formula"),
        )
    )


@bp.route("/winners", methods=["POST"])
@login_required
def enter_winner():
    data = _json_body()
    pool_id, category_id, nominee_id = _required(
        data, "pool_id", "category_id", "nominee_id"
    )
    try:
        pool_id = int(pool_id)
    except (TypeError, ValueError):
        raise InvalidRequestError("pool_id must be an integer")

    winner = winner_service.set_winner(pool_id, category_id, nominee_id, current_user)
    return jsonify(winner.to_dict())


@bp.route("/winners/pool/<int:pool_id>")
@login_required
def pool_winners(pool_id):
    return jsonify({"winners": winner_service.get_pool_winners(pool_id, current_user)})
