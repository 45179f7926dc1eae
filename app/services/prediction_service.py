"""
Prediction Lifecycle Manager

Creates and updates a user's pick per (pool, category), captures the odds
at pick time, keeps the "original odds" baseline of the current nominee
choice, and ratchets stored odds downward as the market drifts.

Stored odds are only ever lowered by the upgrade path. Switching nominee
resets the baseline. Once a winner is announced for a category, its
predictions in that pool are frozen.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Category, Nominee, Pool, PoolMember, Prediction
from app.services.exceptions import (
    BallotLockedError,
    InvalidRequestError,
    NotAMemberError,
    NotFoundError,
)
from app.services.odds_service import OddsService
from app.services.winner_service import WinnerService
from app.utils.ballot_lock import ballot_lock_message, is_ballot_locked
from app.utils.cache_utils import invalidate_model_cache
from app.utils.categories import base_category_id, full_category_id

logger = logging.getLogger(__name__)

# Minimum drop in odds (percentage points) before a stored value is rewritten
UPGRADE_EPSILON = 0.01


def _known_odds(odds):
    if odds is None or odds <= 0:
        return None
    return odds


def ratchet_target(current_odds, original_odds):
    """Lowest known value of current and original odds, or None"""
    known = [
        odds
        for odds in (_known_odds(current_odds), _known_odds(original_odds))
        if odds is not None
    ]
    return min(known) if known else None


def should_upgrade(stored_odds, target):
    if target is None:
        return False
    if stored_odds is None:
        return True
    return target < stored_odds - UPGRADE_EPSILON


class PredictionService:
    def __init__(self, odds_service=None, winner_service=None):
        self.odds_service = odds_service or OddsService()
        self.winner_service = winner_service or WinnerService()

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _get_member_pool(self, user_id, pool_id):
        pool = db.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundError("Pool not found")
        if not pool.is_user_member(user_id):
            raise NotAMemberError()
        return pool

    def _assert_ballot_open(self, pool, base_id):
        if is_ballot_locked():
            raise BallotLockedError(ballot_lock_message())
        self._assert_category_open(pool, base_id)

    def _assert_category_open(self, pool, base_id):
        """Winner lock only; odds upgrades keep running past the ballot deadline"""
        if self.winner_service.is_category_locked(pool, base_id):
            logger.info(
                f"Rejected write to locked category {base_id} in pool {pool.id}"
            )
            raise BallotLockedError()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_or_update_prediction(self, user_id, pool_id, category_id, nominee_id):
        """
        Create or update the user's pick for one category.

        Args:
            user_id: Member making the pick
            pool_id: Pool the pick belongs to
            category_id: Base or composite category id
            nominee_id: Nominee being picked

        Returns:
            The stored prediction as a dict, plus the freshly fetched
            ``current_odds``. The stored odds are what scoring uses.
        """
        pool = self._get_member_pool(user_id, pool_id)
        base_id = base_category_id(category_id)
        full_id = full_category_id(base_id, pool.year)

        self._assert_ballot_open(pool, base_id)

        if not db.session.get(Category, full_id):
            raise NotFoundError("Category not found")
        if not db.session.get(Nominee, (nominee_id, full_id)):
            raise InvalidRequestError("Nominee is not part of this category")

        current_odds = self.odds_service.get_current_odds(full_id, nominee_id)

        try:
            prediction = (
                Prediction.query.filter_by(
                    pool_id=pool.id, user_id=user_id, category_id=base_id
                )
                .with_for_update()
                .first()
            )

            if prediction is None:
                prediction = Prediction(
                    pool_id=pool.id,
                    user_id=user_id,
                    category_id=base_id,
                    nominee_id=nominee_id,
                    odds_percentage=current_odds,
                    original_odds_percentage=current_odds,
                )
                db.session.add(prediction)
            elif prediction.nominee_id == nominee_id:
                prediction.odds_percentage = current_odds
                if prediction.original_odds_percentage is None:
                    prediction.original_odds_percentage = current_odds
            else:
                # Switching nominee starts a new baseline
                prediction.nominee_id = nominee_id
                prediction.odds_percentage = current_odds
                prediction.original_odds_percentage = current_odds

            db.session.flush()

            # A winner may have been entered since the request started
            if self.winner_service.is_category_locked(pool, base_id):
                db.session.rollback()
                logger.info(
                    f"Winner announced for {base_id} in pool {pool.id} during write, "
                    f"discarding pick by user {user_id}"
                )
                raise BallotLockedError()

            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"Failed to save prediction for user {user_id}, pool {pool.id}, {base_id}: {e}"
            )
            raise

        logger.info(
            f"User {user_id} picked {nominee_id} for {base_id} in pool {pool.id} "
            f"(odds={current_odds})"
        )
        invalidate_model_cache("scores")

        result = prediction.to_dict()
        result["current_odds"] = current_odds
        return result

    def delete_prediction(self, user_id, pool_id, category_id):
        pool = self._get_member_pool(user_id, pool_id)
        base_id = base_category_id(category_id)
        self._assert_ballot_open(pool, base_id)

        prediction = Prediction.query.filter_by(
            pool_id=pool.id, user_id=user_id, category_id=base_id
        ).first()
        if not prediction:
            raise NotFoundError("Prediction not found")

        try:
            db.session.delete(prediction)
            db.session.flush()

            # A winner may have been entered since the request started
            if self.winner_service.is_category_locked(pool, base_id):
                db.session.rollback()
                logger.info(
                    f"Winner announced for {base_id} in pool {pool.id} during delete, "
                    f"keeping pick of user {user_id}"
                )
                raise BallotLockedError()

            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        invalidate_model_cache("scores")
        return {"success": True}

    def delete_all_predictions(self, user_id, pool_id):
        """Clear a ballot, leaving categories with an announced winner in place"""
        pool = self._get_member_pool(user_id, pool_id)
        if is_ballot_locked():
            raise BallotLockedError(ballot_lock_message())

        announced = self.winner_service.get_announced_category_ids(pool)
        deleted_ids = set()
        skipped = 0

        try:
            predictions = Prediction.query.filter_by(
                pool_id=pool.id, user_id=user_id
            ).all()
            for prediction in predictions:
                if base_category_id(prediction.category_id) in announced:
                    skipped += 1
                    continue
                db.session.delete(prediction)
                deleted_ids.add(base_category_id(prediction.category_id))
            db.session.flush()

            newly_locked = (
                self.winner_service.get_announced_category_ids(pool) & deleted_ids
            )
            if newly_locked:
                db.session.rollback()
                raise BallotLockedError(
                    "Winners were announced while clearing the ballot: "
                    + ", ".join(sorted(newly_locked))
                )

            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if skipped:
            logger.info(
                f"Kept {skipped} locked predictions while clearing ballot of user "
                f"{user_id} in pool {pool.id}"
            )
        invalidate_model_cache("scores")
        return {
            "success": True,
            "deleted": len(deleted_ids),
            "skipped_categories": skipped,
        }

    def copy_predictions_from_pool(self, user_id, target_pool_id, source_pool_id):
        """
        Copy a ballot from another pool of the same year.

        Each copied pick gets a fresh baseline from the current odds; the
        source pool's drift history is not carried over. Categories locked
        in the target pool are skipped.
        """
        target_pool = self._get_member_pool(user_id, target_pool_id)
        source_pool = self._get_member_pool(user_id, source_pool_id)

        if target_pool.id == source_pool.id:
            raise InvalidRequestError("Cannot copy predictions from the same pool")
        if target_pool.year != source_pool.year:
            raise InvalidRequestError("Pools must be for the same award year")
        if is_ballot_locked():
            raise BallotLockedError(ballot_lock_message())

        source_predictions = Prediction.query.filter_by(
            pool_id=source_pool.id, user_id=user_id
        ).all()
        if not source_predictions:
            raise NotFoundError("No predictions found in source pool")

        announced = self.winner_service.get_announced_category_ids(target_pool)
        current = self.odds_service.get_current_odds_for_many(
            (full_category_id(p.category_id, target_pool.year), p.nominee_id)
            for p in source_predictions
        )

        copied_ids = set()
        skipped = 0
        try:
            for source in source_predictions:
                base_id = base_category_id(source.category_id)
                if base_id in announced:
                    skipped += 1
                    continue

                odds = current.get(
                    (full_category_id(base_id, target_pool.year), source.nominee_id)
                )
                prediction = Prediction.query.filter_by(
                    pool_id=target_pool.id, user_id=user_id, category_id=base_id
                ).first()
                if prediction is None:
                    prediction = Prediction(
                        pool_id=target_pool.id, user_id=user_id, category_id=base_id
                    )
                    db.session.add(prediction)
                prediction.nominee_id = source.nominee_id
                prediction.odds_percentage = odds
                prediction.original_odds_percentage = odds
                copied_ids.add(base_id)

            db.session.flush()

            newly_locked = (
                self.winner_service.get_announced_category_ids(target_pool) & copied_ids
            )
            if newly_locked:
                db.session.rollback()
                raise BallotLockedError(
                    "Winners were announced while copying: " + ", ".join(sorted(newly_locked))
                )

            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"Failed to copy predictions from pool {source_pool.id} to {target_pool.id}: {e}"
            )
            raise

        logger.info(
            f"User {user_id} copied {len(copied_ids)} predictions from pool "
            f"{source_pool.id} to pool {target_pool.id} ({skipped} locked)"
        )
        invalidate_model_cache("scores")
        return {
            "copied": len(copied_ids),
            "skipped": skipped,
            "total": len(source_predictions),
        }

    # ------------------------------------------------------------------
    # Odds ratchet
    # ------------------------------------------------------------------

    def _apply_ratchet(self, prediction, current_odds):
        """Lower stored odds toward the ratchet target; returns True if changed"""
        target = ratchet_target(current_odds, prediction.original_odds_percentage)
        if not should_upgrade(prediction.odds_percentage, target):
            return False
        prediction.odds_percentage = target
        return True

    def upgrade_odds_if_better(self, user_id, pool_id, category_id):
        pool = self._get_member_pool(user_id, pool_id)
        base_id = base_category_id(category_id)
        self._assert_category_open(pool, base_id)

        prediction = Prediction.query.filter_by(
            pool_id=pool.id, user_id=user_id, category_id=base_id
        ).first()
        if not prediction:
            raise NotFoundError("Prediction not found")

        current_odds = self.odds_service.get_current_odds(
            full_category_id(base_id, pool.year), prediction.nominee_id
        )
        old_odds = prediction.odds_percentage

        upgraded = self._apply_ratchet(prediction, current_odds)
        if upgraded:
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise
            logger.info(
                f"Upgraded odds for user {user_id}, pool {pool.id}, {base_id}: "
                f"{old_odds} -> {prediction.odds_percentage}"
            )
            invalidate_model_cache("scores")

        result = prediction.to_dict()
        result.update(current_odds=current_odds, upgraded=upgraded, old_odds=old_odds)
        return result

    def upgrade_all_predictions_for_category(self, category_id, year):
        """
        Ratchet every prediction for a category across all pools of a year.

        Categories locked in a pool are left alone. A failing row is logged
        and counted; the batch carries on.
        """
        base_id = base_category_id(category_id)
        full_id = full_category_id(base_id, year)
        summary = {"checked": 0, "upgraded": 0, "failed": 0}

        for pool in Pool.query.filter_by(year=str(year)).all():
            if self.winner_service.is_category_locked(pool, base_id):
                continue

            predictions = Prediction.query.filter_by(
                pool_id=pool.id, category_id=base_id
            ).all()
            if not predictions:
                continue

            current = self.odds_service.get_current_odds_for_many(
                (full_id, prediction.nominee_id) for prediction in predictions
            )

            for prediction in predictions:
                summary["checked"] += 1
                try:
                    with db.session.begin_nested():
                        upgraded = self._apply_ratchet(
                            prediction, current.get((full_id, prediction.nominee_id))
                        )
                    if upgraded:
                        summary["upgraded"] += 1
                except Exception as e:
                    summary["failed"] += 1
                    logger.warning(
                        f"Failed to upgrade prediction {prediction.id} "
                        f"(pool {pool.id}, {base_id}): {e}"
                    )

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if summary["upgraded"]:
            invalidate_model_cache("scores")
        if summary["failed"]:
            logger.warning(
                f"Upgrade for {full_id} finished with {summary['failed']} failures "
                f"({summary['upgraded']}/{summary['checked']} upgraded)"
            )
        return summary

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_predictions(self, user_id, pool_id):
        pool = self._get_member_pool(user_id, pool_id)
        predictions = (
            Prediction.query.filter_by(pool_id=pool.id, user_id=user_id)
            .order_by(Prediction.category_id)
            .all()
        )
        return [prediction.to_dict() for prediction in predictions]

    def get_all_pool_predictions(self, pool_id, user_id):
        """Every member's predictions in the pool, for members only"""
        pool = self._get_member_pool(user_id, pool_id)
        predictions = (
            Prediction.query.filter_by(pool_id=pool.id)
            .order_by(Prediction.user_id, Prediction.category_id)
            .all()
        )
        return [prediction.to_dict() for prediction in predictions]

    def get_user_other_pool_submissions(self, user_id, exclude_pool_id):
        """Completed ballots of the user in other pools of the same year"""
        pool = db.session.get(Pool, exclude_pool_id)
        if not pool:
            raise NotFoundError("Pool not found")

        total_categories = Category.query.filter_by(year=pool.year).count()
        if not total_categories:
            return []

        memberships = PoolMember.query.filter(
            PoolMember.user_id == user_id, PoolMember.pool_id != pool.id
        ).all()

        submissions = []
        for membership in memberships:
            other = membership.pool
            if other.year != pool.year:
                continue
            count = Prediction.query.filter_by(pool_id=other.id, user_id=user_id).count()
            if count == total_categories:
                submissions.append(
                    {
                        "pool_id": other.id,
                        "pool_name": other.name,
                        "year": other.year,
                        "submission_name": membership.submission_name,
                        "prediction_count": count,
                        "total_categories": total_categories,
                    }
                )
        return submissions
