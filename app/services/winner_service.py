"""
Winner Registry

Manual winner entry, auto-detected winners from resolved markets, and the
"effective" winners of a pool: the year's global pool winners overlaid with
the pool's own entries. A category with an effective winner is locked.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import ActualWinner, Category, Nominee, Pool
from app.services.exceptions import (
    InvalidRequestError,
    NotAMemberError,
    NotFoundError,
    PermissionDeniedError,
)
from app.utils.cache_utils import invalidate_model_cache
from app.utils.categories import base_category_id, category_year, full_category_id

logger = logging.getLogger(__name__)


class WinnerService:
    def get_effective_winners(self, pool):
        """Map of base category id -> winning nominee id for a pool"""
        winners = {}

        global_pool = Pool.get_global_pool(pool.year)
        if global_pool and global_pool.id != pool.id:
            for winner in ActualWinner.query.filter_by(pool_id=global_pool.id).all():
                winners[base_category_id(winner.category_id)] = winner.nominee_id

        # Pool-scoped entries take precedence over the global ones
        for winner in ActualWinner.query.filter_by(pool_id=pool.id).all():
            winners[base_category_id(winner.category_id)] = winner.nominee_id

        return winners

    def get_announced_category_ids(self, pool):
        return set(self.get_effective_winners(pool))

    def is_category_locked(self, pool, category_id):
        base_id = base_category_id(category_id)

        pool_ids = [pool.id]
        global_pool = Pool.get_global_pool(pool.year)
        if global_pool and global_pool.id != pool.id:
            pool_ids.append(global_pool.id)

        return (
            ActualWinner.query.filter(
                ActualWinner.pool_id.in_(pool_ids),
                ActualWinner.category_id.in_(
                    [base_id, full_category_id(base_id, pool.year)]
                ),
            ).first()
            is not None
        )

    def has_announced_winners(self, pool):
        return bool(self.get_effective_winners(pool))

    def set_winner(self, pool_id, category_id, nominee_id, user):
        """Enter (or correct) a category winner; pool owner or superuser only"""
        pool = db.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundError("Pool not found")

        if not user.is_superuser and not pool.is_owner(user.id):
            raise PermissionDeniedError("Only pool owner or superuser can enter winners")

        base_id = base_category_id(category_id)
        full_id = full_category_id(base_id, pool.year)
        if not db.session.get(Category, full_id):
            raise NotFoundError("Category not found")
        if not db.session.get(Nominee, (nominee_id, full_id)):
            raise InvalidRequestError("Nominee is not part of this category")

        try:
            winner = ActualWinner.query.filter_by(
                pool_id=pool.id, category_id=base_id
            ).first()
            if winner:
                winner.nominee_id = nominee_id
                winner.entered_by = user.id
                winner.is_auto_detected = False
            else:
                winner = ActualWinner(
                    pool_id=pool.id,
                    category_id=base_id,
                    nominee_id=nominee_id,
                    entered_by=user.id,
                    is_auto_detected=False,
                )
                db.session.add(winner)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to save winner for pool {pool_id}, {base_id}: {e}")
            raise

        invalidate_model_cache("scores")
        logger.info(
            f"Winner entered for pool {pool.id}, category {base_id}: {nominee_id} (by user {user.id})"
        )
        return winner

    def record_auto_detected_winner(self, category_id, nominee_id):
        """Apply a resolved market's winner to every pool of the category's year.

        Manual entries are never overwritten. Returns the number of pools updated.
        """
        year = category_year(category_id)
        if year is None:
            raise InvalidRequestError("Auto-detected winners need a full category id")
        base_id = base_category_id(category_id)

        updated = 0
        try:
            for pool in Pool.query.filter_by(year=year).all():
                existing = ActualWinner.query.filter_by(
                    pool_id=pool.id, category_id=base_id
                ).first()

                if existing and not existing.is_auto_detected:
                    continue
                if existing and existing.nominee_id == nominee_id:
                    continue

                if existing:
                    existing.nominee_id = nominee_id
                else:
                    db.session.add(
                        ActualWinner(
                            pool_id=pool.id,
                            category_id=base_id,
                            nominee_id=nominee_id,
                            entered_by=pool.owner_id,
                            is_auto_detected=True,
                        )
                    )
                updated += 1
                logger.info(
                    f"Auto-detected winner for pool {pool.id}, category {base_id}: {nominee_id}"
                )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to record auto-detected winner for {category_id}: {e}")
            raise

        if updated:
            invalidate_model_cache("scores")
        return updated

    def get_pool_winners(self, pool_id, user):
        """Effective winners of a pool, for members (and superusers)"""
        pool = db.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundError("Pool not found")
        if not user.is_superuser and not pool.is_user_member(user.id):
            raise NotAMemberError()

        return [
            {"category_id": category_id, "nominee_id": nominee_id}
            for category_id, nominee_id in sorted(self.get_effective_winners(pool).items())
        ]
