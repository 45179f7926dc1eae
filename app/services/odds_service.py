"""
Odds Store

Append-only record of market-implied win probabilities per
(category, nominee), with "as of", "latest" and history lookups.
Category ids here are composite ids including the year.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Category, OddsSnapshot
from app.utils.cache_utils import invalidate_model_cache
from app.utils.performance import timer
from app.utils.timezone_utils import storage_now, to_storage_time

logger = logging.getLogger(__name__)


class OddsService:
    def record_snapshot(
        self,
        category_id,
        nominee_id,
        nominee_name=None,
        nominee_film=None,
        odds_percentage=None,
        timestamp=None,
        commit=True,
    ):
        """Append one snapshot row; unchanged odds are recorded again on purpose"""
        snapshot = OddsSnapshot(
            category_id=category_id,
            nominee_id=nominee_id,
            nominee_name=nominee_name,
            nominee_film=nominee_film,
            odds_percentage=odds_percentage,
            snapshot_time=to_storage_time(timestamp) if timestamp else storage_now(),
        )
        db.session.add(snapshot)
        if commit:
            db.session.commit()
        return snapshot

    def record_category_snapshot(self, category, odds_by_nominee, timestamp=None):
        """Record one row per nominee of the category at a shared timestamp.

        Nominees missing from odds_by_nominee get a row with null odds.
        """
        snapshot_time = to_storage_time(timestamp) if timestamp else storage_now()
        recorded = 0
        try:
            for nominee in category.nominees:
                self.record_snapshot(
                    category.id,
                    nominee.id,
                    nominee_name=nominee.name,
                    nominee_film=nominee.film,
                    odds_percentage=odds_by_nominee.get(nominee.id),
                    timestamp=snapshot_time,
                    commit=False,
                )
                recorded += 1
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        invalidate_model_cache("odds")
        return recorded

    def get_odds_at_time(self, category_id, nominee_id, timestamp):
        """Odds from the latest snapshot taken at or before timestamp"""
        snapshot = (
            OddsSnapshot.query.filter(
                OddsSnapshot.category_id == category_id,
                OddsSnapshot.nominee_id == nominee_id,
                OddsSnapshot.snapshot_time <= to_storage_time(timestamp),
            )
            .order_by(OddsSnapshot.snapshot_time.desc(), OddsSnapshot.id.desc())
            .first()
        )
        return snapshot.odds_percentage if snapshot else None

    def get_current_odds(self, category_id, nominee_id):
        """Odds from the most recent snapshot, or None if never quoted"""
        snapshot = (
            OddsSnapshot.query.filter_by(category_id=category_id, nominee_id=nominee_id)
            .order_by(OddsSnapshot.snapshot_time.desc(), OddsSnapshot.id.desc())
            .first()
        )
        return snapshot.odds_percentage if snapshot else None

    def get_current_odds_for_many(self, pairs):
        """
        Latest odds for many (category_id, nominee_id) pairs in one query.

        Returns a dict keyed by pair; pairs without snapshots map to None.
        """
        wanted = {(category_id, nominee_id) for category_id, nominee_id in pairs}
        if not wanted:
            return {}

        row_number = (
            db.func.row_number()
            .over(
                partition_by=(OddsSnapshot.category_id, OddsSnapshot.nominee_id),
                order_by=(OddsSnapshot.snapshot_time.desc(), OddsSnapshot.id.desc()),
            )
            .label("row_number")
        )
        ranked = (
            db.session.query(
                OddsSnapshot.category_id,
                OddsSnapshot.nominee_id,
                OddsSnapshot.odds_percentage,
                row_number,
            )
            .filter(
                OddsSnapshot.category_id.in_(sorted({pair[0] for pair in wanted})),
                OddsSnapshot.nominee_id.in_(sorted({pair[1] for pair in wanted})),
            )
            .subquery()
        )
        rows = (
            db.session.query(
                ranked.c.category_id, ranked.c.nominee_id, ranked.c.odds_percentage
            )
            .filter(ranked.c.row_number == 1)
            .all()
        )

        result = dict.fromkeys(wanted)
        for category_id, nominee_id, odds in rows:
            if (category_id, nominee_id) in result:
                result[(category_id, nominee_id)] = odds
        return result

    def get_category_odds(self, category_id):
        """Current odds for every nominee of a category"""
        category = db.session.get(Category, category_id)
        if not category:
            return None

        nominees = category.nominees.all()
        current = self.get_current_odds_for_many(
            (category.id, nominee.id) for nominee in nominees
        )
        return [
            {"nominee_id": nominee.id, "odds": current.get((category.id, nominee.id))}
            for nominee in nominees
        ]

    def get_odds_history(self, category_id, nominee_id):
        """All snapshots for a nominee, oldest first"""
        snapshots = (
            OddsSnapshot.query.filter_by(category_id=category_id, nominee_id=nominee_id)
            .order_by(OddsSnapshot.snapshot_time.asc(), OddsSnapshot.id.asc())
            .all()
        )
        return [snapshot.to_dict() for snapshot in snapshots]

    @timer
    def create_snapshot_for_year(self, year, feed):
        """
        Snapshot every category of the year from the feed, then ratchet
        predictions for that category toward the new odds.

        A failing category is logged and skipped; the cycle carries on.
        """
        from app.services.prediction_service import PredictionService

        prediction_service = PredictionService(odds_service=self)
        summary = {"categories": 0, "snapshots": 0, "upgraded": 0, "failed": 0}

        categories = Category.get_for_year(year)
        if not categories:
            logger.info(f"No categories found for year {year}, skipping odds snapshot")
            return summary

        logger.info(f"Creating odds snapshot for year {year} ({len(categories)} categories)")

        for category in categories:
            try:
                odds_by_nominee = feed.fetch_category_odds(category.base_id)
                if odds_by_nominee is None:
                    logger.info(f"No markets found for category {category.id}")
                    continue

                summary["snapshots"] += self.record_category_snapshot(
                    category, odds_by_nominee
                )
                summary["categories"] += 1

                result = prediction_service.upgrade_all_predictions_for_category(
                    category.base_id, year
                )
                summary["upgraded"] += result["upgraded"]
                if result["upgraded"] > 0:
                    logger.info(
                        f"Upgraded {result['upgraded']} of {result['checked']} predictions "
                        f"for {category.base_id} (odds drifted lower)"
                    )
            except Exception as e:
                db.session.rollback()
                summary["failed"] += 1
                logger.error(f"Error creating snapshot for category {category.id}: {e}")

        logger.info(
            f"Odds snapshot complete for {year}: {summary['snapshots']} rows, "
            f"{summary['upgraded']} predictions upgraded, {summary['failed']} categories failed"
        )
        return summary

