"""
Oscars Pool Background Scheduler Service

Runs the periodic odds snapshot (which also ratchets prediction odds) and
the market-resolution check that auto-detects winners, using APScheduler.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app import db
from app.models import ActualWinner, Category, Pool
from app.services.odds_service import OddsService
from app.services.winner_service import WinnerService
from app.utils.odds_feed import OddsFeed
from app.utils.timezone_utils import get_award_year

logger = logging.getLogger(__name__)


def _empty_stats():
    return {
        "last_run": None,
        "total_runs": 0,
        "successful_runs": 0,
        "failed_runs": 0,
        "last_error": None,
        "snapshots_recorded": 0,
        "predictions_upgraded": 0,
        "winners_detected": 0,
    }


class SchedulerService:
    """Manages the background odds and winner jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.odds_service = None
        self.winner_service = None
        self.is_running = False
        self.sync_stats = _empty_stats()

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
        self.odds_service = OddsService()
        self.winner_service = WinnerService()

        # Register shutdown
        atexit.register(self.shutdown)

        if not app.config.get("ODDS_FEED_URL"):
            logger.warning("ODDS_FEED_URL not set, background odds jobs not started")
            return

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        snapshot_minutes = self.app.config.get("ODDS_SNAPSHOT_INTERVAL_MINUTES", 10)
        resolution_minutes = self.app.config.get("MARKET_RESOLUTION_INTERVAL_MINUTES", 5)

        self.scheduler.add_job(
            func=self._snapshot_odds,
            trigger=IntervalTrigger(minutes=snapshot_minutes),
            id="odds_snapshot",
            name="Record Odds Snapshot",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        self.scheduler.add_job(
            func=self._check_market_resolution,
            trigger=IntervalTrigger(minutes=resolution_minutes),
            id="market_resolution",
            name="Detect Resolved Markets",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        logger.info(
            f"Core scheduled jobs added (snapshot every {snapshot_minutes}m, "
            f"resolution every {resolution_minutes}m)"
        )

    def _snapshot_odds(self, feed=None):
        """Snapshot odds for the award year and ratchet predictions"""
        with self.app.app_context():
            try:
                year = get_award_year()
                summary = self.odds_service.create_snapshot_for_year(
                    year, feed or OddsFeed()
                )
                self.sync_stats["snapshots_recorded"] += summary["snapshots"]
                self.sync_stats["predictions_upgraded"] += summary["upgraded"]
                self._update_stats(summary["failed"] == 0)
                if summary["failed"]:
                    self.sync_stats["last_error"] = (
                        f"{summary['failed']} categories failed during odds snapshot"
                    )
                return summary

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in odds snapshot: {e}", exc_info=True)

    def _check_market_resolution(self, feed=None):
        """Record winners for categories whose market has resolved"""
        with self.app.app_context():
            try:
                year = get_award_year()
                feed = feed or OddsFeed()
                global_pool = Pool.get_global_pool(year)
                detected = 0

                for category in Category.get_for_year(year):
                    # Skip categories the global pool already has a winner for
                    if global_pool and ActualWinner.query.filter_by(
                        pool_id=global_pool.id, category_id=category.base_id
                    ).first():
                        continue

                    nominee_id = feed.fetch_resolved_winner(category.base_id)
                    if not nominee_id:
                        continue

                    logger.info(f"Market resolved for {category.id}: {nominee_id}")
                    detected += self.winner_service.record_auto_detected_winner(
                        category.id, nominee_id
                    )

                self.sync_stats["winners_detected"] += detected
                self._update_stats(True)
                return detected

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in market resolution check: {e}", exc_info=True)

    def _update_stats(self, success):
        """Update run statistics"""
        self.sync_stats["last_run"] = datetime.now(timezone.utc)
        self.sync_stats["total_runs"] += 1

        if success:
            self.sync_stats["successful_runs"] += 1
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.sync_stats}

    def force_sync(self, sync_type="snapshot"):
        """Manually trigger a job"""
        try:
            if sync_type == "snapshot":
                self._snapshot_odds()
            elif sync_type == "resolution":
                self._check_market_resolution()
            else:
                raise ValueError(f"Unknown sync type: {sync_type}")

            return True, f"Manual {sync_type} run completed"

        except Exception as e:
            return False, f"Manual run failed: {e}"


# Global scheduler instance
scheduler_service = SchedulerService()
