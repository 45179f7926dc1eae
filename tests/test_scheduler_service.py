import pytest

from app.models import ActualWinner, OddsSnapshot
from app.services.odds_service import OddsService
from app.services.scheduler_service import SchedulerService
from app.services.winner_service import WinnerService
from app.utils.odds_feed import OddsFeedError


class FakeFeed:
    def __init__(self, odds=None, resolved=None, broken=()):
        self.odds = odds or {}
        self.resolved = resolved or {}
        self.broken = set(broken)
        self.resolution_checks = []

    def fetch_category_odds(self, base_category_id):
        if base_category_id in self.broken:
            raise OddsFeedError("feed down")
        return self.odds.get(base_category_id)

    def fetch_resolved_winner(self, base_category_id):
        self.resolution_checks.append(base_category_id)
        return self.resolved.get(base_category_id)


@pytest.fixture
def scheduler(app):
    service = SchedulerService()
    service.app = app
    service.odds_service = OddsService()
    service.winner_service = WinnerService()
    return service


@pytest.fixture
def pools(make_user, make_pool, make_category):
    admin = make_user("admin", role="SUPERUSER")
    global_pool = make_pool(admin, name="Global Oscars Pool 2026", is_public=True)
    pool = make_pool(make_user("owner"))
    make_category("best-picture", nominees=("a", "b"))
    make_category("sound", nominees=("s1", "s2"))
    return global_pool, pool


def test_status_before_start(scheduler):
    assert scheduler.is_running is False
    assert scheduler.get_status()["jobs"] == []


def test_snapshot_job_updates_stats(scheduler, pools):
    feed = FakeFeed(odds={"best-picture": {"a": 35.0, "b": 65.0}}, broken={"sound"})

    summary = scheduler._snapshot_odds(feed=feed)

    assert summary["snapshots"] == 2
    assert summary["failed"] == 1
    assert OddsSnapshot.query.count() == 2
    stats = scheduler.get_status()["stats"]
    assert stats["snapshots_recorded"] == 2
    assert stats["failed_runs"] == 1
    assert "1 categories failed" in stats["last_error"]


def test_resolution_job_records_winners(scheduler, pools):
    global_pool, pool = pools
    feed = FakeFeed(resolved={"best-picture": "b"})

    detected = scheduler._check_market_resolution(feed=feed)

    assert detected == 2
    for target in pools:
        winner = ActualWinner.query.filter_by(pool_id=target.id).one()
        assert (winner.category_id, winner.nominee_id) == ("best-picture", "b")
        assert winner.is_auto_detected is True
    assert scheduler.sync_stats["winners_detected"] == 2
    assert scheduler.sync_stats["successful_runs"] == 1


def test_resolution_job_skips_announced_categories(scheduler, pools, set_winner):
    global_pool, _ = pools
    set_winner(global_pool, "best-picture", "a")
    feed = FakeFeed(resolved={"best-picture": "b"})

    assert scheduler._check_market_resolution(feed=feed) == 0
    assert feed.resolution_checks == ["sound"]


def test_force_sync_rejects_unknown_type(scheduler):
    ok, message = scheduler.force_sync("weekly")

    assert ok is False
    assert "Unknown sync type" in message
