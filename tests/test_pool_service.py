import pytest

from app.models import Pool, PoolSettings
from app.services.exceptions import (
    InvalidRequestError,
    NotAMemberError,
    NotFoundError,
    PermissionDeniedError,
    SettingsLockedError,
)
from app.services.pool_service import PoolService, round_points
from app.services.prediction_service import PredictionService
from app.utils.submission_names import build_fallback_name_map, resolve_submission_name


@pytest.fixture
def pool_service(app):
    return PoolService()


@pytest.fixture
def ballot_pool(make_user, make_pool, make_category):
    owner = make_user("owner")
    pool = make_pool(owner, category_points={"best-picture": 10}, formula="linear")
    make_category("best-picture", nominees=("a", "b"))
    # Technical category: 3 default points
    make_category("sound", nominees=("s1", "s2"))
    return owner, pool


def pick(user, pool, category_id, nominee_id):
    PredictionService().create_or_update_prediction(user.id, pool.id, category_id, nominee_id)


class TestSubmissions:
    def test_summary_per_member(
        self, pool_service, ballot_pool, make_user, join_pool, record_odds, set_winner
    ):
        owner, pool = ballot_pool
        member = make_user("member")
        join_pool(pool, member, submission_name="Team Member", has_paid=True)
        record_odds("best-picture", "a", 33.33)
        pick(owner, pool, "best-picture", "a")
        pick(owner, pool, "sound", "s1")
        pick(member, pool, "best-picture", "b")
        set_winner(pool, "best-picture", "a")

        submissions = pool_service.get_pool_submissions(pool.id)
        by_user = {s["user_id"]: s for s in submissions}

        owner_entry = by_user[owner.id]
        assert owner_entry["submission_name"] == "Ballot #1"
        assert owner_entry["filled_categories"] == 2
        assert owner_entry["total_categories"] == 2
        assert owner_entry["is_complete"] is True
        assert owner_entry["correct_count"] == 1
        # 10 * (2 - 0.3333) = 16.667, plus 3 possible for sound
        assert owner_entry["total_earned_points"] == 16.7
        assert owner_entry["total_possible_points"] == 19.7
        assert owner_entry["has_paid"] is False

        member_entry = by_user[member.id]
        assert member_entry["submission_name"] == "Team Member"
        assert member_entry["is_complete"] is False
        assert member_entry["total_earned_points"] == 0
        assert member_entry["has_paid"] is True

        assert [s["user_id"] for s in submissions] == [owner.id, member.id]

    def test_email_never_exposed(self, pool_service, ballot_pool):
        _, pool = ballot_pool

        for entry in pool_service.get_pool_submissions(pool.id):
            assert "email" not in entry
            assert "@" not in entry["submission_name"]

    def test_matches_standings_totals(
        self, pool_service, ballot_pool, make_user, join_pool, record_odds, set_winner
    ):
        from app.services.scoring_service import ScoringService

        owner, pool = ballot_pool
        record_odds("best-picture", "b", 20)
        pick(owner, pool, "best-picture", "b")
        pick(owner, pool, "sound", "s2")
        set_winner(pool, "sound", "s2")

        [submission] = pool_service.get_pool_submissions(pool.id)
        [standing] = ScoringService().get_standings(pool.id)["standings"]

        assert submission["total_possible_points"] == round_points(standing["possible_points"])
        assert submission["total_earned_points"] == round_points(standing["current_score"])

    def test_half_points_round_up(self, pool_service, ballot_pool, record_odds, set_winner):
        owner, pool = ballot_pool
        record_odds("sound", "s1", 25)
        pick(owner, pool, "sound", "s1")
        set_winner(pool, "sound", "s1")

        [submission] = pool_service.get_pool_submissions(pool.id)

        # 3 points * (2 - 0.25) = 5.25
        assert submission["total_earned_points"] == 5.3
        assert submission["total_possible_points"] == 5.3

    def test_missing_pool(self, pool_service):
        with pytest.raises(NotFoundError):
            pool_service.get_pool_submissions(404)


class TestSettings:
    def test_owner_updates_settings(self, pool_service, ballot_pool):
        owner, pool = ballot_pool

        result = pool_service.update_settings(
            pool.id,
            owner,
            category_points={"best-picture-2026": 12, "sound": 2.5},
            odds_multiplier_enabled=False,
            odds_multiplier_formula="sqrt",
        )

        assert result["category_points"] == {"best-picture": 12, "sound": 2.5}
        assert result["odds_multiplier_enabled"] is False
        assert result["odds_multiplier_formula"] == "sqrt"

    def test_partial_update_keeps_other_fields(self, pool_service, ballot_pool):
        owner, pool = ballot_pool

        result = pool_service.update_settings(pool.id, owner, odds_multiplier_formula="log")

        assert result["category_points"] == {"best-picture": 10}
        assert result["odds_multiplier_enabled"] is True

    def test_non_owner_cannot_update(self, pool_service, ballot_pool, make_user, join_pool):
        _, pool = ballot_pool
        member = make_user("member")
        join_pool(pool, member)

        with pytest.raises(PermissionDeniedError):
            pool_service.update_settings(pool.id, member, odds_multiplier_enabled=False)

    def test_superuser_can_update(self, pool_service, ballot_pool, make_user):
        _, pool = ballot_pool
        admin = make_user("admin", role="SUPERUSER")

        result = pool_service.update_settings(pool.id, admin, odds_multiplier_formula="inverse")

        assert result["odds_multiplier_formula"] == "inverse"

    def test_frozen_after_winner(self, pool_service, ballot_pool, set_winner):
        owner, pool = ballot_pool
        set_winner(pool, "sound", "s1")

        with pytest.raises(SettingsLockedError):
            pool_service.update_settings(pool.id, owner, odds_multiplier_enabled=False)

    def test_frozen_after_global_winner(self, pool_service, ballot_pool, make_user, make_pool, set_winner):
        owner, pool = ballot_pool
        admin = make_user("admin")
        global_pool = make_pool(admin, name="Global Oscars Pool 2026", is_public=True)
        set_winner(global_pool, "sound", "s1")

        with pytest.raises(SettingsLockedError):
            pool_service.update_settings(pool.id, owner, odds_multiplier_enabled=False)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"odds_multiplier_formula": "cubic"},
            {"category_points": ["best-picture"]},
            {"category_points": {"best-picture": "ten"}},
            {"category_points": {"best-picture": -1}},
        ],
    )
    def test_invalid_settings(self, pool_service, ballot_pool, kwargs):
        owner, pool = ballot_pool

        with pytest.raises(InvalidRequestError):
            pool_service.update_settings(pool.id, owner, **kwargs)

    def test_get_settings_members_only(self, pool_service, ballot_pool, make_user):
        owner, pool = ballot_pool
        outsider = make_user("outsider")

        assert pool_service.get_settings(pool.id, owner)["pool_id"] == pool.id
        with pytest.raises(NotAMemberError):
            pool_service.get_settings(pool.id, outsider)


class TestCreatePool:
    def test_owner_joins_and_settings_created(self, pool_service, make_user):
        owner = make_user("owner")

        pool = pool_service.create_pool("  Family Pool ", 2026, owner, submission_name="Mom")

        assert pool.name == "Family Pool"
        assert pool.year == "2026"
        assert pool.is_user_member(owner.id)
        settings = PoolSettings.query.filter_by(pool_id=pool.id).one()
        assert settings.odds_multiplier_enabled is True
        assert settings.odds_multiplier_formula == "log"
        assert settings.category_points == {}

    def test_name_required(self, pool_service, make_user):
        with pytest.raises(InvalidRequestError):
            pool_service.create_pool("   ", "2026", make_user())
        assert Pool.query.count() == 0


def test_fallback_names_follow_join_order(make_user, make_pool, join_pool):
    owner = make_user("owner")
    pool = make_pool(owner)
    later = make_user("later")
    join_pool(pool, later)

    names = build_fallback_name_map(pool.get_members_in_join_order())

    assert names == {owner.id: "Ballot #1", later.id: "Ballot #2"}


def test_resolve_submission_name():
    assert resolve_submission_name("  Oscar Fan ", "Ballot #3") == "Oscar Fan"
    assert resolve_submission_name("   ", "Ballot #3") == "Ballot #3"
    assert resolve_submission_name(None, "Ballot #3") == "Ballot #3"


@pytest.mark.parametrize(
    "value, expected",
    [(5.25, 5.3), (16.6666, 16.7), (0.05, 0.1), (2.44, 2.4), (0, 0.0)],
)
def test_round_points_half_up(value, expected):
    assert round_points(value) == expected
