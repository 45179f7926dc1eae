import pytest

from app.services.exceptions import NotFoundError
from app.services.prediction_service import PredictionService
from app.services.scoring_service import ScoringService, tally_ballot


@pytest.fixture
def scoring(app):
    return ScoringService()


@pytest.fixture
def picks(app):
    service = PredictionService()

    def _picks(user, pool, choices):
        for category_id, nominee_id in choices.items():
            service.create_or_update_prediction(user.id, pool.id, category_id, nominee_id)

    return _picks


@pytest.fixture
def ballot_pool(make_user, make_pool, make_category):
    owner = make_user("owner")
    pool = make_pool(
        owner,
        category_points={"best-picture": 10, "directing": 8},
        formula="linear",
    )
    make_category("best-picture", nominees=("a", "b"))
    make_category("directing", nominees=("x", "y"))
    return owner, pool


def test_incorrect_pick_scores_nothing(scoring, ballot_pool, record_odds, picks, set_winner):
    owner, pool = ballot_pool
    record_odds("directing", "y", 20)
    picks(owner, pool, {"directing": "y"})
    set_winner(pool, "directing", "x")

    score = scoring.get_user_score(pool.id, owner.id)

    assert score["total_score"] == 0
    assert score["correct_count"] == 0
    [entry] = score["breakdown"]
    assert entry["category_id"] == "directing"
    assert entry["is_correct"] is False
    assert entry["adjusted_points"] == 0
    assert entry["base_points"] == 8


def test_correct_pick_uses_stored_odds_multiplier(
    scoring, ballot_pool, record_odds, picks, set_winner
):
    owner, pool = ballot_pool
    record_odds("best-picture", "a", 25)
    picks(owner, pool, {"best-picture": "a"})
    # Later odds movement does not change the stored value used for scoring
    record_odds("best-picture", "a", 90)
    set_winner(pool, "best-picture", "a")

    score = scoring.get_user_score(pool.id, owner.id)

    assert score["total_score"] == pytest.approx(17.5)
    assert score["correct_count"] == 1
    assert score["breakdown"][0]["multiplier"] == pytest.approx(1.75)
    assert score["breakdown"][0]["category_name"] == "Best Picture"


def test_multiplier_disabled(scoring, make_user, make_pool, make_category, record_odds, picks, set_winner):
    owner = make_user()
    pool = make_pool(owner, multiplier_enabled=False, category_points={"best-picture": 10})
    make_category("best-picture", nominees=("a", "b"))
    record_odds("best-picture", "a", 25)
    picks(owner, pool, {"best-picture": "a"})
    set_winner(pool, "best-picture", "a")

    assert scoring.get_user_score(pool.id, owner.id)["total_score"] == pytest.approx(10)


def test_missing_odds_gives_plain_points(scoring, ballot_pool, picks, set_winner):
    owner, pool = ballot_pool
    picks(owner, pool, {"best-picture": "b"})
    set_winner(pool, "best-picture", "b")

    score = scoring.get_user_score(pool.id, owner.id)

    assert score["total_score"] == pytest.approx(10)
    assert score["breakdown"][0]["has_odds"] is False


def test_default_points_when_no_override(
    scoring, make_user, make_pool, make_category, picks, set_winner
):
    owner = make_user()
    pool = make_pool(owner, category_points={})
    make_category("sound", nominees=("s1", "s2"))
    picks(owner, pool, {"sound": "s1"})
    set_winner(pool, "sound", "s1")

    # Technical categories default to 3 points
    assert scoring.get_user_score(pool.id, owner.id)["total_score"] == pytest.approx(3)


def test_explicit_zero_override_counts_as_zero(
    scoring, make_user, make_pool, make_category, picks, set_winner
):
    owner = make_user()
    pool = make_pool(owner, category_points={"best-picture": 0})
    make_category("best-picture", nominees=("a", "b"))
    picks(owner, pool, {"best-picture": "a"})
    set_winner(pool, "best-picture", "a")

    score = scoring.get_user_score(pool.id, owner.id)

    assert score["total_score"] == 0
    assert score["correct_count"] == 1


def test_global_winners_apply_to_every_pool(
    scoring, ballot_pool, make_user, make_pool, picks, set_winner
):
    owner, pool = ballot_pool
    admin = make_user("admin")
    global_pool = make_pool(admin, name="Global Oscars Pool 2026", is_public=True)
    picks(owner, pool, {"best-picture": "a"})
    set_winner(global_pool, "best-picture", "a")

    result = scoring.calculate_scores(pool.id)

    assert result["total_categories"] == 1
    assert result["scores"][0]["total_score"] == pytest.approx(10)


def test_pool_winner_overrides_global_winner(
    scoring, ballot_pool, make_user, make_pool, picks, set_winner
):
    owner, pool = ballot_pool
    admin = make_user("admin")
    global_pool = make_pool(admin, name="Global Oscars Pool 2026", is_public=True)
    picks(owner, pool, {"best-picture": "a"})
    set_winner(global_pool, "best-picture", "a")
    set_winner(pool, "best-picture", "b")

    assert scoring.get_user_score(pool.id, owner.id)["total_score"] == 0


def test_ties_keep_join_order(scoring, ballot_pool, make_user, join_pool, picks, set_winner):
    owner, pool = ballot_pool
    first = make_user("first")
    second = make_user("second")
    join_pool(pool, first)
    join_pool(pool, second)
    for user in (owner, first, second):
        picks(user, pool, {"best-picture": "a"})
    set_winner(pool, "best-picture", "a")

    result = scoring.calculate_scores(pool.id)

    assert [s["user_id"] for s in result["scores"]] == [owner.id, first.id, second.id]


def test_scores_sorted_descending(scoring, ballot_pool, make_user, join_pool, picks, set_winner):
    owner, pool = ballot_pool
    winner_user = make_user("winner")
    join_pool(pool, winner_user)
    picks(owner, pool, {"best-picture": "b"})
    picks(winner_user, pool, {"best-picture": "a"})
    set_winner(pool, "best-picture", "a")

    result = scoring.calculate_scores(pool.id)

    assert [s["user_id"] for s in result["scores"]] == [winner_user.id, owner.id]


def test_user_score_not_found(scoring, ballot_pool, make_user):
    _, pool = ballot_pool
    outsider = make_user("outsider")

    with pytest.raises(NotFoundError):
        scoring.get_user_score(pool.id, outsider.id)


def test_no_winners_no_predictions_is_not_an_error(scoring, ballot_pool):
    _, pool = ballot_pool

    result = scoring.calculate_scores(pool.id)

    assert result["total_categories"] == 0
    assert result["scores"][0]["total_score"] == 0


class TestPossiblePoints:
    def test_unresolved_categories_count_as_possible(
        self, scoring, ballot_pool, record_odds, picks
    ):
        owner, pool = ballot_pool
        record_odds("best-picture", "a", 50)
        picks(owner, pool, {"best-picture": "a", "directing": "x"})

        [entry] = scoring.get_standings(pool.id)["standings"]

        # 10 * 1.5 for best picture, 8 * 1.0 for directing (no odds)
        assert entry["possible_points"] == pytest.approx(23)
        assert entry["current_score"] == 0
        assert entry["rank"] == 1

    def test_conservation_when_fully_resolved(
        self, scoring, ballot_pool, make_user, join_pool, record_odds, picks, set_winner
    ):
        owner, pool = ballot_pool
        other = make_user("other")
        join_pool(pool, other)
        record_odds("best-picture", "a", 30)
        record_odds("directing", "y", 60)
        picks(owner, pool, {"best-picture": "a", "directing": "x"})
        picks(other, pool, {"best-picture": "b", "directing": "y"})
        set_winner(pool, "best-picture", "a")
        set_winner(pool, "directing", "y")

        standings = scoring.get_standings(pool.id)["standings"]

        assert len(standings) == 2
        for entry in standings:
            assert entry["possible_points"] == pytest.approx(entry["current_score"])

    def test_incomplete_ballots_excluded_by_default(
        self, scoring, ballot_pool, make_user, join_pool, picks
    ):
        owner, pool = ballot_pool
        partial = make_user("partial")
        join_pool(pool, partial)
        picks(owner, pool, {"best-picture": "a", "directing": "x"})
        picks(partial, pool, {"best-picture": "a"})

        completed = scoring.get_standings(pool.id)
        everyone = scoring.get_standings(pool.id, completed_only=False)

        assert [e["user_id"] for e in completed["standings"]] == [owner.id]
        assert {e["user_id"] for e in everyone["standings"]} == {owner.id, partial.id}

    def test_standings_order_by_possible_then_current(
        self, scoring, ballot_pool, make_user, join_pool, record_odds, picks, set_winner
    ):
        owner, pool = ballot_pool
        lucky = make_user("lucky")
        join_pool(pool, lucky, submission_name="  Lucky Guess  ")
        picks(owner, pool, {"best-picture": "a", "directing": "x"})
        picks(lucky, pool, {"best-picture": "b", "directing": "x"})
        set_winner(pool, "directing", "x")

        standings = scoring.get_standings(pool.id)["standings"]

        # Equal possible points (18), equal current score: join order holds
        assert [e["user_id"] for e in standings] == [owner.id, lucky.id]
        assert standings[1]["submission_name"] == "Lucky Guess"
        assert standings[0]["submission_name"] == "Ballot #1"

    def test_limit(self, scoring, ballot_pool, make_user, join_pool, picks):
        owner, pool = ballot_pool
        other = make_user("other")
        join_pool(pool, other)
        picks(owner, pool, {"best-picture": "a", "directing": "x"})
        picks(other, pool, {"best-picture": "a", "directing": "x"})

        result = scoring.get_standings(pool.id, limit=1)

        assert len(result["standings"]) == 1
        assert result["total_members"] == 2

    def test_global_standings_without_global_pool(self, scoring, app):
        assert scoring.get_global_standings("2026") == {
            "pool": None,
            "standings": [],
            "total_members": 0,
        }

    def test_global_standings(self, scoring, ballot_pool, make_user, make_pool, picks):
        admin = make_user("admin")
        global_pool = make_pool(admin, name="Global Oscars Pool 2026", is_public=True)
        picks(admin, global_pool, {"best-picture": "a", "directing": "x"})

        result = scoring.get_global_standings("2026")

        assert result["pool"]["id"] == global_pool.id
        assert [e["user_id"] for e in result["standings"]] == [admin.id]


def test_tally_ballot_ignores_winner_without_pick(app):
    result = tally_ballot({}, {"best-picture": "a"}, [], None)

    assert result["earned"] == 0
    assert result["possible"] == 0
    assert result["breakdown"] == []
