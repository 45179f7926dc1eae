import itertools
from datetime import datetime, timedelta, timezone

import pytest

from app import create_app, db
from app.models import (
    ActualWinner,
    Category,
    Nominee,
    OddsSnapshot,
    Pool,
    PoolMember,
    PoolSettings,
    User,
)
from app.utils.categories import full_category_id

YEAR = "2026"
BASE_TIME = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Log a user into the test client session"""

    def _login(user):
        with client.session_transaction() as session:
            session["_user_id"] = str(user.id)
            session["_fresh"] = True
        return client

    return _login


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make_user(username=None, role=User.ROLE_USER):
        n = next(counter)
        user = User(
            username=username or f"user{n}",
            email=f"{username or f'user{n}'}@example.com",
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_pool(app):
    """Pool with settings; the owner is added as the first member"""

    def _make_pool(
        owner,
        name="Friends Pool",
        year=YEAR,
        is_public=False,
        category_points=None,
        multiplier_enabled=True,
        formula="linear",
    ):
        pool = Pool(name=name, year=year, is_public=is_public, owner_id=owner.id)
        db.session.add(pool)
        db.session.flush()
        db.session.add(
            PoolSettings(
                pool_id=pool.id,
                category_points=category_points or {},
                odds_multiplier_enabled=multiplier_enabled,
                odds_multiplier_formula=formula,
            )
        )
        db.session.add(PoolMember(pool_id=pool.id, user_id=owner.id, joined_at=BASE_TIME))
        db.session.commit()
        return pool

    return _make_pool


@pytest.fixture
def join_pool(app):
    counter = itertools.count(1)

    def _join_pool(pool, user, submission_name=None, has_paid=False):
        member = PoolMember(
            pool_id=pool.id,
            user_id=user.id,
            submission_name=submission_name,
            has_paid=has_paid,
            joined_at=BASE_TIME + timedelta(minutes=next(counter)),
        )
        db.session.add(member)
        db.session.commit()
        return member

    return _join_pool


@pytest.fixture
def make_category(app):
    order = itertools.count(1)

    def _make_category(base_id, nominees=("a", "b", "c"), year=YEAR, default_points=None, name=None):
        category = Category(
            base_id=base_id,
            year=year,
            name=name or base_id.replace("-", " ").title(),
            default_points=default_points,
            display_order=next(order),
        )
        db.session.add(category)
        for nominee_id in nominees:
            db.session.add(
                Nominee(
                    id=nominee_id,
                    category_id=category.id,
                    name=f"Nominee {nominee_id.upper()}",
                    film=f"Film {nominee_id.upper()}",
                )
            )
        db.session.commit()
        return category

    return _make_category


@pytest.fixture
def record_odds(app):
    """Append a snapshot; each call is one minute later than the previous one"""
    clock = itertools.count(1)

    def _record_odds(category_id, nominee_id, odds, year=YEAR, when=None):
        snapshot = OddsSnapshot(
            category_id=full_category_id(category_id, year),
            nominee_id=nominee_id,
            odds_percentage=odds,
            snapshot_time=(when or BASE_TIME + timedelta(minutes=next(clock))).replace(
                tzinfo=None
            ),
        )
        db.session.add(snapshot)
        db.session.commit()
        return snapshot

    return _record_odds


@pytest.fixture
def set_winner(app):
    """Insert a winner row directly, bypassing permission checks"""

    def _set_winner(pool, category_id, nominee_id, auto=False):
        winner = ActualWinner(
            pool_id=pool.id,
            category_id=category_id,
            nominee_id=nominee_id,
            entered_by=pool.owner_id,
            is_auto_detected=auto,
        )
        db.session.add(winner)
        db.session.commit()
        return winner

    return _set_winner
