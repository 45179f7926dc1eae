#!/usr/bin/env python3
"""
Oscars Pool Management CLI

Command-line management for the Oscars Pool application: odds snapshots,
prediction upgrades, score inspection and database setup.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import create_app, db
from app.models import ActualWinner, Category, Pool, Prediction, User
from app.services.exceptions import PoolServiceError
from app.services.odds_service import OddsService
from app.services.pool_service import PoolService
from app.services.prediction_service import PredictionService
from app.services.reference_data import ReferenceDataService, read_nominees_file
from app.services.scoring_service import ScoringService
from app.utils.categories import category_year, full_category_id
from app.utils.odds_feed import OddsFeed, OddsFeedError
from app.utils.timezone_utils import get_award_year

app = create_app()


@click.group()
def cli():
    """Oscars Pool Management CLI"""
    pass


# Odds Commands
@cli.group()
def odds():
    """Odds snapshot and upgrade commands"""
    pass


@odds.command()
@click.option("--year", help="Award year (default: AWARD_YEAR or current year)")
@with_appcontext
def snapshot(year):
    """Fetch odds for every category and ratchet predictions"""
    year = year or get_award_year()
    try:
        summary = OddsService().create_snapshot_for_year(year, OddsFeed())
    except OddsFeedError as e:
        click.echo(f"❌ Odds feed error: {e}")
        return

    click.echo(
        f"✅ Snapshot for {year}: {summary['categories']} categories, "
        f"{summary['snapshots']} rows, {summary['upgraded']} predictions upgraded"
    )
    if summary["failed"]:
        click.echo(f"⚠️  {summary['failed']} categories failed, see logs")


@odds.command("upgrade")
@click.argument("category_id")
@click.argument("year")
@with_appcontext
def upgrade_category(category_id, year):
    """Ratchet every prediction in CATEGORY_ID for YEAR toward current odds"""
    try:
        result = PredictionService().upgrade_all_predictions_for_category(category_id, year)
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error during upgrade: {str(e)}")
        logging.error(f"Upgrade for {category_id} ({year}) failed: {e}")
        return

    click.echo(
        f"✅ Checked {result['checked']}, upgraded {result['upgraded']}, "
        f"failed {result['failed']}"
    )


@odds.command("current")
@click.argument("category_id")
@click.argument("nominee_id")
@with_appcontext
def current_odds(category_id, nominee_id):
    """Show the latest odds for a nominee"""
    if not category_year(category_id):
        category_id = full_category_id(category_id, get_award_year())

    value = OddsService().get_current_odds(category_id, nominee_id)
    if value is None:
        click.echo(f"⚪ No odds recorded for {nominee_id} in {category_id}")
    else:
        click.echo(f"📈 {nominee_id} in {category_id}: {value:.1f}%")


# Score Commands
@cli.group()
def scores():
    """Score inspection commands"""
    pass


@scores.command("show")
@click.argument("pool_id", type=int)
@with_appcontext
def show_scores(pool_id):
    """Show the leaderboard of a pool"""
    try:
        result = ScoringService().calculate_scores(pool_id)
    except PoolServiceError as e:
        click.echo(f"❌ {e.message}")
        return

    click.echo(
        f"🏆 Pool {pool_id} - {result['total_categories']} categories announced"
    )
    click.echo("=" * 40)
    for position, score in enumerate(result["scores"], 1):
        click.echo(
            f"  {position:>3}. {score['username']:<20} {score['total_score']:>8.2f} "
            f"({score['correct_count']} correct)"
        )


@scores.command("submissions")
@click.argument("pool_id", type=int)
@with_appcontext
def show_submissions(pool_id):
    """Show every ballot of a pool with earned and possible points"""
    try:
        submissions = PoolService().get_pool_submissions(pool_id)
    except PoolServiceError as e:
        click.echo(f"❌ {e.message}")
        return

    if not submissions:
        click.echo("No members found.")
        return

    for entry in submissions:
        complete = "✅" if entry["is_complete"] else "⏳"
        paid = "💰" if entry["has_paid"] else "  "
        click.echo(
            f"  {complete} {paid} {entry['submission_name']:<24} "
            f"{entry['filled_categories']}/{entry['total_categories']} filled, "
            f"{entry['total_earned_points']} earned / {entry['total_possible_points']} possible"
        )


# Seed Commands
@cli.group()
def seed():
    """Reference data commands"""
    pass


@seed.command("categories")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--year", help="Award year (default: AWARD_YEAR or current year)")
@with_appcontext
def seed_categories(path, year):
    """Load categories and nominees for a year from a nominees JSON file"""
    year = year or get_award_year()
    try:
        entries = read_nominees_file(path, year)
        summary = ReferenceDataService().load_categories(year, entries)
    except (PoolServiceError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(
        f"✅ Loaded {summary['categories']} categories and "
        f"{summary['nominees']} nominees for {year}"
    )


@seed.command("global-pool")
@click.option("--year", help="Award year (default: AWARD_YEAR or current year)")
@click.option("--admin-username", default="admin", show_default=True)
@click.option(
    "--admin-email",
    envvar="SUPERUSER_EMAIL",
    default="admin@example.com",
    show_default=True,
)
@with_appcontext
def seed_global_pool(year, admin_username, admin_email):
    """Create the superuser and the year's public global pool"""
    year = year or get_award_year()
    service = ReferenceDataService()
    admin = service.ensure_superuser(admin_username, admin_email)
    pool, created = service.ensure_global_pool(year, admin)

    if created:
        click.echo(f"✅ Created {pool.name} (id {pool.id}) owned by {admin.username}")
    else:
        click.echo(f"ℹ️  {pool.name} already exists (id {pool.id})")


# Database Commands
@cli.group()
def db_cmd():
    """Database management commands"""
    pass


@db_cmd.command()
@with_appcontext
def init():
    """Create all tables (use `flask db upgrade` once migrations exist)"""
    try:
        db.create_all()
        click.echo("✅ Database tables created")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error creating tables: {str(e)}")
        logging.error(f"Table creation failed: {e}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🎬 Oscars Pool Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    year = get_award_year()
    click.echo(f"📅 Award year: {year}")
    click.echo(f"👥 Users: {User.query.count()}")
    click.echo(f"🏆 Pools ({year}): {Pool.query.filter_by(year=year).count()}")
    click.echo(f"🎞️  Categories ({year}): {Category.query.filter_by(year=year).count()}")
    click.echo(f"🗳️  Predictions: {Prediction.query.count()}")

    global_pool = Pool.get_global_pool(year)
    if global_pool:
        announced = ActualWinner.query.filter_by(pool_id=global_pool.id).count()
        click.echo(f"🏅 Global pool winners announced: {announced}")
    else:
        click.echo("⚠️  Global pool: not created")

    click.echo(f"📡 Odds feed: {'configured' if app.config.get('ODDS_FEED_URL') else 'not set'}")


if __name__ == "__main__":
    with app.app_context():
        cli()
