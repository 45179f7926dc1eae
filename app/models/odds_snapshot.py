from datetime import datetime, timezone

from app import db


class OddsSnapshot(db.Model):
    """Point-in-time market-implied win probability for one nominee.

    Rows are append-only: every refresh cycle adds a row, even when the
    odds did not move, so the history can be charted.
    """

    __tablename__ = "odds_snapshots"

    id = db.Column(db.Integer, primary_key=True)

    # Composite category id, including the year ("best-picture-2026")
    category_id = db.Column(db.String(100), nullable=False)
    nominee_id = db.Column(db.String(100), nullable=False)
    nominee_name = db.Column(db.String(200))
    nominee_film = db.Column(db.String(200))

    odds_percentage = db.Column(db.Float)  # 0-100, null when the feed has no quote
    snapshot_time = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        return f"<OddsSnapshot {self.category_id}/{self.nominee_id} {self.odds_percentage}>"

    def to_dict(self):
        return {
            "odds_percentage": self.odds_percentage,
            "snapshot_time": self.snapshot_time.isoformat() if self.snapshot_time else None,
        }


# Serves "latest snapshot per (category, nominee)" lookups
db.Index(
    "idx_odds_category_nominee_time",
    OddsSnapshot.category_id,
    OddsSnapshot.nominee_id,
    OddsSnapshot.snapshot_time.desc(),
)
