from datetime import datetime, timezone

from app import db


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    pool_id = db.Column(db.Integer, db.ForeignKey("pools.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    category_id = db.Column(db.String(90), nullable=False)  # Base id, no year
    nominee_id = db.Column(db.String(100), nullable=False)

    # Odds used for scoring; only ever lowered by the upgrade path
    odds_percentage = db.Column(db.Float)
    # Odds when the current nominee was first selected
    original_odds_percentage = db.Column(db.Float)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", foreign_keys=[user_id])

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint(
            "pool_id", "user_id", "category_id", name="unique_pool_user_category"
        ),
        db.Index("idx_prediction_pool", "pool_id"),
        db.Index("idx_prediction_category", "category_id"),
    )

    def __repr__(self):
        return (
            f"<Prediction pool_id={self.pool_id} user_id={self.user_id} "
            f"{self.category_id}={self.nominee_id} odds={self.odds_percentage}>"
        )

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        return {
            "id": self.id,
            "pool_id": self.pool_id,
            "user_id": self.user_id,
            "category_id": self.category_id,
            "nominee_id": self.nominee_id,
            "odds_percentage": self.odds_percentage,
            "original_odds_percentage": self.original_odds_percentage,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
