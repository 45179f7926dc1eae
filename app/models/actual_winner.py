"""Actual Winner Model - Announced category winners per pool"""

from datetime import datetime, timezone

from app import db


class ActualWinner(db.Model):
    """Announced winner of a category; its presence locks the category for the pool"""

    __tablename__ = "actual_winners"

    id = db.Column(db.Integer, primary_key=True)

    pool_id = db.Column(db.Integer, db.ForeignKey("pools.id"), nullable=False)
    category_id = db.Column(db.String(90), nullable=False)  # Base id, no year
    nominee_id = db.Column(db.String(100), nullable=False)

    # Who entered it; auto-detected winners are entered on behalf of the pool owner
    entered_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    is_auto_detected = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entered_by_user = db.relationship("User", foreign_keys=[entered_by])

    # Constraints
    __table_args__ = (
        db.UniqueConstraint("pool_id", "category_id", name="unique_pool_category_winner"),
        db.Index("idx_winner_pool", "pool_id"),
    )

    def __repr__(self):
        source = "auto" if self.is_auto_detected else "manual"
        return f"<ActualWinner pool {self.pool_id} {self.category_id}={self.nominee_id} ({source})>"

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "pool_id": self.pool_id,
            "category_id": self.category_id,
            "nominee_id": self.nominee_id,
            "entered_by": self.entered_by,
            "is_auto_detected": self.is_auto_detected,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
