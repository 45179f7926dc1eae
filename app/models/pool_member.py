from datetime import datetime, timezone

from app import db


class PoolMember(db.Model):
    __tablename__ = "pool_members"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    pool_id = db.Column(db.Integer, db.ForeignKey("pools.id"), nullable=False)

    # Ballot display name; falls back to "Ballot #N" when blank
    submission_name = db.Column(db.String(100))
    has_paid = db.Column(db.Boolean, default=False)

    # Timestamps
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Constraints
    __table_args__ = (
        db.UniqueConstraint("pool_id", "user_id", name="unique_pool_user"),
        db.Index("idx_user_memberships", "user_id"),
    )

    def __repr__(self):
        return f"<PoolMember user_id={self.user_id} pool_id={self.pool_id}>"
