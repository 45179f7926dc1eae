from datetime import datetime, timezone

from app import db


class PoolSettings(db.Model):
    __tablename__ = "pool_settings"

    id = db.Column(db.Integer, primary_key=True)
    pool_id = db.Column(
        db.Integer, db.ForeignKey("pools.id"), nullable=False, unique=True
    )

    # Base category id -> points override
    category_points = db.Column(db.JSON, nullable=False, default=dict)

    odds_multiplier_enabled = db.Column(db.Boolean, nullable=False, default=True)
    odds_multiplier_formula = db.Column(db.String(20), nullable=False, default="log")

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<PoolSettings pool_id={self.pool_id} formula={self.odds_multiplier_formula}>"

    def points_for(self, base_category_id, default_points):
        """Points for a category: the pool override when configured, else the default"""
        override = (self.category_points or {}).get(base_category_id)
        if override is None:
            return default_points
        return override

    def to_dict(self):
        return {
            "pool_id": self.pool_id,
            "category_points": dict(self.category_points or {}),
            "odds_multiplier_enabled": self.odds_multiplier_enabled,
            "odds_multiplier_formula": self.odds_multiplier_formula,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
