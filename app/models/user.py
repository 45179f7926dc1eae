from datetime import datetime, timezone

from flask_login import UserMixin

from app import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    ROLE_USER = "USER"
    ROLE_SUPERUSER = "SUPERUSER"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    pool_memberships = db.relationship(
        "PoolMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    owned_pools = db.relationship("Pool", backref="owner", lazy="dynamic")

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def is_superuser(self):
        return self.role == self.ROLE_SUPERUSER

    def get_pools(self):
        """Get all pools this user belongs to"""
        return [membership.pool for membership in self.pool_memberships.all()]

    def to_dict(self):
        """Convert user to dictionary for API responses (email is never exposed)"""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
