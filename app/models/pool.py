from datetime import datetime, timezone

from flask import current_app

from app import db

DEFAULT_GLOBAL_POOL_NAME = "Global Oscars Pool {year}"


class Pool(db.Model):
    __tablename__ = "pools"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    year = db.Column(db.String(4), nullable=False)

    # Pool settings
    is_public = db.Column(db.Boolean, default=False)

    # Owner and timestamps
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "PoolMember", backref="pool", lazy="dynamic", cascade="all, delete-orphan"
    )
    settings = db.relationship(
        "PoolSettings", backref="pool", uselist=False, cascade="all, delete-orphan"
    )
    actual_winners = db.relationship(
        "ActualWinner", backref="pool", lazy="dynamic", cascade="all, delete-orphan"
    )
    predictions = db.relationship(
        "Prediction", backref="pool", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_pool_year", "year"),
        db.Index("idx_pool_owner", "owner_id"),
        db.Index("idx_pool_public_year", "is_public", "year"),
    )

    def __repr__(self):
        return f"<Pool {self.name} ({self.year})>"

    @staticmethod
    def global_pool_name(year):
        template = current_app.config.get(
            "GLOBAL_POOL_NAME_TEMPLATE", DEFAULT_GLOBAL_POOL_NAME
        )
        return template.format(year=year)

    @staticmethod
    def get_global_pool(year):
        """Get the public pool whose winners apply to every pool of the year"""
        return Pool.query.filter_by(
            name=Pool.global_pool_name(year), year=str(year), is_public=True
        ).first()

    @property
    def is_global(self):
        return bool(self.is_public) and self.name == Pool.global_pool_name(self.year)

    def get_member(self, user_id):
        return self.members.filter_by(user_id=user_id).first()

    def is_user_member(self, user_id):
        """Check if user is a member"""
        return self.get_member(user_id) is not None

    def is_owner(self, user_id):
        return self.owner_id == user_id

    def get_members_in_join_order(self):
        """Members ordered by join time; the order scores tie-break on"""
        from .pool_member import PoolMember

        return self.members.order_by(PoolMember.joined_at, PoolMember.user_id).all()

    def add_member(self, user, submission_name=None):
        """Add a user to the pool"""
        from .pool_member import PoolMember

        if self.is_user_member(user.id):
            return False, "User is already a member"

        membership = PoolMember(
            user_id=user.id, pool_id=self.id, submission_name=submission_name
        )
        db.session.add(membership)
        return True, "User added successfully"

    def to_dict(self):
        """Convert pool to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "year": self.year,
            "is_public": self.is_public,
            "is_global": self.is_global,
            "owner_id": self.owner_id,
            "member_count": self.members.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
