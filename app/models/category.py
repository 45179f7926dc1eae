from app import db
from app.utils.categories import base_category_id, full_category_id

MAJOR_CATEGORIES = {
    "best-picture",
    "directing",
    "writing-original",
    "writing-adapted",
    "actor-leading",
    "actress-leading",
    "actor-supporting",
    "actress-supporting",
}
TECHNICAL_CATEGORIES = {
    "cinematography",
    "film-editing",
    "sound",
    "visual-effects",
    "production-design",
    "costume-design",
    "makeup-hairstyling",
    "music-score",
    "music-song",
    "casting",
}
FILM_CATEGORIES = {
    "international-feature",
    "animated-feature",
    "documentary-feature",
    "animated-short",
    "documentary-short",
    "live-action-short",
}


class Category(db.Model):
    """Award category for one year; `id` is the composite "<base_id>-<year>" key"""

    __tablename__ = "categories"

    id = db.Column(db.String(100), primary_key=True)
    base_id = db.Column(db.String(90), nullable=False)
    year = db.Column(db.String(4), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    default_points = db.Column(db.Float, nullable=False, default=10)
    display_order = db.Column(db.Integer, default=0)

    nominees = db.relationship(
        "Nominee",
        backref="category",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="Nominee.name",
    )

    __table_args__ = (
        db.UniqueConstraint("base_id", "year", name="unique_category_base_year"),
        db.Index("idx_category_year", "year"),
    )

    def __init__(self, **kwargs):
        base_id = kwargs.get("base_id") or base_category_id(kwargs.get("id"))
        kwargs["base_id"] = base_id
        if not kwargs.get("id"):
            kwargs["id"] = full_category_id(base_id, kwargs["year"])
        if kwargs.get("default_points") is None:
            kwargs["default_points"] = Category.default_points_for(base_id)
        super(Category, self).__init__(**kwargs)

    def __repr__(self):
        return f"<Category {self.id}>"

    @staticmethod
    def default_points_for(base_id):
        """Default points by category group"""
        if base_id in MAJOR_CATEGORIES:
            return 10
        if base_id in TECHNICAL_CATEGORIES:
            return 3
        if base_id in FILM_CATEGORIES:
            return 5
        return 10

    @staticmethod
    def get_for_year(year):
        return (
            Category.query.filter_by(year=str(year))
            .order_by(Category.display_order, Category.name)
            .all()
        )

    def to_dict(self, include_nominees=False):
        data = {
            "id": self.id,
            "base_id": self.base_id,
            "year": self.year,
            "name": self.name,
            "default_points": self.default_points,
        }
        if include_nominees:
            data["nominees"] = [nominee.to_dict() for nominee in self.nominees]
        return data


class Nominee(db.Model):
    __tablename__ = "nominees"

    id = db.Column(db.String(100), primary_key=True)
    category_id = db.Column(
        db.String(100), db.ForeignKey("categories.id"), primary_key=True
    )
    name = db.Column(db.String(200), nullable=False)
    film = db.Column(db.String(200))

    def __repr__(self):
        return f"<Nominee {self.id} ({self.category_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "film": self.film,
        }
