from app import db  # noqa: F401 - imported for model imports

from .actual_winner import ActualWinner
from .category import Category, Nominee
from .odds_snapshot import OddsSnapshot
from .pool import Pool
from .pool_member import PoolMember
from .pool_settings import PoolSettings
from .prediction import Prediction
from .user import User

__all__ = [
    "User",
    "Pool",
    "PoolMember",
    "PoolSettings",
    "Category",
    "Nominee",
    "OddsSnapshot",
    "Prediction",
    "ActualWinner",
]
