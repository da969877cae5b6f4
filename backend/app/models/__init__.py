"""SQLAlchemy models package."""

from app.models.base import Base
from app.models.product import Product
from app.models.product_score import ProductScore
from app.models.recommendation_cache import RecommendationCache
from app.models.user import User
from app.models.user_interaction import UserInteraction
from app.models.user_preference import UserPreference

__all__ = [
    "Base",
    "Product",
    "ProductScore",
    "RecommendationCache",
    "User",
    "UserInteraction",
    "UserPreference",
]
