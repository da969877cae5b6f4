"""Pydantic schemas for the recommendation cache job.

JSONB payloads from user_preferences and users.preferences are validated
here when the store loads them, so scoring code only sees typed records.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FavoriteCategory(BaseModel):
    category: str
    score: float = 0


class FavoriteKeyword(BaseModel):
    keyword: str
    score: float = 0


class PriceRange(BaseModel):
    min: float
    max: float


class UserPreferenceRecord(BaseModel):
    """Derived profile from user_preferences. Read-only for this job."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    favorite_categories: list[FavoriteCategory] = Field(default_factory=list)
    favorite_price_range: PriceRange | None = None
    favorite_keywords: list[FavoriteKeyword] = Field(default_factory=list)
    last_active_at: datetime | None = None


class OnboardingPreferences(BaseModel):
    """Answers collected at signup, stored in users.preferences."""

    riding_styles: list[str] = Field(default_factory=list)
    preferred_brands: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    budget_range: str | None = None  # "500-1000", "2500+"
    interests: list[str] = Field(default_factory=list)


class ProductCandidate(BaseModel):
    """Minimal product row returned to collectors."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    display_name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    marketplace_category: str | None = None


class ActiveUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    last_active_at: datetime


class CacheEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    recommendation_type: str = "personalized"
    recommended_products: list[UUID]
    score: float | None = 1.0
    algorithm_version: str = "v1.0"
    expires_at: datetime


class GenerationSummary(BaseModel):
    """Aggregate result of one job run (also the HTTP response body)."""

    success: bool = True
    processed: int = 0
    errors: int = 0
    total_active_users: int = 0
    timestamp: datetime
    message: str | None = None


class GenerationFailure(BaseModel):
    success: bool = False
    error: str
