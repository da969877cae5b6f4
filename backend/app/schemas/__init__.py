"""Pydantic schemas package."""

from app.schemas.recommendation import (
    ActiveUser,
    CacheEntry,
    FavoriteCategory,
    FavoriteKeyword,
    GenerationFailure,
    GenerationSummary,
    OnboardingPreferences,
    PriceRange,
    ProductCandidate,
    UserPreferenceRecord,
)

__all__ = [
    # Preferences
    "FavoriteCategory",
    "FavoriteKeyword",
    "PriceRange",
    "UserPreferenceRecord",
    "OnboardingPreferences",
    # Store records
    "ProductCandidate",
    "ActiveUser",
    "CacheEntry",
    # Job results
    "GenerationSummary",
    "GenerationFailure",
]
