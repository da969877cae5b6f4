"""Recommendation cache model — time-boxed output of one merge run for one user."""

from sqlalchemy import CheckConstraint, Column, String, Numeric, DateTime, Index, func
from sqlalchemy.dialects.postgresql import UUID, ARRAY

from app.models.base import Base, UUIDMixin

RECOMMENDATION_TYPES = ("personalized", "trending", "similar", "category_based", "popular")


class RecommendationCache(UUIDMixin, Base):
    __tablename__ = "recommendation_cache"

    user_id = Column(UUID(as_uuid=True), nullable=False)
    recommended_products = Column(ARRAY(UUID(as_uuid=True)), nullable=False)
    recommendation_type = Column(String(20), nullable=False)  # personalized, trending, similar, category_based, popular
    score = Column(Numeric(10, 4))
    algorithm_version = Column(String(20), default="v1.0")
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # No unique (user_id, recommendation_type) constraint: the job deletes before it inserts.
    __table_args__ = (
        Index("idx_recommendation_cache_user_id", "user_id", "expires_at"),
        Index("idx_recommendation_cache_type", "recommendation_type"),
        CheckConstraint(
            "recommendation_type IN (" + ", ".join(f"'{t}'" for t in RECOMMENDATION_TYPES) + ")",
            name="ck_recommendation_cache_type",
        ),
    )
