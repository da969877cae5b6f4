"""Product score model — popularity/trending numbers recomputed by calculate_popularity_scores()."""

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base, TimestampMixin


class ProductScore(TimestampMixin, Base):
    __tablename__ = "product_scores"

    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)

    view_count = Column(Integer, default=0)
    click_count = Column(Integer, default=0)
    like_count = Column(Integer, default=0)
    conversion_count = Column(Integer, default=0)

    popularity_score = Column(Numeric(10, 4), default=0, index=True)
    trending_score = Column(Numeric(10, 4), default=0, index=True)
    last_interaction_at = Column(DateTime(timezone=True), server_default=func.now())
