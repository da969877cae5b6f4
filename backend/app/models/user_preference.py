"""User preference model — derived profile maintained by the preference-learning job."""

from sqlalchemy import Column, Integer, DateTime, func
from sqlalchemy.dialects.postgresql import UUID, JSONB

from app.models.base import Base, TimestampMixin, UUIDMixin


class UserPreference(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "user_preferences"

    user_id = Column(UUID(as_uuid=True), unique=True, nullable=False)

    # [{"category": str, "score": number}], highest score first
    favorite_categories = Column(JSONB, server_default="[]", nullable=False, default=list)
    # {"min": number, "max": number}
    favorite_price_range = Column(JSONB, server_default='{"min": 0, "max": 10000}', default=lambda: {"min": 0, "max": 10000})
    # [{"keyword": str, "score": number}], highest score first
    favorite_keywords = Column(JSONB, server_default="[]", nullable=False, default=list)
    favorite_brands = Column(JSONB, server_default="[]", nullable=False, default=list)
    favorite_stores = Column(JSONB, server_default="[]", nullable=False, default=list)

    interaction_count = Column(Integer, server_default="0", nullable=False, default=0)
    last_active_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
