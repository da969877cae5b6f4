"""Marketplace user profile — onboarding answers live in the preferences JSONB."""

from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID, JSONB

from app.models.base import Base, TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    user_id = Column(UUID(as_uuid=True), unique=True, nullable=False, index=True)  # auth identity
    display_name = Column(String(100))

    # riding_styles, preferred_brands, experience_level, budget_range ("500-1000", "2500+"), interests
    preferences = Column(JSONB)
