"""User interaction model — append-only log of user-product events."""

from sqlalchemy import CheckConstraint, Column, String, Integer, DateTime, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID, JSONB

from app.models.base import Base, UUIDMixin

INTERACTION_TYPES = ("view", "click", "search", "add_to_cart", "like", "unlike")


class UserInteraction(UUIDMixin, Base):
    __tablename__ = "user_interactions"

    user_id = Column(UUID(as_uuid=True), nullable=False)
    session_id = Column(UUID(as_uuid=True), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"))
    interaction_type = Column(String(20), nullable=False)  # view, click, search, add_to_cart, like, unlike
    dwell_time_seconds = Column(Integer, default=0)
    extra_data = Column("metadata", JSONB, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_user_interactions_user_id", "user_id", "created_at"),
        Index("idx_user_interactions_product_id", "product_id"),
        Index("idx_user_interactions_type", "interaction_type", "created_at"),
        CheckConstraint(
            "interaction_type IN (" + ", ".join(f"'{t}'" for t in INTERACTION_TYPES) + ")",
            name="ck_user_interactions_type",
        ),
    )
