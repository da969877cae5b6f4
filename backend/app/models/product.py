"""Product model — marketplace listings."""

from sqlalchemy import Column, String, Boolean, Numeric, Text, Index
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base, TimestampMixin, UUIDMixin


class Product(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "products"

    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)  # seller

    display_name = Column(Text)
    description = Column(Text)
    price = Column(Numeric(10, 2))
    marketplace_category = Column(String(100), index=True)  # Bicycles, Wheels & Tyres, Apparel, Parts, ...
    bike_type = Column(String(50))  # Mountain, Road, Gravel, ...
    manufacturer_name = Column(String(255))

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    __table_args__ = (
        Index("idx_products_active_category", "is_active", "marketplace_category"),
        Index("idx_products_active_price", "is_active", "price"),
    )
