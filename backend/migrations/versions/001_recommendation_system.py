"""Create recommendation system tables and maintenance functions.

Creates:
- user_interactions: append-only user-product event log
- user_preferences: derived per-user profile (JSONB favorites)
- product_scores: popularity/trending numbers per product
- recommendation_cache: time-boxed personalized lists
- calculate_popularity_scores(), clean_expired_recommendations()

Assumes the marketplace's products and users tables already exist.

Revision ID: 001
Revises:
Create Date: 2025-11-29
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB, ARRAY

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CALCULATE_POPULARITY_SCORES = """
CREATE OR REPLACE FUNCTION calculate_popularity_scores()
RETURNS void AS $$
BEGIN
  INSERT INTO product_scores (product_id, view_count, click_count, like_count, trending_score, popularity_score, last_interaction_at)
  SELECT p.id, 1, 0, 0, 1.0, 1.0, NOW()
  FROM products p
  WHERE p.is_active = true
    AND NOT EXISTS (SELECT 1 FROM product_scores ps WHERE ps.product_id = p.id);

  UPDATE product_scores ps
  SET
    popularity_score = (
      (ps.view_count * 1.0) + (ps.click_count * 2.0) + (ps.like_count * 5.0) + (ps.conversion_count * 10.0)
    ) / GREATEST(EXTRACT(EPOCH FROM (NOW() - ps.created_at)) / 86400, 0.1),
    trending_score = (
      (ps.view_count * 1.0) + (ps.click_count * 2.0) + (ps.like_count * 5.0) + (ps.conversion_count * 10.0)
    ) * EXP(-0.1 * GREATEST(EXTRACT(EPOCH FROM (NOW() - ps.last_interaction_at)) / 86400, 0)),
    updated_at = NOW()
  WHERE EXISTS (SELECT 1 FROM products p WHERE p.id = ps.product_id AND p.is_active = true);
END;
$$ LANGUAGE plpgsql SECURITY DEFINER;
"""

CLEAN_EXPIRED_RECOMMENDATIONS = """
CREATE OR REPLACE FUNCTION clean_expired_recommendations()
RETURNS void AS $$
BEGIN
  DELETE FROM recommendation_cache WHERE expires_at < NOW();
END;
$$ LANGUAGE plpgsql SECURITY DEFINER;
"""


def upgrade() -> None:
    # 1. user_interactions
    op.create_table(
        "user_interactions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("session_id", UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.id", ondelete="CASCADE")),
        sa.Column("interaction_type", sa.String(20), nullable=False),
        sa.Column("dwell_time_seconds", sa.Integer, server_default=sa.text("0")),
        sa.Column("metadata", JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "interaction_type IN ('view', 'click', 'search', 'add_to_cart', 'like', 'unlike')",
            name="ck_user_interactions_type",
        ),
    )
    op.create_index("idx_user_interactions_user_id", "user_interactions", ["user_id", "created_at"])
    op.create_index("idx_user_interactions_product_id", "user_interactions", ["product_id"])
    op.create_index("idx_user_interactions_type", "user_interactions", ["interaction_type", "created_at"])

    # 2. user_preferences
    op.create_table(
        "user_preferences",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), unique=True, nullable=False),
        sa.Column("favorite_categories", JSONB, server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("favorite_price_range", JSONB, server_default=sa.text("'{\"min\": 0, \"max\": 10000}'::jsonb")),
        sa.Column("favorite_keywords", JSONB, server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("favorite_brands", JSONB, server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("favorite_stores", JSONB, server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("interaction_count", sa.Integer, server_default=sa.text("0"), nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_user_preferences_last_active", "user_preferences", ["last_active_at"])

    # 3. product_scores
    op.create_table(
        "product_scores",
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("view_count", sa.Integer, server_default=sa.text("0")),
        sa.Column("click_count", sa.Integer, server_default=sa.text("0")),
        sa.Column("like_count", sa.Integer, server_default=sa.text("0")),
        sa.Column("conversion_count", sa.Integer, server_default=sa.text("0")),
        sa.Column("popularity_score", sa.Numeric(10, 4), server_default=sa.text("0")),
        sa.Column("trending_score", sa.Numeric(10, 4), server_default=sa.text("0")),
        sa.Column("last_interaction_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_product_scores_popularity", "product_scores", ["popularity_score"])
    op.create_index("idx_product_scores_trending", "product_scores", ["trending_score"])

    # 4. recommendation_cache
    op.create_table(
        "recommendation_cache",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("recommended_products", ARRAY(UUID(as_uuid=True)), nullable=False),
        sa.Column("recommendation_type", sa.String(20), nullable=False),
        sa.Column("score", sa.Numeric(10, 4)),
        sa.Column("algorithm_version", sa.String(20), server_default="v1.0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "recommendation_type IN ('personalized', 'trending', 'similar', 'category_based', 'popular')",
            name="ck_recommendation_cache_type",
        ),
    )
    op.create_index("idx_recommendation_cache_user_id", "recommendation_cache", ["user_id", "expires_at"])
    op.create_index("idx_recommendation_cache_type", "recommendation_cache", ["recommendation_type"])
    op.create_index("ix_recommendation_cache_expires_at", "recommendation_cache", ["expires_at"])

    # 5. Maintenance functions
    op.execute(CALCULATE_POPULARITY_SCORES)
    op.execute(CLEAN_EXPIRED_RECOMMENDATIONS)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS clean_expired_recommendations()")
    op.execute("DROP FUNCTION IF EXISTS calculate_popularity_scores()")
    op.drop_table("recommendation_cache")
    op.drop_table("product_scores")
    op.drop_table("user_preferences")
    op.drop_table("user_interactions")
