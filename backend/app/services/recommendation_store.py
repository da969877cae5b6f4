"""Recommendation store — every query the recommendation cache job performs.

One RecommendationStore wraps one AsyncSession. The batch driver opens a
store per user through a StoreFactory so concurrently processed users never
share a session.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, AsyncContextManager
from uuid import UUID

from sqlalchemy import select, delete, func, or_, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.product import Product
from app.models.product_score import ProductScore
from app.models.recommendation_cache import RecommendationCache
from app.models.user import User
from app.models.user_interaction import UserInteraction
from app.models.user_preference import UserPreference
from app.schemas.recommendation import (
    ActiveUser,
    CacheEntry,
    OnboardingPreferences,
    ProductCandidate,
    UserPreferenceRecord,
)

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AsyncContextManager["RecommendationStore"]]


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class RecommendationStore:
    """Typed access to products, interactions, preferences, scores and cache."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Run the enclosed queries inside a SAVEPOINT.

        A failing statement rolls back to the savepoint only, so the user's
        outer transaction stays usable for later queries and the cache write.
        """
        async with self.session.begin_nested():
            yield

    # --- Products ---

    async def get_trending_product_ids(self, limit: int) -> list[UUID]:
        result = await self.session.execute(
            select(Product.id)
            .join(ProductScore, ProductScore.product_id == Product.id)
            .where(
                Product.is_active == True,  # noqa: E712
                ProductScore.trending_score.is_not(None),
            )
            .order_by(ProductScore.trending_score.desc(), Product.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_active_products(
        self,
        *,
        categories: list[str] | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        rank_by: str = "popularity",
        limit: int = 50,
    ) -> list[UUID]:
        """Active product IDs filtered by category and price.

        rank_by="popularity" orders by popularity score (unscored products
        last), "newest" by listing date.
        """
        query = select(Product.id).where(Product.is_active == True)  # noqa: E712

        if categories:
            query = query.where(Product.marketplace_category.in_(categories))
        if min_price is not None:
            query = query.where(Product.price >= min_price)
        if max_price is not None:
            query = query.where(Product.price <= max_price)

        if rank_by == "popularity":
            query = query.outerjoin(ProductScore, ProductScore.product_id == Product.id).order_by(
                ProductScore.popularity_score.desc().nulls_last(),
                Product.created_at.desc(),
            )
        else:
            query = query.order_by(Product.created_at.desc(), Product.id)

        result = await self.session.execute(query.limit(limit))
        return list(result.scalars().all())

    async def search_products_by_keywords(self, keywords: list[str], limit: int) -> list[ProductCandidate]:
        """Active products whose display name or description contains any keyword."""
        if not keywords:
            return []

        conditions = []
        for kw in keywords:
            pattern = _like_pattern(kw)
            conditions.append(Product.display_name.ilike(pattern, escape="\\"))
            conditions.append(Product.description.ilike(pattern, escape="\\"))

        result = await self.session.execute(
            select(Product)
            .where(Product.is_active == True, or_(*conditions))  # noqa: E712
            .order_by(Product.created_at.desc(), Product.id)
            .limit(limit)
        )
        return [ProductCandidate.model_validate(p) for p in result.scalars().all()]

    # --- Preferences ---

    async def get_user_preferences(self, user_id: UUID) -> UserPreferenceRecord | None:
        """Load and validate the derived preference profile.

        Raises pydantic.ValidationError when the stored JSONB is malformed.
        """
        result = await self.session.execute(
            select(UserPreference).where(UserPreference.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if not row:
            return None

        return UserPreferenceRecord.model_validate({
            "user_id": row.user_id,
            "favorite_categories": row.favorite_categories or [],
            "favorite_price_range": row.favorite_price_range,
            "favorite_keywords": row.favorite_keywords or [],
            "last_active_at": row.last_active_at,
        })

    async def get_onboarding_preferences(self, user_id: UUID) -> OnboardingPreferences | None:
        result = await self.session.execute(
            select(User.preferences).where(User.user_id == user_id)
        )
        prefs = result.scalar_one_or_none()
        # {} is what signup writes when onboarding was skipped: empty answers, not missing
        if prefs is None:
            return None
        return OnboardingPreferences.model_validate(prefs)

    # --- Interactions ---

    async def count_interactions(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(UserInteraction.id)).where(UserInteraction.user_id == user_id)
        )
        return result.scalar() or 0

    async def get_recent_view_product_ids(self, user_id: UUID, since: datetime, limit: int) -> list[UUID]:
        """Products the user viewed since `since`, newest view first."""
        result = await self.session.execute(
            select(UserInteraction.product_id)
            .where(
                UserInteraction.user_id == user_id,
                UserInteraction.interaction_type == "view",
                UserInteraction.created_at >= since,
                UserInteraction.product_id.is_not(None),
            )
            .order_by(UserInteraction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_co_views(
        self,
        product_ids: list[UUID],
        exclude_user_id: UUID,
        since: datetime,
        limit: int,
    ) -> list[tuple[UUID, UUID]]:
        """(user_id, product_id) views of the given products by other users."""
        if not product_ids:
            return []

        result = await self.session.execute(
            select(UserInteraction.user_id, UserInteraction.product_id)
            .where(
                UserInteraction.product_id.in_(product_ids),
                UserInteraction.user_id != exclude_user_id,
                UserInteraction.interaction_type == "view",
                UserInteraction.created_at >= since,
            )
            .order_by(UserInteraction.created_at.desc())
            .limit(limit)
        )
        return [(row.user_id, row.product_id) for row in result]

    async def get_view_product_ids_for_users(self, user_ids: list[UUID], since: datetime) -> list[UUID]:
        """One product ID per view by any of the given users, newest first."""
        if not user_ids:
            return []

        result = await self.session.execute(
            select(UserInteraction.product_id)
            .where(
                UserInteraction.user_id.in_(user_ids),
                UserInteraction.interaction_type == "view",
                UserInteraction.created_at >= since,
                UserInteraction.product_id.is_not(None),
            )
            .order_by(UserInteraction.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_active_users(self, since: datetime, limit: int) -> list[ActiveUser]:
        result = await self.session.execute(
            select(UserPreference.user_id, UserPreference.last_active_at)
            .where(UserPreference.last_active_at >= since)
            .order_by(UserPreference.last_active_at.desc())
            .limit(limit)
        )
        return [ActiveUser(user_id=row.user_id, last_active_at=row.last_active_at) for row in result]

    # --- Cache ---

    async def get_valid_cache_entry(
        self,
        user_id: UUID,
        recommendation_type: str,
        now: datetime,
    ) -> CacheEntry | None:
        result = await self.session.execute(
            select(RecommendationCache)
            .where(
                RecommendationCache.user_id == user_id,
                RecommendationCache.recommendation_type == recommendation_type,
                RecommendationCache.expires_at >= now,
            )
            .order_by(RecommendationCache.expires_at.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return CacheEntry.model_validate(row) if row else None

    async def replace_cache_entry(self, entry: CacheEntry) -> None:
        """Delete every row for (user, type), then insert the new one."""
        await self.session.execute(
            delete(RecommendationCache).where(
                RecommendationCache.user_id == entry.user_id,
                RecommendationCache.recommendation_type == entry.recommendation_type,
            )
        )
        self.session.add(RecommendationCache(
            user_id=entry.user_id,
            recommended_products=entry.recommended_products,
            recommendation_type=entry.recommendation_type,
            score=entry.score,
            algorithm_version=entry.algorithm_version,
            expires_at=entry.expires_at,
        ))
        await self.session.flush()


def session_store_factory(session_factory: async_sessionmaker[AsyncSession]) -> StoreFactory:
    """Build a StoreFactory that opens one session per store and commits on exit."""

    @asynccontextmanager
    async def open_store() -> AsyncIterator[RecommendationStore]:
        async with session_factory() as session:
            try:
                yield RecommendationStore(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return open_store


class SqlMaintenance:
    """Calls the database maintenance functions after a generation run."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _call(self, function_name: str) -> None:
        async with self.session_factory() as session:
            await session.execute(text(f"SELECT {function_name}()"))
            await session.commit()

    async def recalculate_popularity_scores(self) -> None:
        await self._call("calculate_popularity_scores")

    async def purge_expired_recommendations(self) -> None:
        await self._call("clean_expired_recommendations")
