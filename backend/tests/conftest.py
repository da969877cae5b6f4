"""Test configuration — in-memory recommendation store and shared fixtures."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.schemas.recommendation import (
    ActiveUser,
    CacheEntry,
    OnboardingPreferences,
    ProductCandidate,
    UserPreferenceRecord,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeProduct:
    id: UUID
    display_name: str | None
    description: str | None
    price: float | None
    marketplace_category: str | None
    is_active: bool
    created_at: datetime
    popularity_score: float | None
    trending_score: float | None


@dataclass
class FakeInteraction:
    user_id: UUID
    product_id: UUID | None
    interaction_type: str
    created_at: datetime


class FakeRecommendationStore:
    """Same interface and ordering rules as RecommendationStore, backed by lists."""

    def __init__(self):
        self.products: dict[UUID, FakeProduct] = {}
        self.preferences: dict[UUID, dict] = {}
        self.onboarding: dict[UUID, dict] = {}
        self.interactions: list[FakeInteraction] = []
        self.cache: list[CacheEntry] = []

        self.fail_active_users = False
        self.fail_insert_for: set[UUID] = set()
        self.cache_check_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.savepoints = 0
        self._product_seq = 0

    @asynccontextmanager
    async def savepoint(self):
        self.savepoints += 1
        yield

    # --- Seeding helpers ---

    def add_product(
        self,
        *,
        name: str = "Listing",
        description: str = "",
        price: float | None = 1000.0,
        category: str | None = "Bicycles",
        is_active: bool = True,
        popularity: float | None = None,
        trending: float | None = None,
    ) -> UUID:
        self._product_seq += 1
        pid = uuid.uuid4()
        self.products[pid] = FakeProduct(
            id=pid,
            display_name=name,
            description=description,
            price=price,
            marketplace_category=category,
            is_active=is_active,
            created_at=NOW - timedelta(minutes=self._product_seq),  # later additions are older
            popularity_score=popularity,
            trending_score=trending,
        )
        return pid

    def add_interaction(self, user_id: UUID, product_id: UUID | None, interaction_type: str = "view", at: datetime | None = None):
        self.interactions.append(FakeInteraction(user_id, product_id, interaction_type, at or NOW - timedelta(days=1)))

    def set_preferences(self, user_id: UUID, last_active_at: datetime | None = None, **raw):
        raw.setdefault("favorite_price_range", {"min": 0, "max": 10000})
        self.preferences[user_id] = {"last_active_at": last_active_at or NOW - timedelta(hours=1), **raw}

    # --- Products ---

    async def get_trending_product_ids(self, limit: int) -> list[UUID]:
        rows = [p for p in self.products.values() if p.is_active and p.trending_score is not None]
        rows.sort(key=lambda p: (-p.trending_score, p.id))
        return [p.id for p in rows[:limit]]

    async def find_active_products(self, *, categories=None, min_price=None, max_price=None, rank_by="popularity", limit=50):
        rows = [p for p in self.products.values() if p.is_active]
        if categories:
            rows = [p for p in rows if p.marketplace_category in categories]
        if min_price is not None:
            rows = [p for p in rows if p.price is not None and p.price >= min_price]
        if max_price is not None:
            rows = [p for p in rows if p.price is not None and p.price <= max_price]

        if rank_by == "popularity":
            rows.sort(key=lambda p: (p.popularity_score is None, -(p.popularity_score or 0), -p.created_at.timestamp()))
        else:
            rows.sort(key=lambda p: (-p.created_at.timestamp(), p.id))
        return [p.id for p in rows[:limit]]

    async def search_products_by_keywords(self, keywords: list[str], limit: int) -> list[ProductCandidate]:
        if not keywords:
            return []

        def matches(p: FakeProduct) -> bool:
            name = (p.display_name or "").lower()
            desc = (p.description or "").lower()
            return any(kw.lower() in name or kw.lower() in desc for kw in keywords)

        rows = [p for p in self.products.values() if p.is_active and matches(p)]
        rows.sort(key=lambda p: (-p.created_at.timestamp(), p.id))
        return [
            ProductCandidate(
                id=p.id,
                display_name=p.display_name,
                description=p.description,
                price=p.price,
                marketplace_category=p.marketplace_category,
            )
            for p in rows[:limit]
        ]

    # --- Preferences ---

    async def get_user_preferences(self, user_id: UUID) -> UserPreferenceRecord | None:
        raw = self.preferences.get(user_id)
        if raw is None:
            return None
        return UserPreferenceRecord.model_validate({
            "user_id": user_id,
            "favorite_categories": raw.get("favorite_categories") or [],
            "favorite_price_range": raw.get("favorite_price_range"),
            "favorite_keywords": raw.get("favorite_keywords") or [],
            "last_active_at": raw.get("last_active_at"),
        })

    async def get_onboarding_preferences(self, user_id: UUID) -> OnboardingPreferences | None:
        raw = self.onboarding.get(user_id)
        if raw is None:
            return None
        return OnboardingPreferences.model_validate(raw)

    # --- Interactions ---

    async def count_interactions(self, user_id: UUID) -> int:
        return sum(1 for i in self.interactions if i.user_id == user_id)

    def _views(self, since: datetime) -> list[FakeInteraction]:
        rows = [i for i in self.interactions if i.interaction_type == "view" and i.created_at >= since]
        rows.sort(key=lambda i: i.created_at, reverse=True)
        return rows

    async def get_recent_view_product_ids(self, user_id: UUID, since: datetime, limit: int) -> list[UUID]:
        return [i.product_id for i in self._views(since) if i.user_id == user_id and i.product_id][:limit]

    async def get_co_views(self, product_ids, exclude_user_id, since, limit):
        return [
            (i.user_id, i.product_id)
            for i in self._views(since)
            if i.product_id in product_ids and i.user_id != exclude_user_id
        ][:limit]

    async def get_view_product_ids_for_users(self, user_ids, since):
        return [i.product_id for i in self._views(since) if i.user_id in user_ids and i.product_id]

    async def get_active_users(self, since: datetime, limit: int) -> list[ActiveUser]:
        if self.fail_active_users:
            raise ConnectionError("database unreachable")
        rows = [
            ActiveUser(user_id=uid, last_active_at=raw["last_active_at"])
            for uid, raw in self.preferences.items()
            if raw.get("last_active_at") and raw["last_active_at"] >= since
        ]
        rows.sort(key=lambda u: u.last_active_at, reverse=True)
        return rows[:limit]

    # --- Cache ---

    async def get_valid_cache_entry(self, user_id: UUID, recommendation_type: str, now: datetime) -> CacheEntry | None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.cache_check_delay)
        finally:
            self.in_flight -= 1

        valid = [
            e for e in self.cache
            if e.user_id == user_id and e.recommendation_type == recommendation_type and e.expires_at >= now
        ]
        return max(valid, key=lambda e: e.expires_at) if valid else None

    async def replace_cache_entry(self, entry: CacheEntry) -> None:
        if entry.user_id in self.fail_insert_for:
            raise RuntimeError("insert failed")
        self.cache = [
            e for e in self.cache
            if not (e.user_id == entry.user_id and e.recommendation_type == entry.recommendation_type)
        ]
        self.cache.append(entry)

    def cache_for(self, user_id: UUID) -> list[CacheEntry]:
        return [e for e in self.cache if e.user_id == user_id]


class FakeMaintenance:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    async def recalculate_popularity_scores(self) -> None:
        self.calls.append("recalculate_popularity_scores")
        if self.fail:
            raise RuntimeError("function calculate_popularity_scores() does not exist")

    async def purge_expired_recommendations(self) -> None:
        self.calls.append("purge_expired_recommendations")
        if self.fail:
            raise RuntimeError("function clean_expired_recommendations() does not exist")


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> FakeRecommendationStore:
    return FakeRecommendationStore()


@pytest.fixture
def store_factory(store):
    """StoreFactory that hands every caller the same in-memory store."""

    @asynccontextmanager
    async def open_store():
        yield store

    return open_store


@pytest.fixture
def maintenance() -> FakeMaintenance:
    return FakeMaintenance()


@pytest.fixture
def failing_maintenance() -> FakeMaintenance:
    return FakeMaintenance(fail=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest_asyncio.fixture
async def client(store_factory, maintenance, settings):
    """Async test client with the job's collaborators swapped for in-memory fakes."""
    from app.api.v1.recommendations import get_maintenance, get_store_factory
    from app.config import get_settings
    from app.main import app

    app.dependency_overrides[get_store_factory] = lambda: store_factory
    app.dependency_overrides[get_maintenance] = lambda: maintenance
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
