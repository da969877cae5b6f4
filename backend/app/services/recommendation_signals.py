"""Signal collectors — one ranked candidate list per recommendation algorithm.

Every collector has the shape (store, user_id, limit) -> list[product_id],
best first. An empty list means "no signal", never an error.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from uuid import UUID

from app.services.recommendation_store import RecommendationStore

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 3
PRICE_RANGE_LOWER = 0.7
PRICE_RANGE_UPPER = 1.3

INTERACTION_WINDOW_DAYS = 30
RECENT_VIEWS_LIMIT = 20
CO_VIEW_SAMPLE_LIMIT = 1000
SIMILAR_USERS_LIMIT = 10

TOP_KEYWORDS = 5
DEFAULT_KEYWORD_WEIGHT = 1.0

# Substring of an onboarding interest tag -> marketplace category
INTEREST_CATEGORY_MAP = (
    ("bike", "Bicycles"),
    ("wheel", "Wheels & Tyres"),
    ("apparel", "Apparel"),
)


async def get_trending_products(store: RecommendationStore, user_id: UUID | None = None, limit: int = 50) -> list[UUID]:
    """Top products by precomputed trending score. Not personalized."""
    return await store.get_trending_product_ids(limit)


async def get_category_based_recommendations(store: RecommendationStore, user_id: UUID, limit: int = 50) -> list[UUID]:
    """Popular products in the user's top 3 favorite categories, near their usual price."""
    prefs = await store.get_user_preferences(user_id)
    if not prefs or not prefs.favorite_categories:
        return []

    top_categories = [c.category for c in prefs.favorite_categories[:TOP_CATEGORIES]]

    min_price = max_price = None
    if prefs.favorite_price_range:
        min_price = prefs.favorite_price_range.min * PRICE_RANGE_LOWER
        max_price = prefs.favorite_price_range.max * PRICE_RANGE_UPPER

    return await store.find_active_products(
        categories=top_categories,
        min_price=min_price,
        max_price=max_price,
        rank_by="popularity",
        limit=limit,
    )


async def get_collaborative_recommendations(
    store: RecommendationStore,
    user_id: UUID,
    limit: int = 50,
    now: datetime | None = None,
) -> list[UUID]:
    """Products viewed by the users whose recent views overlap most with this user's."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=INTERACTION_WINDOW_DAYS)

    viewed = await store.get_recent_view_product_ids(user_id, since, RECENT_VIEWS_LIMIT)
    if not viewed:
        return []

    co_views = await store.get_co_views(viewed, user_id, since, CO_VIEW_SAMPLE_LIMIT)
    if not co_views:
        return []

    overlap = Counter(other_user for other_user, _ in co_views)
    similar_users = [uid for uid, _ in overlap.most_common(SIMILAR_USERS_LIMIT)]

    already_viewed = set(viewed)
    frequency = Counter(
        pid
        for pid in await store.get_view_product_ids_for_users(similar_users, since)
        if pid not in already_viewed
    )
    return [pid for pid, _ in frequency.most_common(limit)]


async def get_keyword_based_recommendations(store: RecommendationStore, user_id: UUID, limit: int = 50) -> list[UUID]:
    """Text matches on the user's top keywords, re-scored by stored keyword weight."""
    prefs = await store.get_user_preferences(user_id)
    if not prefs or not prefs.favorite_keywords:
        return []

    weights: dict[str, float] = {}
    for k in prefs.favorite_keywords:
        weights.setdefault(k.keyword, k.score)  # first entry wins for duplicate keywords
    top_keywords = [k.keyword for k in prefs.favorite_keywords[:TOP_KEYWORDS]]

    products = await store.search_products_by_keywords(top_keywords, limit * 2)
    if not products:
        return []

    scored = []
    for product in products:
        text = f"{product.display_name or ''} {product.description or ''}".lower()
        score = 0.0
        for kw in top_keywords:
            if kw.lower() in text:
                score += weights.get(kw) or DEFAULT_KEYWORD_WEIGHT
        scored.append((product.id, score))

    scored.sort(key=lambda item: item[1], reverse=True)
    return [pid for pid, _ in scored[:limit]]


def parse_budget_range(budget_range: str | None) -> tuple[int | None, int | None]:
    """Parse "500-1000" or "2500+" into (min, max). Missing or zero bounds come back as None."""
    if not budget_range:
        return None, None

    bounds = []
    for part in budget_range.split("-")[:2]:
        match = re.match(r"\s*(\d+)", part)
        value = int(match.group(1)) if match else 0
        bounds.append(value or None)

    while len(bounds) < 2:
        bounds.append(None)
    return bounds[0], bounds[1]


def map_interests_to_categories(interests: list[str]) -> list[str]:
    categories = []
    for interest in interests:
        for needle, category in INTEREST_CATEGORY_MAP:
            if needle in interest:
                categories.append(category)
                break
    return categories


async def get_onboarding_based_recommendations(store: RecommendationStore, user_id: UUID, limit: int = 50) -> list[UUID]:
    """Cold-start candidates from the budget and interests given at signup."""
    prefs = await store.get_onboarding_preferences(user_id)
    if not prefs:
        return []

    min_price, max_price = parse_budget_range(prefs.budget_range)
    categories = map_interests_to_categories(prefs.interests)

    return await store.find_active_products(
        categories=categories or None,
        min_price=min_price,
        max_price=max_price,
        rank_by="newest",
        limit=limit,
    )
