"""Recommendation cache generation — per-user refresh and the batch driver.

Flow per run:
    active users -> batches of N (concurrent within a batch)
        -> cache freshness check -> collect signals -> merge -> replace cache row
    -> popularity score recompute + expired cache purge
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol
from uuid import UUID

from app.config import Settings, get_settings
from app.schemas.recommendation import CacheEntry, GenerationSummary
from app.services.hybrid_ranker import merge_recommendations
from app.services.recommendation_signals import (
    get_category_based_recommendations,
    get_collaborative_recommendations,
    get_keyword_based_recommendations,
    get_onboarding_based_recommendations,
    get_trending_products,
)
from app.services.recommendation_store import RecommendationStore, StoreFactory

logger = logging.getLogger(__name__)

PERSONALIZED = "personalized"
CACHE_SCORE = 1.0

# Candidates requested from each collector
ONBOARDING_LIMIT = 40
TRENDING_LIMIT = 30
INTERACTION_SIGNAL_LIMIT = 30


class RecommendationJobError(Exception):
    """Raised when the run itself cannot proceed (e.g. active users cannot be fetched)."""
    pass


class SignalCollectionError(Exception):
    """A collector failed while signal failures are not isolated."""

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Signal collector '{algorithm}' failed")


class RefreshStatus(str, Enum):
    REFRESHED = "refreshed"
    CACHE_FRESH = "cache_fresh"
    NO_RECOMMENDATIONS = "no_recommendations"
    FAILED = "failed"


@dataclass
class UserRefreshOutcome:
    user_id: UUID
    status: RefreshStatus
    failed_signals: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == RefreshStatus.FAILED or bool(self.failed_signals)


class MaintenanceHooks(Protocol):
    async def recalculate_popularity_scores(self) -> None: ...

    async def purge_expired_recommendations(self) -> None: ...


Collector = Callable[[RecommendationStore, UUID, int], Awaitable[list[UUID]]]


async def collect_signals(
    store: RecommendationStore,
    user_id: UUID,
    now: datetime,
    isolate_failures: bool = True,
) -> tuple[list[tuple[str, list[UUID]]], list[str]]:
    """Run the applicable collectors for one user.

    Onboarding and trending always run; category, collaborative and keyword
    only when the user has at least one recorded interaction. Each collector
    runs in its own savepoint, so a database error in one leaves the
    transaction usable for the rest.

    Returns (signals, failed_algorithms). With isolate_failures=False the
    first collector failure raises SignalCollectionError instead.
    """

    async def collaborative(s: RecommendationStore, uid: UUID, limit: int) -> list[UUID]:
        return await get_collaborative_recommendations(s, uid, limit, now=now)

    plan: list[tuple[str, Collector, int]] = [
        ("onboarding_based", get_onboarding_based_recommendations, ONBOARDING_LIMIT),
        ("trending", get_trending_products, TRENDING_LIMIT),
    ]
    if await store.count_interactions(user_id) > 0:
        plan += [
            ("category_based", get_category_based_recommendations, INTERACTION_SIGNAL_LIMIT),
            ("collaborative", collaborative, INTERACTION_SIGNAL_LIMIT),
            ("keyword_based", get_keyword_based_recommendations, INTERACTION_SIGNAL_LIMIT),
        ]

    signals: list[tuple[str, list[UUID]]] = []
    failed: list[str] = []
    for algorithm, collector, limit in plan:
        try:
            async with store.savepoint():
                product_ids = await collector(store, user_id, limit)
        except Exception as e:
            if not isolate_failures:
                raise SignalCollectionError(algorithm) from e
            logger.warning("Signal %s failed for user %s: %s", algorithm, user_id, e)
            failed.append(algorithm)
            continue
        signals.append((algorithm, product_ids))

    return signals, failed


async def generate_hybrid_recommendations(
    store: RecommendationStore,
    user_id: UUID,
    limit: int = 50,
    now: datetime | None = None,
    isolate_failures: bool = True,
) -> tuple[list[UUID], list[str]]:
    """Merged recommendation list for one user plus the names of failed signals."""
    now = now or datetime.now(timezone.utc)
    signals, failed = await collect_signals(store, user_id, now, isolate_failures)
    return merge_recommendations(signals, limit), failed


async def refresh_user_recommendations(
    open_store: StoreFactory,
    user_id: UUID,
    now: datetime,
    settings: Settings,
) -> UserRefreshOutcome:
    """Rebuild one user's personalized cache row unless a valid one exists.

    Never raises: any failure is captured in the returned outcome.
    """
    try:
        async with open_store() as store:
            existing = await store.get_valid_cache_entry(user_id, PERSONALIZED, now)
            if existing:
                logger.debug("User %s has valid cache, skipping", user_id)
                return UserRefreshOutcome(user_id, RefreshStatus.CACHE_FRESH)

            product_ids, failed = await generate_hybrid_recommendations(
                store,
                user_id,
                limit=settings.recommendation_limit,
                now=now,
                isolate_failures=settings.recommendation_isolate_signal_failures,
            )

            if not product_ids:
                logger.debug("No recommendations for user %s", user_id)
                return UserRefreshOutcome(user_id, RefreshStatus.NO_RECOMMENDATIONS, failed)

            await store.replace_cache_entry(CacheEntry(
                user_id=user_id,
                recommendation_type=PERSONALIZED,
                recommended_products=product_ids,
                score=CACHE_SCORE,
                algorithm_version=settings.recommendation_algorithm_version,
                expires_at=now + timedelta(minutes=settings.recommendation_cache_ttl_minutes),
            ))

        logger.debug("Cached %d recommendations for user %s", len(product_ids), user_id)
        return UserRefreshOutcome(user_id, RefreshStatus.REFRESHED, failed)

    except Exception as e:
        logger.exception("Error processing user %s", user_id)
        return UserRefreshOutcome(user_id, RefreshStatus.FAILED, error=str(e))


async def _run_maintenance(maintenance: MaintenanceHooks) -> None:
    try:
        await maintenance.recalculate_popularity_scores()
    except Exception as e:
        logger.error("Failed to calculate popularity scores: %s", e)

    try:
        await maintenance.purge_expired_recommendations()
    except Exception as e:
        logger.error("Failed to clean expired recommendation cache: %s", e)


async def run_recommendation_generation(
    open_store: StoreFactory,
    maintenance: MaintenanceHooks | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> GenerationSummary:
    """Refresh the recommendation cache for every recently active user.

    Raises RecommendationJobError only when the active-user list cannot be
    read. Per-user failures are counted in `errors` and never stop the run.
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=settings.recommendation_active_window_hours)

    logger.info("Starting recommendation generation...")

    try:
        async with open_store() as store:
            active_users = await store.get_active_users(cutoff, settings.recommendation_max_users_per_run)
    except Exception as e:
        raise RecommendationJobError(f"Failed to fetch active users: {e}") from e

    if not active_users:
        logger.info("No active users found")
        return GenerationSummary(
            message="No active users to process",
            timestamp=datetime.now(timezone.utc),
        )

    logger.info("Found %d active users", len(active_users))

    batch_size = settings.recommendation_batch_size
    outcomes: list[UserRefreshOutcome] = []
    for batch_number, start in enumerate(range(0, len(active_users), batch_size), start=1):
        batch = active_users[start:start + batch_size]
        logger.info("Processing batch %d (%d users)...", batch_number, len(batch))
        outcomes.extend(await asyncio.gather(*(
            refresh_user_recommendations(open_store, user.user_id, now, settings)
            for user in batch
        )))

    if maintenance is not None:
        await _run_maintenance(maintenance)

    summary = GenerationSummary(
        processed=sum(1 for o in outcomes if o.status == RefreshStatus.REFRESHED),
        errors=sum(1 for o in outcomes if o.is_error),
        total_active_users=len(active_users),
        timestamp=datetime.now(timezone.utc),
    )
    logger.info(
        "Recommendation generation complete: processed=%d errors=%d total=%d",
        summary.processed, summary.errors, summary.total_active_users,
    )
    return summary
