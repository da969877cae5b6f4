#!/usr/bin/env python3
"""Manually trigger one recommendation cache generation run.

Runs the same job as the scheduled Celery task and prints the summary.

Run from the repository root:
    python scripts/generate_recommendations.py --max-users 50
Or via Docker:
    docker compose exec celery_worker python /app/scripts/generate_recommendations.py
"""

import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

import argparse
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.models.base import create_task_engine
from app.services.recommendation_generator import RecommendationJobError, run_recommendation_generation
from app.services.recommendation_store import SqlMaintenance, session_store_factory


async def run(max_users: int | None, batch_size: int | None, skip_maintenance: bool) -> int:
    overrides = {}
    if max_users is not None:
        overrides["recommendation_max_users_per_run"] = max_users
    if batch_size is not None:
        overrides["recommendation_batch_size"] = batch_size
    settings = get_settings().model_copy(update=overrides)

    engine = create_task_engine()
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        summary = await run_recommendation_generation(
            session_store_factory(session_factory),
            None if skip_maintenance else SqlMaintenance(session_factory),
            settings,
        )
    except RecommendationJobError as e:
        print(f"FAILED: {e}")
        return 1
    finally:
        await engine.dispose()

    print(summary.model_dump_json(indent=2, exclude_none=True))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Generate cached recommendations for active users")
    parser.add_argument("--max-users", type=int, help="Cap on active users processed this run")
    parser.add_argument("--batch-size", type=int, help="Users processed concurrently per batch")
    parser.add_argument("--skip-maintenance", action="store_true", help="Skip score recompute and cache purge")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(run(args.max_users, args.batch_size, args.skip_maintenance)))


if __name__ == "__main__":
    main()
