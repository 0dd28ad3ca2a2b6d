"""Scan sync tasks - mirror provider scan state for subscribers."""

import asyncio
import logging

from celery import shared_task
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.config import settings
from app.models.subscriber import Subscriber
from app.services.scan_store import IDENTIFIER_COLUMNS
from app.services.scan_sync import refresh_stored_scan_results

logger = logging.getLogger(__name__)


def get_async_session():
    """Create async database engine and session factory for worker."""
    engine = create_async_engine(settings.database_url)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@shared_task(bind=True)
def sync_subscriber_scans(self, subscriber_id: int):
    """Sync one subscriber's scans and records from the configured provider."""
    return asyncio.run(_sync_subscriber_scans_async(subscriber_id))


async def _sync_subscriber_scans_async(subscriber_id: int):
    engine, async_session = get_async_session()

    try:
        async with async_session() as db:
            result = await db.execute(select(Subscriber).where(Subscriber.id == subscriber_id))
            subscriber = result.scalar_one_or_none()

            if not subscriber:
                return {"error": "Subscriber not found", "subscriber_id": subscriber_id}

            sync_result = await refresh_stored_scan_results(db, subscriber, settings.scan_provider)
            return {
                "subscriber_id": subscriber_id,
                "ok": sync_result.ok,
                "skipped": sync_result.skipped,
                "scans_synced": sync_result.scans_synced,
                "records_synced": sync_result.records_synced,
            }
    finally:
        await engine.dispose()


@shared_task(bind=True)
def sync_all_subscribers(self):
    """Queue a sync for every subscriber who has scanned with the provider."""
    subscriber_ids = asyncio.run(_scanned_subscriber_ids_async())

    for subscriber_id in subscriber_ids:
        sync_subscriber_scans.delay(subscriber_id)

    logger.info("subscriber_syncs_queued", extra={"count": len(subscriber_ids)})
    return {"queued": len(subscriber_ids)}


async def _scanned_subscriber_ids_async() -> list[int]:
    column = getattr(Subscriber, IDENTIFIER_COLUMNS[settings.scan_provider])
    engine, async_session = get_async_session()

    try:
        async with async_session() as db:
            result = await db.execute(select(Subscriber.id).where(column.is_not(None)))
            return list(result.scalars().all())
    finally:
        await engine.dispose()
