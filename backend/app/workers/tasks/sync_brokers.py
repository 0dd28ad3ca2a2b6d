"""Broker catalog tasks."""

import asyncio

from celery import shared_task
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.config import settings
from app.services.broker_catalog import sync_brokers
from providers.base import ProviderError


def get_async_session():
    """Create async database engine and session factory for worker."""
    engine = create_async_engine(settings.database_url)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def sync_broker_catalog(self):
    """Fetch the provider's broker list into data_brokers."""
    try:
        return asyncio.run(_sync_broker_catalog_async())
    except ProviderError as e:
        raise self.retry(exc=e)


async def _sync_broker_catalog_async():
    engine, async_session = get_async_session()

    try:
        async with async_session() as db:
            count = await sync_brokers(db)
            return {"brokers_synced": count}
    finally:
        await engine.dispose()
