"""Broker catalog - keep data_brokers in step with the provider's list."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.broker import DataBroker
from app.services.scan_store import dialect_insert
from providers import get_source
from providers.base import HELLOPRIVACY, naive_utc
from providers.helloprivacy import HelloPrivacyBroker, HelloPrivacySource

logger = logging.getLogger(__name__)

BROKER_MUTABLE_FIELDS = (
    "name",
    "url",
    "enabled",
    "broker_type",
    "info_types",
    "capabilities",
    "estimated_days_to_remove_records",
    "removal_instructions",
    "active_at",
    "removed_at",
    "updated_at",
)


async def upsert_brokers(session: AsyncSession, brokers: list[HelloPrivacyBroker]) -> int:
    """Insert or update brokers keyed by the provider's broker id."""
    if not brokers:
        return 0

    now = datetime.utcnow()
    rows_by_id = {}
    for broker in brokers:
        rows_by_id[str(broker.id)] = {
            "broker_id": str(broker.id),
            "name": broker.name,
            "url": broker.url,
            "enabled": broker.enabled,
            "broker_type": broker.broker_type,
            "info_types": broker.info_types,
            "capabilities": broker.capabilities,
            "estimated_days_to_remove_records": broker.estimated_days_to_remove_records,
            "removal_instructions": broker.removal_instructions,
            "active_at": naive_utc(broker.active_at),
            "removed_at": naive_utc(broker.removed_at),
            "created_at": now,
            "updated_at": now,
        }

    stmt = dialect_insert(session, DataBroker).values(list(rows_by_id.values()))
    stmt = stmt.on_conflict_do_update(
        index_elements=["broker_id"],
        set_={name: getattr(stmt.excluded, name) for name in BROKER_MUTABLE_FIELDS},
    )
    await session.execute(stmt)
    await session.commit()
    return len(rows_by_id)


async def sync_brokers(session: AsyncSession, source: Optional[HelloPrivacySource] = None) -> int:
    """Fetch the provider's broker list and store it."""
    if source is None:
        source = get_source(HELLOPRIVACY)

    brokers = await source.list_brokers()
    count = await upsert_brokers(session, brokers)
    logger.info("brokers_synced", extra={"provider": source.provider, "count": count})
    return count


async def get_broker_names(session: AsyncSession) -> dict[str, str]:
    """Map of broker id to display name."""
    result = await session.execute(select(DataBroker.broker_id, DataBroker.name))
    return {broker_id: name for broker_id, name in result.all()}
