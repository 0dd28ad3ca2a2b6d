"""Welcome scan - a subscriber's first (free) broker scan and its progress."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import MissingIdentifierError, NotEligibleForFreeScanError
from app.models.subscriber import Subscriber
from app.services import scan_store
from app.services.guided_steps import is_eligible_for_free_scan
from providers import get_source
from providers.base import ExposureSource, ProfileInfo, ProviderError, RemoteScan

logger = logging.getLogger(__name__)

# Once a scan reaches one of these, its records can be fetched
SCAN_RESULTS_READY_STATUSES = ("active", "done", "finished")


@dataclass
class ScanProgress:
    success: bool
    status: Optional[str] = None
    records_synced: int = 0


async def create_welcome_scan(
    session: AsyncSession,
    subscriber: Subscriber,
    provider: str,
    profile: ProfileInfo,
    country_code: Optional[str],
    source: Optional[ExposureSource] = None,
) -> RemoteScan:
    """Create the provider identifier if needed and start the first scan.

    An identifier left over from an earlier attempt whose scan never
    started is reused, never replaced.
    """
    identifier = scan_store.get_identifier(subscriber, provider)
    has_scan = identifier is not None and await scan_store.count_scans(session, provider, identifier) > 0
    if not is_eligible_for_free_scan(country_code, has_scan):
        raise NotEligibleForFreeScanError(subscriber.id, country_code)

    if source is None:
        source = get_source(provider)

    try:
        if identifier is None:
            identifier = await source.create_identifier(profile)
            await scan_store.set_provider_identifier(session, subscriber, provider, identifier)

        scan = await source.start_scan(identifier, profile)
    except ProviderError as e:
        logger.error(
            "create_scan_failed",
            extra={"provider": provider, "subscriber_id": subscriber.id, "error": str(e)},
        )
        raise

    await scan_store.upsert_scans(session, [scan])
    logger.info(
        "scan_created",
        extra={"provider": provider, "subscriber_id": subscriber.id, "scan_id": scan.scan_id},
    )
    return scan


async def check_scan_progress(
    session: AsyncSession,
    subscriber: Subscriber,
    provider: str,
    source: Optional[ExposureSource] = None,
) -> ScanProgress:
    """Poll the latest scan; store its records once the provider has them."""
    identifier = scan_store.get_identifier(subscriber, provider)
    if identifier is None:
        raise MissingIdentifierError(provider, subscriber.id)

    scans = await scan_store.get_scans_for(session, provider, identifier)
    if not scans:
        return ScanProgress(success=True)

    if source is None:
        source = get_source(provider)

    try:
        scan = await source.get_scan(identifier, scans[0].remote_scan_id)
        await scan_store.upsert_scans(session, [scan])

        records_synced = 0
        if scan.status in SCAN_RESULTS_READY_STATUSES:
            records = await source.list_records(identifier, [scan])
            records_synced = await scan_store.upsert_records(session, records)
    except ProviderError as e:
        logger.error(
            "failed_checking_scan_progress",
            extra={"provider": provider, "subscriber_id": subscriber.id, "error": str(e)},
        )
        return ScanProgress(success=False)

    return ScanProgress(success=True, status=scan.status, records_synced=records_synced)
