"""Scan reconciliation: mirror a provider's scans and records locally."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.subscriber import Subscriber
from app.services import scan_store
from providers import get_source
from providers.base import ExposureSource, ProviderError

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""
    provider: str
    identifier: Optional[str]
    ok: bool = True
    skipped: bool = False
    scans_synced: int = 0
    new_scans: int = 0
    records_synced: int = 0
    error: Optional[str] = None


class ScanSync:
    """Synchronize one provider's remote scan state into the local store.

    Provider failures end the cycle quietly: a stale local view is served
    rather than failing the request that triggered the sync. Database
    failures propagate to the caller.
    """

    def __init__(self, session: AsyncSession, source: ExposureSource):
        self.session = session
        self.source = source

    @property
    def provider(self) -> str:
        return self.source.provider

    async def sync(self, identifier: str | int | None) -> SyncResult:
        """Run one sync cycle for a provider identifier."""
        if identifier is None or identifier == "":
            # Never scanned, nothing to mirror
            return SyncResult(provider=self.provider, identifier=None, skipped=True)

        identifier = str(identifier)
        result = SyncResult(provider=self.provider, identifier=identifier)

        # Step 1: scans. Must land before records are fetched.
        try:
            remote_scans = await self.source.list_scans(identifier)
        except ProviderError as e:
            return self._failed(result, "list_scans", e)

        local_scan_ids = {
            scan.remote_scan_id
            for scan in await scan_store.get_scans_for(self.session, self.provider, identifier)
        }
        for scan in remote_scans:
            if scan.scan_id not in local_scan_ids:
                result.new_scans += 1
                logger.info(
                    "scan_created_or_updated",
                    extra={
                        "provider": self.provider,
                        "scan_id": scan.scan_id,
                        "scan_status": scan.status,
                        "scan_reason": scan.reason,
                    },
                )

        result.scans_synced = await scan_store.upsert_scans(self.session, remote_scans)

        # Step 2: every record the provider currently reports, old scans included.
        try:
            records = await self.source.list_records(identifier, remote_scans)
        except ProviderError as e:
            return self._failed(result, "list_records", e)

        result.records_synced = await scan_store.upsert_records(self.session, records)

        # Metadata only, no PII
        logger.info(
            "scan_records_synced",
            extra={
                "provider": self.provider,
                "identifier": identifier,
                "records": [
                    {"scan_id": r.scan_id, "record_id": r.record_id, "broker_id": r.broker_id}
                    for r in records
                ],
            },
        )
        return result

    def _failed(self, result: SyncResult, step: str, error: ProviderError) -> SyncResult:
        logger.warning(
            "sync_failed",
            extra={
                "provider": self.provider,
                "identifier": result.identifier,
                "step": step,
                "status_code": error.status_code,
                "error": str(error),
            },
        )
        result.ok = False
        result.error = str(error)
        return result


async def refresh_stored_scan_results(
    session: AsyncSession,
    subscriber: Subscriber,
    provider: str,
    source: Optional[ExposureSource] = None,
) -> SyncResult:
    """Sync the subscriber's scans for one provider, if they have ever scanned."""
    identifier = scan_store.get_identifier(subscriber, provider)
    if source is None:
        source = get_source(provider)
    return await ScanSync(session, source).sync(identifier)
