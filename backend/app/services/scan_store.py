"""Local store for mirrored provider scans and scan records.

Writes are single-statement ``INSERT ... ON CONFLICT DO UPDATE`` upserts keyed
on the provider's remote id, so concurrent or repeated syncs converge on one
row per remote scan/record without an exists-then-insert race.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import IdentifierAlreadySetError, UnknownProviderError, UnsupportedDialectError
from app.models.scan import ProviderScan, ProviderScanRecord
from app.models.subscriber import Subscriber
from providers.base import HELLOPRIVACY, ONEREP, RemoteScan, ScanRecord

logger = logging.getLogger(__name__)

# Rows per INSERT statement, keeps bound parameters under backend limits
UPSERT_BATCH_SIZE = 500

IDENTIFIER_COLUMNS = {
    ONEREP: "onerep_profile_id",
    HELLOPRIVACY: "helloprivacy_customer_id",
}

# Fields sync may overwrite on an existing row. Anything else is set on insert only.
SCAN_MUTABLE_FIELDS = ("status", "modified_at", "last_synced_at")
RECORD_MUTABLE_FIELDS = (
    "remote_scan_id",
    "broker_id",
    "broker_name",
    "score",
    "status",
    "full_name",
    "age",
    "addresses",
    "relatives",
    "emails",
    "phones",
    "record_url",
    "submitted_at",
    "confirmed_at",
    "verified_at",
    "modified_at",
    "last_synced_at",
)


@dataclass
class LatestScanData:
    """The most recent scan for an identifier plus every stored record."""
    scan: Optional[RemoteScan] = None
    records: list[ScanRecord] = field(default_factory=list)
    scan_count: int = 0


def get_identifier(subscriber: Subscriber, provider: str) -> Optional[str]:
    """Return the subscriber's identifier for a provider, as a string."""
    column = IDENTIFIER_COLUMNS.get(provider)
    if column is None:
        raise UnknownProviderError(provider)

    value = getattr(subscriber, column)
    return None if value is None else str(value)


async def set_provider_identifier(
    session: AsyncSession,
    subscriber: Subscriber,
    provider: str,
    identifier: str,
) -> None:
    """Store a provider identifier. Identifiers are write-once."""
    column = IDENTIFIER_COLUMNS.get(provider)
    if column is None:
        raise UnknownProviderError(provider)

    current = get_identifier(subscriber, provider)
    if current is not None:
        if current == str(identifier):
            return
        raise IdentifierAlreadySetError(provider, subscriber.id)

    value = int(identifier) if provider == ONEREP else str(identifier)
    result = await session.execute(
        update(Subscriber)
        .where(Subscriber.id == subscriber.id)
        .where(getattr(Subscriber, column).is_(None))
        .values({column: value})
    )
    if result.rowcount == 0:
        await session.rollback()
        raise IdentifierAlreadySetError(provider, subscriber.id)

    await session.commit()
    await session.refresh(subscriber)


def dialect_insert(session: AsyncSession, table):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise UnsupportedDialectError(dialect)


def _batches(rows: list[dict], size: int = UPSERT_BATCH_SIZE):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


async def upsert_scans(session: AsyncSession, scans: list[RemoteScan]) -> int:
    """Insert or update scans keyed by (provider, remote scan id)."""
    now = datetime.utcnow()

    # Last occurrence wins if the provider repeats an id within one response
    rows_by_key = {}
    for scan in scans:
        rows_by_key[(scan.provider, scan.scan_id)] = {
            "provider": scan.provider,
            "remote_scan_id": scan.scan_id,
            "identifier": scan.identifier,
            "status": scan.status,
            "reason": scan.reason,
            "scan_type": scan.scan_type,
            "created_at": scan.created_at,
            "modified_at": scan.modified_at,
            "last_synced_at": now,
        }
    rows = list(rows_by_key.values())

    for batch in _batches(rows):
        stmt = dialect_insert(session, ProviderScan).values(batch)
        stmt = stmt.on_conflict_do_update(
            index_elements=["provider", "remote_scan_id"],
            set_={name: getattr(stmt.excluded, name) for name in SCAN_MUTABLE_FIELDS},
        )
        await session.execute(stmt)

    await session.commit()
    return len(rows)


async def upsert_records(session: AsyncSession, records: list[ScanRecord]) -> int:
    """Insert or merge records keyed by (provider, remote record id).

    ``manually_resolved`` belongs to the subscriber and is never overwritten.
    """
    now = datetime.utcnow()

    rows_by_key = {}
    for record in records:
        rows_by_key[(record.provider, record.record_id)] = {
            "provider": record.provider,
            "remote_record_id": record.record_id,
            "remote_scan_id": record.scan_id,
            "identifier": record.identifier,
            "broker_id": record.broker_id,
            "broker_name": record.broker_name,
            "score": record.score,
            "status": record.status,
            "full_name": record.full_name,
            "age": record.age,
            "addresses": record.addresses,
            "relatives": record.relatives,
            "emails": record.emails,
            "phones": record.phones,
            "record_url": record.record_url,
            "created_at": record.created_at,
            "submitted_at": record.submitted_at,
            "confirmed_at": record.confirmed_at,
            "verified_at": record.verified_at,
            "modified_at": record.modified_at,
            "last_synced_at": now,
        }
    rows = list(rows_by_key.values())

    for batch in _batches(rows):
        stmt = dialect_insert(session, ProviderScanRecord).values(batch)
        stmt = stmt.on_conflict_do_update(
            index_elements=["provider", "remote_record_id"],
            set_={name: getattr(stmt.excluded, name) for name in RECORD_MUTABLE_FIELDS},
        )
        await session.execute(stmt)

    await session.commit()
    return len(rows)


def scan_from_row(row: ProviderScan) -> RemoteScan:
    return RemoteScan(
        provider=row.provider,
        scan_id=row.remote_scan_id,
        identifier=row.identifier,
        status=row.status,
        reason=row.reason,
        scan_type=row.scan_type,
        created_at=row.created_at,
        modified_at=row.modified_at,
    )


def record_from_row(row: ProviderScanRecord) -> ScanRecord:
    return ScanRecord(
        provider=row.provider,
        record_id=row.remote_record_id,
        scan_id=row.remote_scan_id,
        identifier=row.identifier,
        broker_id=row.broker_id,
        broker_name=row.broker_name,
        score=row.score,
        status=row.status,
        created_at=row.created_at,
        submitted_at=row.submitted_at,
        confirmed_at=row.confirmed_at,
        verified_at=row.verified_at,
        modified_at=row.modified_at,
        full_name=row.full_name,
        age=row.age,
        addresses=list(row.addresses or []),
        relatives=list(row.relatives or []),
        emails=list(row.emails or []),
        phones=list(row.phones or []),
        record_url=row.record_url,
        manually_resolved=row.manually_resolved,
    )


async def get_scans_for(session: AsyncSession, provider: str, identifier: str) -> list[ProviderScan]:
    """All stored scans for an identifier, newest first."""
    result = await session.execute(
        select(ProviderScan)
        .where(ProviderScan.provider == provider)
        .where(ProviderScan.identifier == str(identifier))
        .order_by(ProviderScan.created_at.desc(), ProviderScan.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_records_for(session: AsyncSession, provider: str, identifier: str) -> list[ScanRecord]:
    """All stored records for an identifier, newest first."""
    result = await session.execute(
        select(ProviderScanRecord)
        .where(ProviderScanRecord.provider == provider)
        .where(ProviderScanRecord.identifier == str(identifier))
        .order_by(ProviderScanRecord.created_at.desc(), ProviderScanRecord.id.desc())
        .execution_options(populate_existing=True)
    )
    return [record_from_row(row) for row in result.scalars().all()]


async def count_scans(session: AsyncSession, provider: str, identifier: str) -> int:
    result = await session.execute(
        select(func.count(ProviderScan.id))
        .where(ProviderScan.provider == provider)
        .where(ProviderScan.identifier == str(identifier))
    )
    return result.scalar() or 0


async def get_latest_scan_data(
    session: AsyncSession,
    provider: str,
    identifier: Optional[str],
) -> LatestScanData:
    """Latest scan and all records for an identifier; empty if there is none."""
    if identifier is None:
        return LatestScanData()

    scans = await get_scans_for(session, provider, identifier)
    if not scans:
        return LatestScanData()

    records = await get_records_for(session, provider, identifier)
    return LatestScanData(
        scan=scan_from_row(scans[0]),
        records=records,
        scan_count=len(scans),
    )


async def mark_record_resolved(
    session: AsyncSession,
    subscriber: Subscriber,
    provider: str,
    remote_record_id: str,
) -> bool:
    """Mark one of the subscriber's records as manually resolved.

    Returns False if the record does not exist or belongs to someone else.
    """
    identifier = get_identifier(subscriber, provider)
    if identifier is None:
        return False

    result = await session.execute(
        update(ProviderScanRecord)
        .where(ProviderScanRecord.provider == provider)
        .where(ProviderScanRecord.remote_record_id == str(remote_record_id))
        .where(ProviderScanRecord.identifier == identifier)
        .values(manually_resolved=True)
    )
    await session.commit()

    if result.rowcount == 0:
        return False

    logger.info(
        "record_manually_resolved",
        extra={"provider": provider, "record_id": remote_record_id},
    )
    return True


async def count_all_scans(session: AsyncSession, provider: str) -> int:
    """Scans performed for every subscriber, used to cap free scans."""
    result = await session.execute(
        select(func.count(ProviderScan.id)).where(ProviderScan.provider == provider)
    )
    return result.scalar() or 0
