"""Provider scan models - local mirror of remote scans and their records."""

from datetime import datetime
from sqlalchemy import String, Boolean, Integer, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class ProviderScan(Base):
    """One remote scanning job, mirrored from a provider."""

    __tablename__ = "provider_scans"
    __table_args__ = (
        UniqueConstraint("provider", "remote_scan_id", name="uq_provider_scans_remote_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Provider: onerep, helloprivacy
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    remote_scan_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # OneRep profile id or HelloPrivacy customer id, as a string
    identifier: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Status: created, queued, active, done (helloprivacy); in_progress, finished (onerep)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Reason: manual, monitoring, initial
    reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    scan_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Remote timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ProviderScanRecord(Base):
    """One data-broker listing discovered by a provider scan."""

    __tablename__ = "provider_scan_records"
    __table_args__ = (
        UniqueConstraint("provider", "remote_record_id", name="uq_provider_scan_records_remote_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    remote_record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    remote_scan_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    identifier: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    broker_id: Mapped[str] = mapped_column(String(64), nullable=False)
    broker_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Status: new, optout_in_progress, waiting_for_verification, removed
    status: Mapped[str] = mapped_column(String(30), default="new")

    # Set by the subscriber, never by sync
    manually_resolved: Mapped[bool] = mapped_column(Boolean, default=False)

    # What was found
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    addresses: Mapped[list | None] = mapped_column(JSON, nullable=True)
    relatives: Mapped[list | None] = mapped_column(JSON, nullable=True)
    emails: Mapped[list | None] = mapped_column(JSON, nullable=True)
    phones: Mapped[list | None] = mapped_column(JSON, nullable=True)
    record_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Remote timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
