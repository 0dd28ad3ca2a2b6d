"""Data broker model - provider broker catalog."""

from datetime import datetime
from sqlalchemy import String, Boolean, Integer, DateTime, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class DataBroker(Base):
    """Data broker as listed by the scanning provider."""

    __tablename__ = "data_brokers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    broker_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Disabled brokers are not scanned
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Scan Only, Removal Only, Scan & Verify, Scan & Removal
    broker_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    info_types: Mapped[list | None] = mapped_column(JSON, nullable=True)
    capabilities: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    estimated_days_to_remove_records: Mapped[int | None] = mapped_column(Integer, nullable=True)
    removal_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    active_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    removed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
