"""Subscriber breach model - written by the breach database, read here."""

from datetime import datetime
from sqlalchemy import String, Boolean, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class SubscriberBreach(Base):
    """One data breach a subscriber's email address appeared in."""

    __tablename__ = "subscriber_breaches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscriber_id: Mapped[int] = mapped_column(Integer, ForeignKey("subscribers.id"), index=True)

    breach_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    added_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)

    # e.g. ["email-addresses", "passwords", "phone-numbers"]
    data_classes: Mapped[list | None] = mapped_column(JSON, nullable=True)
    resolved_data_classes: Mapped[list | None] = mapped_column(JSON, nullable=True)
