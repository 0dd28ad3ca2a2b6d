"""Subscriber model - the identity the engine acts on behalf of."""

from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class Subscriber(Base):
    """Subscriber account as seen by the exposure engine.

    Identity, sign-up and billing are owned elsewhere; the engine only reads
    the tier and country and writes the provider identifiers, once each.
    """

    __tablename__ = "subscribers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Subscription tier: free, premium
    tier: Mapped[str] = mapped_column(String(20), default="free")
    country_code: Mapped[str | None] = mapped_column(String(2), nullable=True)

    # Provider identifiers, at most one per provider
    onerep_profile_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    helloprivacy_customer_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_premium(self) -> bool:
        return self.tier == "premium"
