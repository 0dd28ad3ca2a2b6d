"""Breach source - read-only access to a subscriber's data breaches."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.breach import SubscriberBreach
from app.models.subscriber import Subscriber


@dataclass
class BreachRecord:
    """One breach a subscriber's email appeared in."""
    breach_id: int
    name: str
    added_date: datetime | date
    is_resolved: bool = False
    data_classes: list[str] = field(default_factory=list)
    resolved_data_classes: list[str] = field(default_factory=list)
    email: Optional[str] = None
    id: Optional[int] = None


class BreachSource(ABC):
    """Where breach records come from. The engine never writes to it."""

    @abstractmethod
    async def get_breaches_for(self, subscriber: Subscriber) -> list[BreachRecord]:
        pass


class DatabaseBreachSource(BreachSource):
    """Breaches stored in the ``subscriber_breaches`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_breaches_for(self, subscriber: Subscriber) -> list[BreachRecord]:
        result = await self.session.execute(
            select(SubscriberBreach)
            .where(SubscriberBreach.subscriber_id == subscriber.id)
            .order_by(SubscriberBreach.added_date.desc())
        )
        return [
            BreachRecord(
                id=row.id,
                breach_id=row.breach_id,
                name=row.name,
                email=row.email,
                added_date=row.added_date,
                is_resolved=row.is_resolved,
                data_classes=list(row.data_classes or []),
                resolved_data_classes=list(row.resolved_data_classes or []),
            )
            for row in result.scalars().all()
        ]
