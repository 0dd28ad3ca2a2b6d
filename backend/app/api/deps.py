"""API dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.database import get_db
from app.models.subscriber import Subscriber

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_subscriber(
    db: DbSession,
    x_subscriber_id: Annotated[int | None, Header()] = None,
) -> Subscriber:
    """Resolve the subscriber the request acts for.

    Sign-in happens upstream; the gateway forwards the authenticated
    subscriber's id in the ``X-Subscriber-Id`` header.
    """
    if x_subscriber_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    result = await db.execute(select(Subscriber).where(Subscriber.id == x_subscriber_id))
    subscriber = result.scalar_one_or_none()
    if subscriber is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown subscriber",
        )
    return subscriber


def get_country_code(x_client_region: Annotated[str | None, Header()] = None) -> str:
    """Country the request comes from, as reported by the edge."""
    if not x_client_region:
        return settings.default_country_code
    return x_client_region.lower()


CurrentSubscriber = Annotated[Subscriber, Depends(get_current_subscriber)]
CountryCode = Annotated[str, Depends(get_country_code)]
