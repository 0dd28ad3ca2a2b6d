"""Database models."""

from app.models.subscriber import Subscriber
from app.models.scan import ProviderScan, ProviderScanRecord
from app.models.breach import SubscriberBreach
from app.models.broker import DataBroker

__all__ = [
    "Subscriber",
    "ProviderScan",
    "ProviderScanRecord",
    "SubscriberBreach",
    "DataBroker",
]
