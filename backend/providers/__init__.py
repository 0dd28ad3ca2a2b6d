"""Broker-scan provider definitions."""

from app.config import settings
from app.core.exceptions import UnknownProviderError
from providers.base import (
    HELLOPRIVACY,
    ONEREP,
    PROVIDERS,
    ExposureSource,
    ProfileInfo,
    ProviderError,
    ProviderNotConfiguredError,
    RemoteScan,
    ScanRecord,
)
from providers.helloprivacy import HelloPrivacySource
from providers.onerep import OneRepSource


def get_source(provider: str) -> ExposureSource:
    """Build a provider client configured from application settings."""
    if provider == ONEREP:
        return OneRepSource(
            settings.onerep_api_base,
            settings.onerep_api_key,
            timeout=settings.provider_timeout_seconds,
            page_size=settings.onerep_results_page_size,
        )
    if provider == HELLOPRIVACY:
        return HelloPrivacySource(
            settings.helloprivacy_api_base,
            settings.helloprivacy_api_key,
            timeout=settings.provider_timeout_seconds,
        )
    raise UnknownProviderError(provider)


__all__ = [
    "ExposureSource",
    "ProfileInfo",
    "ProviderError",
    "ProviderNotConfiguredError",
    "RemoteScan",
    "ScanRecord",
    "OneRepSource",
    "HelloPrivacySource",
    "ONEREP",
    "HELLOPRIVACY",
    "PROVIDERS",
    "get_source",
]
