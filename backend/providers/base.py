"""Base class for broker-scan provider implementations.

Each provider speaks its own wire format. Implementations normalize it into
:class:`RemoteScan` and :class:`ScanRecord` here at the boundary, so nothing
downstream of sync ever sees a provider-specific field.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

logger = logging.getLogger(__name__)

ONEREP = "onerep"
HELLOPRIVACY = "helloprivacy"
PROVIDERS = (ONEREP, HELLOPRIVACY)

# Normalized record statuses
STATUS_NEW = "new"
STATUS_OPTOUT_IN_PROGRESS = "optout_in_progress"
STATUS_WAITING_FOR_VERIFICATION = "waiting_for_verification"
STATUS_REMOVED = "removed"
RECORD_STATUSES = (
    STATUS_NEW,
    STATUS_OPTOUT_IN_PROGRESS,
    STATUS_WAITING_FOR_VERIFICATION,
    STATUS_REMOVED,
)


class ProviderError(Exception):
    """A provider call failed: transport error, non-2xx status or bad payload."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class ProviderNotConfiguredError(ProviderError):
    """API base URL or key for a provider is not set."""


@dataclass
class ProfileInfo:
    """Personal details used to create a provider profile and start a scan."""
    first_name: str
    last_name: str
    city: str
    state: str
    date_of_birth: date
    middle_name: Optional[str] = None
    name_suffix: Optional[str] = None


@dataclass
class RemoteScan:
    """One provider scan, normalized."""
    provider: str
    scan_id: str
    identifier: str
    status: str
    created_at: datetime
    reason: Optional[str] = None
    scan_type: Optional[str] = None
    modified_at: Optional[datetime] = None


@dataclass
class ScanRecord:
    """One data-broker listing, normalized across providers."""
    provider: str
    record_id: str
    scan_id: str
    identifier: str
    broker_id: str
    status: str
    created_at: datetime
    broker_name: Optional[str] = None
    score: Optional[int] = None
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    full_name: Optional[str] = None
    age: Optional[int] = None
    addresses: list[str] = field(default_factory=list)
    relatives: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)
    record_url: Optional[str] = None
    manually_resolved: bool = False


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware timestamp to naive UTC, the form the database stores."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_age(value: str | int | None) -> Optional[int]:
    """Parse ages like ``"42"``, ``"40-45"`` or ``"available"`` to a leading integer."""
    if value is None:
        return None
    if isinstance(value, int):
        return value

    digits = ""
    for char in value.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else None


class ExposureSource(ABC):
    """A broker-scan provider, reached over HTTP."""

    provider: str = ""

    def __init__(
        self,
        api_base: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def _auth_headers(self) -> dict:
        """Return the authentication headers for this provider."""
        pass

    @abstractmethod
    async def list_scans(self, identifier: str | int) -> list[RemoteScan]:
        """List all scans the provider holds for this identifier."""
        pass

    @abstractmethod
    async def get_scan(self, identifier: str | int, scan_id: str) -> RemoteScan:
        """Fetch the current state of one scan."""
        pass

    @abstractmethod
    async def list_records(self, identifier: str | int, scans: list[RemoteScan]) -> list[ScanRecord]:
        """
        Fetch the full current record set for an identifier.

        ``scans`` are the scans just listed for the identifier; providers that
        can only fetch records per scan use them, others may ignore them.
        """
        pass

    @abstractmethod
    async def create_identifier(self, profile: ProfileInfo) -> str:
        """Create the provider-side profile and return its identifier."""
        pass

    @abstractmethod
    async def start_scan(self, identifier: str | int, profile: ProfileInfo) -> RemoteScan:
        """Start a manual scan for the identifier."""
        pass

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Call the provider API and return the decoded JSON body."""
        if not self.api_base or not self.api_key:
            raise ProviderNotConfiguredError(self.provider, "API base URL or key not set")

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **self._auth_headers(),
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.api_base,
                timeout=self.timeout,
                headers=headers,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, f"{method} {path} failed: {e!r}") from e

        if response.is_error:
            logger.error(
                "provider_request_failed",
                extra={
                    "provider": self.provider,
                    "path": path,
                    "status_code": response.status_code,
                },
            )
            raise ProviderError(
                self.provider,
                f"{method} {path} returned [{response.status_code}] [{response.reason_phrase}]",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.provider, f"{method} {path} returned invalid JSON") from e

    def _parse(self, model, payload: Any):
        """Validate a raw payload against a pydantic model."""
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(self.provider, f"Unexpected {model.__name__} payload: {e}") from e
