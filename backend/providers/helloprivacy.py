"""HelloPrivacy (newer broker-scan provider) implementation."""

import logging
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from providers.base import (
    HELLOPRIVACY,
    STATUS_NEW,
    STATUS_REMOVED,
    STATUS_WAITING_FOR_VERIFICATION,
    ExposureSource,
    ProfileInfo,
    RemoteScan,
    ScanRecord,
    naive_utc,
    parse_age,
)

logger = logging.getLogger(__name__)


# Wire schemas
class HelloPrivacyScan(BaseModel):
    id: str | int
    customer_id: Optional[str | int] = Field(default=None, alias="customerId")
    # created, queued, active, done
    status: str
    scan_type: Optional[str] = Field(default=None, alias="scanType")
    broker_count: Optional[int] = Field(default=None, alias="brokerCount")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    modified_at: Optional[datetime] = Field(default=None, alias="modifiedAt")

    class Config:
        populate_by_name = True


class HelloPrivacyScanRecord(BaseModel):
    id: str | int
    scan_id: str | int = Field(alias="scanId")
    broker_id: str | int = Field(alias="brokerId")
    customer_id: Optional[str | int] = Field(default=None, alias="customerId")
    # Relevance score between 0 and 100
    score: Optional[int] = None
    created_at: datetime = Field(alias="createdAt")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    confirmed_at: Optional[datetime] = Field(default=None, alias="confirmedAt")
    verified_at: Optional[datetime] = Field(default=None, alias="verifiedAt")
    modified_at: Optional[datetime] = Field(default=None, alias="modifiedAt")
    # A single age, a range like "40-45", "available", or ""
    age: Optional[str] = None
    addresses: list[str] = []
    full_name: Optional[str] = Field(default=None, alias="fullName")
    relatives: list[str] = []
    phone_numbers: list[str] = Field(default=[], alias="phoneNumbers")
    email_addresses: list[str] = Field(default=[], alias="emailAddresses")
    record_url: Optional[str] = Field(default=None, alias="recordUrl")

    class Config:
        populate_by_name = True


class HelloPrivacyBroker(BaseModel):
    id: str | int
    name: str
    url: Optional[str] = None
    enabled: bool = True
    info_types: list[str] = Field(default=[], alias="infoTypes")
    estimated_days_to_remove_records: Optional[int] = Field(default=None, alias="estimatedDaysToRemoveRecords")
    active_at: Optional[datetime] = Field(default=None, alias="activeAt")
    removed_at: Optional[datetime] = Field(default=None, alias="removedAt")
    broker_type: Optional[str] = Field(default=None, alias="brokerType")
    capabilities: Optional[dict] = None
    removal_instructions: Optional[str] = Field(default=None, alias="removalInstructions")

    class Config:
        populate_by_name = True


def derive_record_status(record: HelloPrivacyScanRecord) -> str:
    """HelloPrivacy has no status field; the removal timestamps imply one."""
    if record.verified_at is not None:
        return STATUS_REMOVED
    if record.confirmed_at is not None:
        return STATUS_WAITING_FOR_VERIFICATION
    return STATUS_NEW


class HelloPrivacySource(ExposureSource):
    """HelloPrivacy customers, scans, scan records and brokers."""

    provider = HELLOPRIVACY

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def list_scans(self, identifier: str | int) -> list[RemoteScan]:
        payload = await self._request("GET", f"/v1/customers/{identifier}/scans")
        if not isinstance(payload, list):
            payload = [payload]
        return [
            self._to_remote_scan(self._parse(HelloPrivacyScan, item), str(identifier))
            for item in payload
        ]

    async def get_scan(self, identifier: str | int, scan_id: str) -> RemoteScan:
        payload = await self._request("GET", f"/v1/scans/{scan_id}")
        return self._to_remote_scan(self._parse(HelloPrivacyScan, payload), str(identifier))

    async def list_records(self, identifier: str | int, scans: list[RemoteScan]) -> list[ScanRecord]:
        """Records are only addressable per scan, so walk every listed scan."""
        records: list[ScanRecord] = []
        for scan in scans:
            payload = await self._request("GET", f"/v1/scans/{scan.scan_id}/records")
            if not isinstance(payload, list):
                payload = [payload]
            records.extend(
                self._to_scan_record(self._parse(HelloPrivacyScanRecord, item), str(identifier))
                for item in payload
            )
        return records

    async def create_identifier(self, profile: ProfileInfo) -> str:
        # Customer ids are ours to choose; HelloPrivacy learns it on the first scan.
        return str(uuid.uuid4())

    async def start_scan(self, identifier: str | int, profile: ProfileInfo) -> RemoteScan:
        body = {
            "customerId": str(identifier),
            "profile": {
                "birthYear": str(profile.date_of_birth.year),
                "birthMonth": str(profile.date_of_birth.month),
                "name": {
                    "first": profile.first_name,
                    "last": profile.last_name,
                },
                "addresses": [{"city": profile.city, "state": profile.state}],
            },
        }
        payload = await self._request("POST", "/v1/scans", json=body)
        return self._to_remote_scan(self._parse(HelloPrivacyScan, payload), str(identifier))

    async def list_brokers(self, include_icons: bool = False) -> list[HelloPrivacyBroker]:
        payload = await self._request(
            "GET",
            "/v1/brokers/",
            params={
                "includeIcons": str(include_icons).lower(),
                "includeRequiredFields": "false",
            },
        )
        return [self._parse(HelloPrivacyBroker, item) for item in payload or []]

    def _to_remote_scan(self, scan: HelloPrivacyScan, identifier: str) -> RemoteScan:
        created_at = naive_utc(scan.created_at) or naive_utc(scan.modified_at)
        if created_at is None:
            logger.warning(
                "scan_missing_timestamps",
                extra={"provider": self.provider, "scan_id": str(scan.id)},
            )
            created_at = datetime.utcnow()

        return RemoteScan(
            provider=self.provider,
            scan_id=str(scan.id),
            identifier=str(scan.customer_id) if scan.customer_id is not None else identifier,
            status=scan.status,
            scan_type=scan.scan_type,
            created_at=created_at,
            modified_at=naive_utc(scan.modified_at),
        )

    def _to_scan_record(self, record: HelloPrivacyScanRecord, identifier: str) -> ScanRecord:
        return ScanRecord(
            provider=self.provider,
            record_id=str(record.id),
            scan_id=str(record.scan_id),
            identifier=str(record.customer_id) if record.customer_id is not None else identifier,
            broker_id=str(record.broker_id),
            status=derive_record_status(record),
            score=record.score,
            created_at=naive_utc(record.created_at),
            submitted_at=naive_utc(record.submitted_at),
            confirmed_at=naive_utc(record.confirmed_at),
            verified_at=naive_utc(record.verified_at),
            modified_at=naive_utc(record.modified_at),
            full_name=record.full_name or None,
            age=parse_age(record.age),
            addresses=list(record.addresses),
            relatives=list(record.relatives),
            emails=list(record.email_addresses),
            phones=list(record.phone_numbers),
            record_url=record.record_url or None,
        )
