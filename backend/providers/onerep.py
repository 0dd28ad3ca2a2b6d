"""OneRep (legacy broker-scan provider) implementation."""

import base64
import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from providers.base import (
    ONEREP,
    RECORD_STATUSES,
    STATUS_NEW,
    ExposureSource,
    ProfileInfo,
    ProviderError,
    RemoteScan,
    ScanRecord,
    naive_utc,
    parse_age,
)

logger = logging.getLogger(__name__)


# Wire schemas
class OneRepScan(BaseModel):
    id: int
    profile_id: int
    # in_progress, finished
    status: str
    # manual, initial, monitoring
    reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OneRepAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class OneRepScanResult(BaseModel):
    id: int
    profile_id: int
    scan_id: int
    # new, optout_in_progress, waiting_for_verification, removed
    status: str
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[str | int] = None
    addresses: list[OneRepAddress] = []
    phones: list[str] = []
    emails: list[str] = []
    relatives: list[str] = []
    link: Optional[str] = None
    data_broker: Optional[str] = None
    data_broker_id: int | str
    created_at: datetime
    updated_at: Optional[datetime] = None


class OneRepPaginationMeta(BaseModel):
    current_page: int
    last_page: int


class OneRepScanList(BaseModel):
    data: list[OneRepScan]
    meta: Optional[OneRepPaginationMeta] = None


class OneRepScanResultList(BaseModel):
    data: list[OneRepScanResult]
    meta: OneRepPaginationMeta


class OneRepSource(ExposureSource):
    """OneRep profiles, scans and scan results."""

    provider = ONEREP

    def __init__(self, *args, page_size: int = 100, **kwargs):
        super().__init__(*args, **kwargs)
        self.page_size = page_size

    def _auth_headers(self) -> dict:
        token = base64.b64encode(f"{self.api_key}:".encode("utf-8")).decode("utf-8")
        return {"Authorization": f"Basic {token}"}

    async def list_scans(self, identifier: str | int) -> list[RemoteScan]:
        profile_id = int(identifier)
        scans: list[RemoteScan] = []
        page = 1

        while True:
            payload = await self._request(
                "GET",
                f"/profiles/{profile_id}/scans",
                params={"page": page, "per_page": self.page_size},
            )
            scan_list = self._parse(OneRepScanList, payload)
            scans.extend(self._to_remote_scan(s) for s in scan_list.data)

            if scan_list.meta is None or scan_list.meta.current_page >= scan_list.meta.last_page:
                break
            page += 1

        return scans

    async def get_scan(self, identifier: str | int, scan_id: str) -> RemoteScan:
        payload = await self._request("GET", f"/profiles/{int(identifier)}/scans/{scan_id}")
        return self._to_remote_scan(self._parse(OneRepScan, payload))

    async def list_records(self, identifier: str | int, scans: list[RemoteScan]) -> list[ScanRecord]:
        """Fetch every result page for the profile, across all of its scans."""
        profile_id = int(identifier)
        records: list[ScanRecord] = []
        page = 1

        while True:
            payload = await self._request(
                "GET",
                "/scan-results/",
                params={"profile_id": profile_id, "page": page, "per_page": self.page_size},
            )
            result_list = self._parse(OneRepScanResultList, payload)
            records.extend(self._to_scan_record(r) for r in result_list.data)

            if result_list.meta.current_page >= result_list.meta.last_page:
                break
            page += 1

        return records

    async def create_identifier(self, profile: ProfileInfo) -> str:
        body = {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "birth_date": profile.date_of_birth.isoformat(),
            "addresses": [{"city": profile.city, "state": profile.state}],
        }
        if profile.middle_name:
            body["middle_name"] = profile.middle_name
        if profile.name_suffix:
            body["name_suffix"] = profile.name_suffix

        payload = await self._request("POST", "/profiles", json=body)
        if not isinstance(payload, dict) or "id" not in payload:
            raise ProviderError(self.provider, "Profile creation returned no id")
        return str(payload["id"])

    async def start_scan(self, identifier: str | int, profile: ProfileInfo) -> RemoteScan:
        payload = await self._request("POST", f"/profiles/{int(identifier)}/scans", json={})
        return self._to_remote_scan(self._parse(OneRepScan, payload))

    def _to_remote_scan(self, scan: OneRepScan) -> RemoteScan:
        return RemoteScan(
            provider=self.provider,
            scan_id=str(scan.id),
            identifier=str(scan.profile_id),
            status=scan.status,
            reason=scan.reason,
            created_at=naive_utc(scan.created_at),
            modified_at=naive_utc(scan.updated_at),
        )

    def _to_scan_record(self, result: OneRepScanResult) -> ScanRecord:
        if result.status not in RECORD_STATUSES:
            logger.warning(
                "unknown_record_status",
                extra={"provider": self.provider, "record_id": result.id, "status": result.status},
            )
        status = result.status if result.status in RECORD_STATUSES else STATUS_NEW

        name_parts = [result.first_name, result.middle_name, result.last_name]
        full_name = " ".join(part for part in name_parts if part) or None

        return ScanRecord(
            provider=self.provider,
            record_id=str(result.id),
            scan_id=str(result.scan_id),
            identifier=str(result.profile_id),
            broker_id=str(result.data_broker_id),
            broker_name=result.data_broker,
            status=status,
            created_at=naive_utc(result.created_at),
            modified_at=naive_utc(result.updated_at),
            full_name=full_name,
            age=parse_age(result.age),
            addresses=[format_address(a) for a in result.addresses],
            relatives=list(result.relatives),
            emails=list(result.emails),
            phones=list(result.phones),
            record_url=result.link,
        )


def format_address(address: OneRepAddress) -> str:
    """Flatten a structured address into one display line."""
    locality = " ".join(part for part in [address.state, address.zip] if part)
    parts = [address.street, address.city, locality]
    return ", ".join(part for part in parts if part)
