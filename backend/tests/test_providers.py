"""
Provider client tests
Tests: OneRep and HelloPrivacy adapters against mocked HTTP APIs
"""

import base64
import json
from datetime import datetime

import httpx
import pytest
import respx

from factories import (
    HELLOPRIVACY_API,
    ONEREP_API,
    helloprivacy_record,
    helloprivacy_scan,
    onerep_result,
    onerep_scan,
    paged,
)
from providers import get_source
from providers.base import (
    HELLOPRIVACY,
    ONEREP,
    STATUS_NEW,
    STATUS_REMOVED,
    STATUS_WAITING_FOR_VERIFICATION,
    ProfileInfo,
    ProviderError,
    ProviderNotConfiguredError,
    RemoteScan,
    parse_age,
)
from providers.helloprivacy import HelloPrivacyScanRecord, HelloPrivacySource, derive_record_status
from providers.onerep import OneRepAddress, OneRepSource, format_address
from app.core.exceptions import UnknownProviderError


@pytest.fixture
def onerep():
    return OneRepSource(ONEREP_API, "onerep-test-key", page_size=2)


@pytest.fixture
def helloprivacy():
    return HelloPrivacySource(HELLOPRIVACY_API, "helloprivacy-test-key")


class TestOneRepSource:
    """Test the legacy provider adapter"""

    @respx.mock
    async def test_list_scans_uses_basic_auth(self, onerep):
        """Test scans are listed with the API key as Basic auth user"""
        route = respx.get(f"{ONEREP_API}/profiles/42/scans").mock(
            return_value=httpx.Response(200, json=paged([onerep_scan(1), onerep_scan(2, status="in_progress")]))
        )

        scans = await onerep.list_scans(42)

        expected = base64.b64encode(b"onerep-test-key:").decode("utf-8")
        assert route.calls.last.request.headers["Authorization"] == f"Basic {expected}"
        assert [s.scan_id for s in scans] == ["1", "2"]
        assert scans[1].status == "in_progress"
        assert scans[0].identifier == "42"
        assert scans[0].reason == "manual"
        assert scans[0].created_at == datetime(2024, 1, 1, 12, 0, 0)

    @respx.mock
    async def test_list_records_follows_pagination(self, onerep):
        """Test every result page is fetched until the last page"""
        route = respx.get(f"{ONEREP_API}/scan-results/").mock(
            side_effect=[
                httpx.Response(200, json=paged([onerep_result(1), onerep_result(2)], 1, 2)),
                httpx.Response(200, json=paged([onerep_result(3, status="removed")], 2, 2)),
            ]
        )

        records = await onerep.list_records(42, [])

        assert route.call_count == 2
        assert route.calls[1].request.url.params["page"] == "2"
        assert route.calls[1].request.url.params["profile_id"] == "42"
        assert [r.record_id for r in records] == ["1", "2", "3"]
        assert records[2].status == STATUS_REMOVED

    @respx.mock
    async def test_record_fields_are_normalized(self, onerep):
        """Test a OneRep result maps onto the shared record shape"""
        respx.get(f"{ONEREP_API}/scan-results/").mock(
            return_value=httpx.Response(200, json=paged([onerep_result(9, middle_name="Q")]))
        )

        [record] = await onerep.list_records("42", [])

        assert record.provider == ONEREP
        assert record.scan_id == "1"
        assert record.broker_id == "7"
        assert record.broker_name == "peoplefinder.example"
        assert record.full_name == "Sam Q Smith"
        assert record.age == 42
        assert record.addresses == ["1 Main St, Springfield, IL 62701"]
        assert record.phones == ["555-0100"]
        assert record.record_url == "https://broker.example/9"
        assert record.created_at == datetime(2024, 1, 2, 8, 0, 0)

    @respx.mock
    async def test_unknown_status_treated_as_new(self, onerep):
        """Test an unexpected provider status does not leak downstream"""
        respx.get(f"{ONEREP_API}/scan-results/").mock(
            return_value=httpx.Response(200, json=paged([onerep_result(1, status="pending_review")]))
        )

        [record] = await onerep.list_records(42, [])

        assert record.status == STATUS_NEW

    @respx.mock
    async def test_error_status_raises_provider_error(self, onerep):
        """Test non-2xx responses become ProviderError"""
        respx.get(f"{ONEREP_API}/profiles/42/scans").mock(return_value=httpx.Response(503))

        with pytest.raises(ProviderError) as exc_info:
            await onerep.list_scans(42)

        assert exc_info.value.status_code == 503
        assert exc_info.value.provider == ONEREP

    @respx.mock
    async def test_transport_error_raises_provider_error(self, onerep):
        """Test network failures become ProviderError"""
        respx.get(f"{ONEREP_API}/profiles/42/scans").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ProviderError):
            await onerep.list_scans(42)

    @respx.mock
    async def test_malformed_payload_raises_provider_error(self, onerep):
        """Test payloads missing required fields are rejected"""
        respx.get(f"{ONEREP_API}/profiles/42/scans/1").mock(
            return_value=httpx.Response(200, json={"id": 1})
        )

        with pytest.raises(ProviderError):
            await onerep.get_scan(42, "1")

    async def test_unconfigured_source_refuses_requests(self):
        """Test a missing API key fails before any HTTP call"""
        source = OneRepSource("", "")

        with pytest.raises(ProviderNotConfiguredError):
            await source.list_scans(42)

    @respx.mock
    async def test_create_identifier_and_start_scan(self, onerep):
        """Test profile creation and manual scan kickoff"""
        create = respx.post(f"{ONEREP_API}/profiles").mock(
            return_value=httpx.Response(201, json={"id": 123})
        )
        respx.post(f"{ONEREP_API}/profiles/123/scans").mock(
            return_value=httpx.Response(201, json=onerep_scan(5, status="in_progress", profile_id=123))
        )
        profile = ProfileInfo(
            first_name="Sam",
            last_name="Smith",
            city="Springfield",
            state="IL",
            date_of_birth=datetime(1980, 5, 17).date(),
        )

        identifier = await onerep.create_identifier(profile)
        scan = await onerep.start_scan(identifier, profile)

        assert identifier == "123"
        assert json.loads(create.calls.last.request.content)["birth_date"] == "1980-05-17"
        assert scan.scan_id == "5"
        assert scan.identifier == "123"
        assert scan.status == "in_progress"

    def test_format_address(self):
        """Test partial addresses skip empty parts"""
        assert format_address(OneRepAddress(city="Springfield", state="IL")) == "Springfield, IL"


class TestHelloPrivacySource:
    """Test the newer provider adapter"""

    def test_status_derived_from_removal_timestamps(self):
        """Test verified wins over confirmed, and neither means new"""
        base = helloprivacy_record("r1")
        assert derive_record_status(HelloPrivacyScanRecord.model_validate(base)) == STATUS_NEW

        confirmed = {**base, "confirmedAt": "2024-03-02T00:00:00Z"}
        assert (
            derive_record_status(HelloPrivacyScanRecord.model_validate(confirmed))
            == STATUS_WAITING_FOR_VERIFICATION
        )

        verified = {**confirmed, "verifiedAt": "2024-03-09T00:00:00Z"}
        assert derive_record_status(HelloPrivacyScanRecord.model_validate(verified)) == STATUS_REMOVED

    @respx.mock
    async def test_list_scans_uses_bearer_auth(self, helloprivacy):
        """Test scans are listed per customer with a bearer token"""
        route = respx.get(f"{HELLOPRIVACY_API}/v1/customers/cust-1/scans").mock(
            return_value=httpx.Response(200, json=[helloprivacy_scan()])
        )

        [scan] = await helloprivacy.list_scans("cust-1")

        assert route.calls.last.request.headers["Authorization"] == "Bearer helloprivacy-test-key"
        assert scan.provider == HELLOPRIVACY
        assert scan.scan_id == "scan-1"
        assert scan.identifier == "cust-1"
        assert scan.scan_type == "initial"

    @respx.mock
    async def test_scan_without_created_at_uses_modified_at(self, helloprivacy, caplog):
        """Test a missing creation time is taken from the remote modification time"""
        scan = {**helloprivacy_scan(), "createdAt": None}
        respx.get(f"{HELLOPRIVACY_API}/v1/customers/cust-1/scans").mock(
            return_value=httpx.Response(200, json=[scan])
        )

        first = await helloprivacy.list_scans("cust-1")
        second = await helloprivacy.list_scans("cust-1")

        assert first[0].created_at == datetime(2024, 3, 1, 10, 5)
        assert first[0].created_at == second[0].created_at
        assert "scan_missing_timestamps" not in caplog.text

    @respx.mock
    async def test_scan_without_timestamps_is_logged(self, helloprivacy, caplog):
        scan = {**helloprivacy_scan(), "createdAt": None, "modifiedAt": None}
        respx.get(f"{HELLOPRIVACY_API}/v1/customers/cust-1/scans").mock(
            return_value=httpx.Response(200, json=[scan])
        )

        with caplog.at_level("WARNING", logger="providers.helloprivacy"):
            [remote] = await helloprivacy.list_scans("cust-1")

        assert remote.created_at is not None
        assert "scan_missing_timestamps" in caplog.text

    @respx.mock
    async def test_list_records_walks_each_scan(self, helloprivacy):
        """Test records are fetched for every listed scan"""
        respx.get(f"{HELLOPRIVACY_API}/v1/scans/scan-1/records").mock(
            return_value=httpx.Response(200, json=[helloprivacy_record("r1")])
        )
        respx.get(f"{HELLOPRIVACY_API}/v1/scans/scan-2/records").mock(
            return_value=httpx.Response(
                200,
                json=[helloprivacy_record("r2", scan_id="scan-2", verifiedAt="2024-03-09T00:00:00Z")],
            )
        )
        scans = [
            RemoteScan(provider=HELLOPRIVACY, scan_id=scan_id, identifier="cust-1", status="done",
                       created_at=datetime(2024, 3, 1))
            for scan_id in ("scan-1", "scan-2")
        ]

        records = await helloprivacy.list_records("cust-1", scans)

        assert [r.record_id for r in records] == ["r1", "r2"]
        assert records[0].status == STATUS_NEW
        assert records[0].age == 40
        assert records[0].phones == ["555-0199"]
        assert records[0].relatives == ["John Doe"]
        assert records[1].status == STATUS_REMOVED
        assert records[1].verified_at == datetime(2024, 3, 9)

    @respx.mock
    async def test_list_brokers(self, helloprivacy):
        """Test the broker catalog is parsed"""
        respx.get(f"{HELLOPRIVACY_API}/v1/brokers/").mock(
            return_value=httpx.Response(
                200,
                json=[{"id": "b-1", "name": "PeopleFinder", "infoTypes": ["phone"], "estimatedDaysToRemoveRecords": 14}],
            )
        )

        [broker] = await helloprivacy.list_brokers()

        assert broker.name == "PeopleFinder"
        assert broker.info_types == ["phone"]
        assert broker.estimated_days_to_remove_records == 14

    async def test_customer_ids_are_generated_locally(self, helloprivacy):
        """Test each new customer gets a fresh id without an API call"""
        profile = ProfileInfo("Jane", "Doe", "Springfield", "IL", datetime(1990, 1, 1).date())

        first = await helloprivacy.create_identifier(profile)
        second = await helloprivacy.create_identifier(profile)

        assert first != second
        assert len(first) == 36


class TestProviderHelpers:
    """Test shared provider helpers"""

    @pytest.mark.parametrize(
        "value,expected",
        [("42", 42), ("40-45", 40), ("available", None), ("", None), (None, None), (37, 37)],
    )
    def test_parse_age(self, value, expected):
        assert parse_age(value) == expected

    def test_get_source_builds_configured_clients(self):
        assert isinstance(get_source(ONEREP), OneRepSource)
        assert isinstance(get_source(HELLOPRIVACY), HelloPrivacySource)

    def test_get_source_rejects_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            get_source("acme")
