"""
Welcome scan tests
Tests: first scan with the newer provider, retry after a failed start
"""

import json
from datetime import date

import httpx
import pytest
import respx

from app.core.exceptions import NotEligibleForFreeScanError
from app.services import scan_store
from app.services.welcome_scan import create_welcome_scan
from factories import HELLOPRIVACY_API, helloprivacy_scan
from providers.base import HELLOPRIVACY, ProfileInfo, ProviderError
from providers.helloprivacy import HelloPrivacySource


@pytest.fixture
def source():
    return HelloPrivacySource(HELLOPRIVACY_API, "helloprivacy-test-key")


@pytest.fixture
def profile():
    return ProfileInfo(
        first_name="Jane",
        last_name="Doe",
        city="Springfield",
        state="IL",
        date_of_birth=date(1985, 4, 2),
    )


class TestWelcomeScan:
    """Test the welcome scan service"""

    @respx.mock
    async def test_customer_id_sent_with_first_scan(self, db_session, subscriber, source, profile):
        route = respx.post(f"{HELLOPRIVACY_API}/v1/scans").mock(
            side_effect=lambda request: httpx.Response(
                201,
                json=helloprivacy_scan(status="queued", customer_id=json.loads(request.content)["customerId"]),
            )
        )

        scan = await create_welcome_scan(db_session, subscriber, HELLOPRIVACY, profile, "us", source)

        body = json.loads(route.calls.last.request.content)
        assert body["customerId"] == subscriber.helloprivacy_customer_id
        assert body["profile"]["birthYear"] == "1985"
        assert body["profile"]["name"] == {"first": "Jane", "last": "Doe"}
        assert scan.identifier == subscriber.helloprivacy_customer_id
        assert scan.status == "queued"
        assert await scan_store.count_scans(db_session, HELLOPRIVACY, scan.identifier) == 1

    @respx.mock
    async def test_failed_start_keeps_identifier_for_retry(self, db_session, subscriber, source, profile):
        """Test a retry after a failed scan start reuses the stored customer id"""
        route = respx.post(f"{HELLOPRIVACY_API}/v1/scans").mock(return_value=httpx.Response(500))

        with pytest.raises(ProviderError):
            await create_welcome_scan(db_session, subscriber, HELLOPRIVACY, profile, "us", source)

        customer_id = subscriber.helloprivacy_customer_id
        assert customer_id is not None

        route.mock(return_value=httpx.Response(201, json=helloprivacy_scan(customer_id=customer_id)))
        scan = await create_welcome_scan(db_session, subscriber, HELLOPRIVACY, profile, "us", source)

        assert subscriber.helloprivacy_customer_id == customer_id
        assert scan.identifier == customer_id

    async def test_ineligible_country(self, db_session, subscriber, source, profile):
        with pytest.raises(NotEligibleForFreeScanError):
            await create_welcome_scan(db_session, subscriber, HELLOPRIVACY, profile, "ca", source)
