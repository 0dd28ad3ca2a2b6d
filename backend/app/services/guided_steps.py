"""Next guided step: where to send a subscriber from the dashboard.

The decision is a pure function of :class:`StepDeterminationData`, rebuilt
on every request because eligibility and scan state change between them.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from app.config import settings
from app.services.breaches import BreachRecord
from app.services.exposures import ExposureStatus, classify_scan_record
from app.services.scan_store import LatestScanData

PREMIUM_TIER = "premium"

# Remote scan statuses that mean results are still coming in
SCAN_IN_PROGRESS_STATUSES = ("created", "queued", "active", "in_progress")

PREMIUM_WELCOME = "premium-welcome"
FREE_SCAN_ONBOARDING = "free-scan-onboarding"
SCAN_IN_PROGRESS = "scan-in-progress"
DATA_BROKER_PROFILES = "data-broker-profiles"
DATA_BREACHES = "data-breaches"
ALL_CLEAR = "all-clear"

STEP_HREFS = {
    PREMIUM_WELCOME: "/user/welcome",
    FREE_SCAN_ONBOARDING: "/user/welcome/free-scan",
    SCAN_IN_PROGRESS: "/user/dashboard",
    DATA_BROKER_PROFILES: "/user/dashboard/fix/data-broker-profiles/view-data-brokers",
    DATA_BREACHES: "/user/dashboard/fix/high-risk-data-breaches",
    ALL_CLEAR: "/user/dashboard/fix/all-clear",
}


def is_eligible_for_premium(country_code: Optional[str]) -> bool:
    if not country_code:
        return False
    return country_code.lower() in settings.premium_countries


def can_subscribe_to_premium(tier: str, country_code: Optional[str]) -> bool:
    return tier != PREMIUM_TIER and is_eligible_for_premium(country_code)


def is_free_scan_country(country_code: Optional[str]) -> bool:
    if not country_code:
        return False
    return country_code.lower() in settings.free_scan_countries


def is_eligible_for_free_scan(country_code: Optional[str], has_scan: bool) -> bool:
    """One free scan per subscriber, in supported countries only."""
    return not has_scan and is_free_scan_country(country_code)


def has_free_scan_capacity(total_scans_performed: Optional[int], max_scans_threshold: int) -> bool:
    """Free scans stop once the provider-wide scan count reaches the threshold."""
    return total_scans_performed is None or total_scans_performed < max_scans_threshold


@dataclass
class StepDeterminationData:
    country_code: Optional[str]
    subscriber_tier: str
    latest_scan: LatestScanData
    breaches: list[BreachRecord] = field(default_factory=list)
    premium_eligible: bool = False
    free_scan_eligible: bool = False
    # Free scans are offered in the subscriber's country at all
    free_scan_country: bool = False
    # Scans performed across all subscribers, None if unknown
    total_scans_performed: Optional[int] = None
    additional_removal_statuses: bool = False
    data_broker_count: int = 190
    max_scans_threshold: int = 35000


@dataclass
class RemediationStep:
    destination_key: str
    href: str
    params: dict[str, Any] = field(default_factory=dict)


def build_step_data(
    country_code: Optional[str],
    subscriber_tier: str,
    latest_scan: LatestScanData,
    breaches: list[BreachRecord],
    total_scans_performed: Optional[int] = None,
) -> StepDeterminationData:
    """Fill in eligibility and coverage facts from the current settings."""
    has_scan = latest_scan.scan is not None
    return StepDeterminationData(
        country_code=country_code,
        subscriber_tier=subscriber_tier,
        latest_scan=latest_scan,
        breaches=breaches,
        premium_eligible=is_eligible_for_premium(country_code),
        free_scan_eligible=is_eligible_for_free_scan(country_code, has_scan),
        free_scan_country=is_free_scan_country(country_code),
        total_scans_performed=total_scans_performed,
        additional_removal_statuses=settings.additional_removal_statuses,
        data_broker_count=settings.data_broker_count,
        max_scans_threshold=settings.max_scans_threshold,
    )


def _step(destination_key: str, **params) -> RemediationStep:
    return RemediationStep(
        destination_key=destination_key,
        href=STEP_HREFS[destination_key],
        params=params,
    )


def get_next_guided_step(data: StepDeterminationData) -> RemediationStep:
    """Pick the one step to show next. First matching rule wins."""
    scan = data.latest_scan.scan
    is_premium = data.subscriber_tier == PREMIUM_TIER
    has_capacity = has_free_scan_capacity(data.total_scans_performed, data.max_scans_threshold)

    if scan is None:
        if data.premium_eligible and not is_premium:
            return _step(PREMIUM_WELCOME)
        if data.free_scan_eligible and has_capacity:
            return _step(FREE_SCAN_ONBOARDING)
    elif scan.status in SCAN_IN_PROGRESS_STATUSES:
        return _step(SCAN_IN_PROGRESS, scan_status=scan.status)

    unresolved_listings = sum(
        1
        for record in data.latest_scan.records
        if classify_scan_record(
            record,
            is_premium=is_premium,
            additional_removal_statuses=data.additional_removal_statuses,
        ) == ExposureStatus.ACTION_NEEDED
    )
    if unresolved_listings:
        return _step(DATA_BROKER_PROFILES, count=unresolved_listings)

    unresolved_breaches = sum(1 for breach in data.breaches if not breach.is_resolved)
    if unresolved_breaches:
        return _step(DATA_BREACHES, count=unresolved_breaches)

    return _step(
        ALL_CLEAR,
        free_scan_eligible=data.free_scan_eligible,
        free_scan_available=data.free_scan_country and has_capacity,
        data_broker_count=data.data_broker_count,
        has_exposures=bool(data.latest_scan.records or data.breaches),
    )
