"""Exposures: breaches and broker listings on one timeline.

An exposure is either a :class:`BreachExposure` or a :class:`ScanExposure`.
Both are merged into one list ordered newest first, and each is classified
into an :class:`ExposureStatus`. Classification is recomputed from the
stored record on every read, so a record revised by sync is reclassified
with no separate transition step.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional, Union

from app.core.exceptions import ExposureEngineError, UnknownProviderError
from app.services.breaches import BreachRecord
from providers.base import (
    PROVIDERS,
    STATUS_NEW,
    STATUS_OPTOUT_IN_PROGRESS,
    STATUS_REMOVED,
    STATUS_WAITING_FOR_VERIFICATION,
    ScanRecord,
)

logger = logging.getLogger(__name__)

ACTION_NEEDED_TAB = "action-needed"
FIXED_TAB = "fixed"
TABS = (ACTION_NEEDED_TAB, FIXED_TAB)

# Exposure filters
SHOW_ALL_EXPOSURE_TYPES = "show-all-exposure-type"
DATA_BREACH = "data-breach"
DATA_BROKER = "data-broker"
SHOW_ALL_DATES = "show-all-date-found"
DATE_FOUND_WINDOWS = {
    "seven-days": timedelta(days=7),
    "thirty-days": timedelta(days=30),
    "last-year": timedelta(days=365),
}


class ExposureStatus(str, Enum):
    ACTION_NEEDED = "action-needed"
    IN_PROGRESS = "in-progress"
    AUTO_FIXED = "auto-fixed"
    MANUALLY_RESOLVED = "manually-resolved"
    OPTOUT_IN_PROGRESS = "optout-in-progress"


class UnknownRecordStatusError(ExposureEngineError):
    """A stored record carries a status no provider adapter produces."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unknown record status: {status!r}")


def to_utc(value: datetime | date) -> datetime:
    """Resolve dates and naive or aware datetimes to one comparable UTC instant.

    Naive values are UTC, as stored.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class BreachExposure:
    record: BreachRecord
    kind = "breach"

    @property
    def key(self) -> str:
        return f"breach-{self.record.breach_id}"

    @property
    def timestamp(self) -> datetime:
        return to_utc(self.record.added_date)


@dataclass
class ScanExposure:
    record: ScanRecord
    kind = "scan"

    @property
    def key(self) -> str:
        return f"scan-{self.record.record_id}"

    @property
    def timestamp(self) -> datetime:
        return to_utc(self.record.created_at)


Exposure = Union[BreachExposure, ScanExposure]


def is_scan_result(exposure: Exposure) -> bool:
    return isinstance(exposure, ScanExposure)


def merge_exposures(
    breaches: Iterable[BreachRecord],
    scan_records: Iterable[ScanRecord],
) -> list[Exposure]:
    """Combine breaches and broker listings, newest first.

    Breaches are dated by when they were added, listings by when they were
    found. The sort is stable, so equal timestamps keep input order. The
    result is rebuilt identically from the same inputs.
    """
    combined: list[Exposure] = [BreachExposure(b) for b in breaches]
    combined.extend(ScanExposure(r) for r in scan_records)
    return sorted(combined, key=lambda exposure: exposure.timestamp, reverse=True)


def classify(
    exposure: Exposure,
    is_premium: bool = False,
    additional_removal_statuses: bool = False,
) -> ExposureStatus:
    """Map one exposure to exactly one status."""
    if isinstance(exposure, BreachExposure):
        if exposure.record.is_resolved:
            return ExposureStatus.MANUALLY_RESOLVED
        return ExposureStatus.ACTION_NEEDED

    return classify_scan_record(
        exposure.record,
        is_premium=is_premium,
        additional_removal_statuses=additional_removal_statuses,
    )


def classify_scan_record(
    record: ScanRecord,
    is_premium: bool = False,
    additional_removal_statuses: bool = False,
) -> ExposureStatus:
    """Classify a broker listing.

    For premium subscribers the provider starts removal on its own, so a
    listing still in the provider's initial state is shown as opt-out in
    progress rather than as something the subscriber has to act on. That
    override comes first. The richer status toggle only splits the
    in-progress bucket further.
    """
    if record.provider not in PROVIDERS:
        logger.error(
            "unknown_record_provider",
            extra={"provider": record.provider, "record_id": record.record_id},
        )
        raise UnknownProviderError(record.provider)

    if record.manually_resolved:
        return ExposureStatus.MANUALLY_RESOLVED

    status = record.status
    if status == STATUS_NEW:
        if is_premium:
            return ExposureStatus.OPTOUT_IN_PROGRESS
        return ExposureStatus.ACTION_NEEDED
    if status == STATUS_REMOVED:
        return ExposureStatus.AUTO_FIXED
    if status == STATUS_OPTOUT_IN_PROGRESS:
        if additional_removal_statuses:
            return ExposureStatus.OPTOUT_IN_PROGRESS
        return ExposureStatus.IN_PROGRESS
    if status == STATUS_WAITING_FOR_VERIFICATION:
        return ExposureStatus.IN_PROGRESS

    logger.error(
        "unknown_record_status",
        extra={"provider": record.provider, "record_id": record.record_id, "status": status},
    )
    raise UnknownRecordStatusError(status)


def is_action_needed(status: ExposureStatus) -> bool:
    """Two display buckets: action needed, and everything else.

    In-progress and opt-out-in-progress land in the "fixed" bucket along
    with genuinely resolved exposures.
    """
    return status == ExposureStatus.ACTION_NEEDED


@dataclass
class ClassifiedExposure:
    exposure: Exposure
    status: ExposureStatus

    @property
    def is_action_needed(self) -> bool:
        return is_action_needed(self.status)


def classify_all(
    exposures: Iterable[Exposure],
    is_premium: bool = False,
    additional_removal_statuses: bool = False,
) -> list[ClassifiedExposure]:
    return [
        ClassifiedExposure(
            exposure=exposure,
            status=classify(
                exposure,
                is_premium=is_premium,
                additional_removal_statuses=additional_removal_statuses,
            ),
        )
        for exposure in exposures
    ]


def exposures_for_tab(classified: Iterable[ClassifiedExposure], tab: str) -> list[ClassifiedExposure]:
    """Exposures shown on the ``action-needed`` or ``fixed`` tab."""
    if tab not in TABS:
        raise ValueError(f"Unknown dashboard tab: {tab!r}")

    want_action_needed = tab == ACTION_NEEDED_TAB
    return [item for item in classified if item.is_action_needed == want_action_needed]


def filter_exposures(
    classified: Iterable[ClassifiedExposure],
    exposure_type: str = SHOW_ALL_EXPOSURE_TYPES,
    date_found: str = SHOW_ALL_DATES,
    now: Optional[datetime] = None,
) -> list[ClassifiedExposure]:
    """Apply the dashboard's exposure-type and date-found filters."""
    window = DATE_FOUND_WINDOWS.get(date_found)
    cutoff = None
    if window is not None:
        cutoff = to_utc(now or datetime.utcnow()) - window

    filtered = []
    for item in classified:
        if exposure_type == DATA_BREACH and is_scan_result(item.exposure):
            continue
        if exposure_type == DATA_BROKER and not is_scan_result(item.exposure):
            continue
        if cutoff is not None and item.exposure.timestamp < cutoff:
            continue
        filtered.append(item)
    return filtered
