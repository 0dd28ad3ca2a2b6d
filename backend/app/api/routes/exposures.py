"""Exposure routes - dashboard, next step, welcome scan and manual resolution."""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import CountryCode, CurrentSubscriber, DbSession
from app.config import settings
from app.core.exceptions import (
    ExposureEngineError,
    IdentifierAlreadySetError,
    MissingIdentifierError,
    NotEligibleForFreeScanError,
)
from app.models.subscriber import Subscriber
from app.services import scan_store
from app.services.breaches import DatabaseBreachSource
from app.services.broker_catalog import get_broker_names
from app.services.dashboard import data_points, get_dashboard_summary
from app.services.exposures import (
    ACTION_NEEDED_TAB,
    FIXED_TAB,
    SHOW_ALL_DATES,
    SHOW_ALL_EXPOSURE_TYPES,
    TABS,
    BreachExposure,
    ClassifiedExposure,
    classify_all,
    exposures_for_tab,
    filter_exposures,
    merge_exposures,
)
from app.services.guided_steps import (
    SCAN_IN_PROGRESS_STATUSES,
    build_step_data,
    get_next_guided_step,
)
from app.services.scan_sync import refresh_stored_scan_results
from app.services.welcome_scan import check_scan_progress, create_welcome_scan
from providers.base import ProfileInfo, ProviderError

logger = logging.getLogger(__name__)

router = APIRouter()

MINIMUM_AGE = 13


# Schemas
class ExposureResponse(BaseModel):
    key: str
    kind: str
    status: str
    found_at: datetime
    data_points: dict[str, int]

    # Breaches
    breach_id: Optional[int] = None
    name: Optional[str] = None
    data_classes: list[str] = []

    # Broker listings
    record_id: Optional[str] = None
    broker_id: Optional[str] = None
    broker_name: Optional[str] = None
    full_name: Optional[str] = None
    age: Optional[int] = None
    addresses: list[str] = []
    relatives: list[str] = []
    emails: list[str] = []
    phones: list[str] = []
    record_url: Optional[str] = None


class SummaryResponse(BaseModel):
    data_breach_total_num: int
    data_breach_unresolved_num: int
    data_breach_resolved_num: int
    data_broker_total_num: int
    data_broker_action_needed_num: int
    data_broker_auto_fixed_num: int
    data_broker_manually_resolved_num: int
    data_broker_in_progress_num: int
    total_data_points_num: int
    unresolved_data_points_num: int
    data_breach_unresolved_data_points_num: int
    data_breach_fixed_data_points_num: int
    data_broker_action_needed_data_points_num: int
    data_broker_auto_fixed_data_points_num: int
    data_broker_manually_resolved_data_points_num: int
    data_broker_in_progress_data_points_num: int
    all_data_points: dict[str, int]
    unresolved_data_points: dict[str, int]

    class Config:
        from_attributes = True


class StepResponse(BaseModel):
    destination_key: str
    href: str
    params: dict

    class Config:
        from_attributes = True


class DashboardResponse(BaseModel):
    tab: str
    exposures: list[ExposureResponse]
    summary: SummaryResponse
    has_unresolved_breaches: bool
    has_unresolved_brokers: bool
    has_fixed_exposures: bool
    initial_scan_in_progress: bool
    next_step: StepResponse


class WelcomeScanRequest(BaseModel):
    first_name: str
    last_name: str
    city: str
    state: str
    date_of_birth: date
    middle_name: Optional[str] = None
    name_suffix: Optional[str] = None


class ScanResponse(BaseModel):
    success: bool
    scan_id: Optional[str] = None
    status: Optional[str] = None


class ScanProgressResponse(BaseModel):
    success: bool
    status: Optional[str] = None


class ResolveResponse(BaseModel):
    success: bool


def _failed() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"success": False})


def _engine_error(error: ExposureEngineError) -> HTTPException:
    logger.error("exposure_engine_error", extra={"error": str(error), "error_type": type(error).__name__})
    if isinstance(error, NotEligibleForFreeScanError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, (MissingIdentifierError, IdentifierAlreadySetError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def _age_on(date_of_birth: date, today: date) -> int:
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def _exposure_response(item: ClassifiedExposure, broker_names: dict[str, str]) -> ExposureResponse:
    exposure = item.exposure
    common = {
        "key": exposure.key,
        "kind": exposure.kind,
        "status": item.status.value,
        "found_at": exposure.timestamp,
        "data_points": data_points(item),
    }

    if isinstance(exposure, BreachExposure):
        breach = exposure.record
        return ExposureResponse(
            **common,
            breach_id=breach.breach_id,
            name=breach.name,
            data_classes=breach.data_classes,
        )

    record = exposure.record
    return ExposureResponse(
        **common,
        record_id=record.record_id,
        broker_id=record.broker_id,
        broker_name=record.broker_name or broker_names.get(record.broker_id),
        full_name=record.full_name,
        age=record.age,
        addresses=record.addresses,
        relatives=record.relatives,
        emails=record.emails,
        phones=record.phones,
        record_url=record.record_url,
    )


async def _load_exposures(db, subscriber: Subscriber):
    """Sync, then read everything the dashboard is built from."""
    provider = settings.scan_provider
    await refresh_stored_scan_results(db, subscriber, provider)

    identifier = scan_store.get_identifier(subscriber, provider)
    latest = await scan_store.get_latest_scan_data(db, provider, identifier)
    breaches = await DatabaseBreachSource(db).get_breaches_for(subscriber)

    classified = classify_all(
        merge_exposures(breaches, latest.records),
        is_premium=subscriber.is_premium,
        additional_removal_statuses=settings.additional_removal_statuses,
    )
    return latest, breaches, classified


async def _next_step(db, subscriber: Subscriber, country_code: str, latest, breaches):
    total_scans = await scan_store.count_all_scans(db, settings.scan_provider)
    return get_next_guided_step(
        build_step_data(
            country_code=country_code,
            subscriber_tier=subscriber.tier,
            latest_scan=latest,
            breaches=breaches,
            total_scans_performed=total_scans,
        )
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    current_subscriber: CurrentSubscriber,
    db: DbSession,
    country_code: CountryCode,
    tab: Optional[str] = None,
    exposure_type: str = SHOW_ALL_EXPOSURE_TYPES,
    date_found: str = SHOW_ALL_DATES,
):
    """Exposures for one dashboard tab, with the summary and next step."""
    if tab is None:
        tab = FIXED_TAB if current_subscriber.is_premium else ACTION_NEEDED_TAB
    if tab not in TABS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown tab: {tab}")

    try:
        latest, breaches, classified = await _load_exposures(db, current_subscriber)
        step = await _next_step(db, current_subscriber, country_code, latest, breaches)
        broker_names = await get_broker_names(db)
    except SQLAlchemyError as e:
        logger.error("dashboard_failed", extra={"subscriber_id": current_subscriber.id, "error": str(e)})
        return _failed()
    except ExposureEngineError as e:
        raise _engine_error(e)

    summary = get_dashboard_summary(classified)
    shown = filter_exposures(
        exposures_for_tab(classified, tab),
        exposure_type=exposure_type,
        date_found=date_found,
    )
    scan = latest.scan

    return DashboardResponse(
        tab=tab,
        exposures=[_exposure_response(item, broker_names) for item in shown],
        summary=SummaryResponse(
            **{name: getattr(summary, name) for name in SummaryResponse.model_fields}
        ),
        has_unresolved_breaches=summary.data_breach_unresolved_num > 0,
        has_unresolved_brokers=summary.data_broker_action_needed_num > 0,
        has_fixed_exposures=any(not item.is_action_needed for item in classified),
        initial_scan_in_progress=(
            scan is not None
            and scan.status in SCAN_IN_PROGRESS_STATUSES
            and latest.scan_count == 1
        ),
        next_step=StepResponse.model_validate(step),
    )


@router.get("/next-step", response_model=StepResponse)
async def get_next_step(
    current_subscriber: CurrentSubscriber,
    db: DbSession,
    country_code: CountryCode,
):
    """The single guided step the subscriber should take next."""
    try:
        latest, breaches, _ = await _load_exposures(db, current_subscriber)
        step = await _next_step(db, current_subscriber, country_code, latest, breaches)
    except SQLAlchemyError as e:
        logger.error("next_step_failed", extra={"subscriber_id": current_subscriber.id, "error": str(e)})
        return _failed()
    except ExposureEngineError as e:
        raise _engine_error(e)

    return StepResponse.model_validate(step)


@router.post("/welcome-scan", response_model=ScanResponse)
async def start_welcome_scan(
    request: WelcomeScanRequest,
    current_subscriber: CurrentSubscriber,
    db: DbSession,
    country_code: CountryCode,
):
    """Start the subscriber's first scan."""
    if _age_on(request.date_of_birth, date.today()) < MINIMUM_AGE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Subscribers must be at least {MINIMUM_AGE} years old",
        )

    profile = ProfileInfo(
        first_name=request.first_name,
        last_name=request.last_name,
        city=request.city,
        state=request.state,
        date_of_birth=request.date_of_birth,
        middle_name=request.middle_name,
        name_suffix=request.name_suffix,
    )

    try:
        scan = await create_welcome_scan(
            db,
            current_subscriber,
            settings.scan_provider,
            profile,
            country_code,
        )
    except (ProviderError, SQLAlchemyError):
        return _failed()
    except ExposureEngineError as e:
        raise _engine_error(e)

    return ScanResponse(success=True, scan_id=scan.scan_id, status=scan.status)


@router.get("/scan-progress", response_model=ScanProgressResponse)
async def get_scan_progress(current_subscriber: CurrentSubscriber, db: DbSession):
    """Poll the latest scan, storing its results once they are ready."""
    try:
        progress = await check_scan_progress(db, current_subscriber, settings.scan_provider)
    except SQLAlchemyError as e:
        logger.error("failed_checking_scan_progress", extra={"subscriber_id": current_subscriber.id, "error": str(e)})
        return _failed()
    except ExposureEngineError as e:
        raise _engine_error(e)

    if not progress.success:
        return _failed()
    return ScanProgressResponse(success=True, status=progress.status)


@router.post("/records/{record_id}/resolve", response_model=ResolveResponse)
async def resolve_record(record_id: str, current_subscriber: CurrentSubscriber, db: DbSession):
    """Mark a broker listing as resolved by the subscriber."""
    try:
        resolved = await scan_store.mark_record_resolved(
            db, current_subscriber, settings.scan_provider, record_id
        )
    except SQLAlchemyError as e:
        logger.error("resolve_record_failed", extra={"record_id": record_id, "error": str(e)})
        return _failed()

    if not resolved:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return ResolveResponse(success=True)
