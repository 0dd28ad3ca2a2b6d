"""Dashboard summary: counts of exposures and exposed data points."""

from dataclasses import dataclass, field

from app.services.exposures import (
    BreachExposure,
    ClassifiedExposure,
    ExposureStatus,
)

# Breach data classes that map onto the listing data-point types
BREACH_DATA_CLASS_TYPES = {
    "email-addresses": "emails",
    "phone-numbers": "phones",
    "physical-addresses": "addresses",
    "family-members-names": "relatives",
}
DATA_POINT_TYPES = ("emails", "phones", "addresses", "relatives", "other")


def _empty_breakdown() -> dict[str, int]:
    return {name: 0 for name in DATA_POINT_TYPES}


@dataclass
class DashboardSummary:
    data_breach_total_num: int = 0
    data_breach_unresolved_num: int = 0
    data_breach_resolved_num: int = 0

    data_broker_total_num: int = 0
    data_broker_action_needed_num: int = 0
    data_broker_auto_fixed_num: int = 0
    data_broker_manually_resolved_num: int = 0
    # Includes opt-out in progress
    data_broker_in_progress_num: int = 0

    total_data_points_num: int = 0
    data_breach_unresolved_data_points_num: int = 0
    data_breach_fixed_data_points_num: int = 0
    data_broker_action_needed_data_points_num: int = 0
    data_broker_auto_fixed_data_points_num: int = 0
    data_broker_manually_resolved_data_points_num: int = 0
    data_broker_in_progress_data_points_num: int = 0

    all_data_points: dict[str, int] = field(default_factory=_empty_breakdown)
    unresolved_data_points: dict[str, int] = field(default_factory=_empty_breakdown)

    @property
    def unresolved_data_points_num(self) -> int:
        return self.data_breach_unresolved_data_points_num + self.data_broker_action_needed_data_points_num

    @property
    def data_broker_unresolved_num(self) -> int:
        return self.data_broker_action_needed_num


def data_points(item: ClassifiedExposure) -> dict[str, int]:
    """Pieces of personal data an exposure reveals, by type."""
    breakdown = _empty_breakdown()
    exposure = item.exposure

    if isinstance(exposure, BreachExposure):
        for data_class in exposure.record.data_classes:
            breakdown[BREACH_DATA_CLASS_TYPES.get(data_class, "other")] += 1
        return breakdown

    record = exposure.record
    breakdown["emails"] = len(record.emails)
    breakdown["phones"] = len(record.phones)
    breakdown["addresses"] = len(record.addresses)
    breakdown["relatives"] = len(record.relatives)
    return breakdown


def get_dashboard_summary(classified: list[ClassifiedExposure]) -> DashboardSummary:
    """Count exposures and data points per status bucket.

    Every exposure adds one to exactly one record bucket and all of its data
    points to the matching data-point bucket, so bucket totals always add up
    to the overall totals.
    """
    summary = DashboardSummary()

    for item in classified:
        breakdown = data_points(item)
        points = sum(breakdown.values())

        summary.total_data_points_num += points
        for name, count in breakdown.items():
            summary.all_data_points[name] += count
            if item.is_action_needed:
                summary.unresolved_data_points[name] += count

        if isinstance(item.exposure, BreachExposure):
            summary.data_breach_total_num += 1
            if item.is_action_needed:
                summary.data_breach_unresolved_num += 1
                summary.data_breach_unresolved_data_points_num += points
            else:
                summary.data_breach_resolved_num += 1
                summary.data_breach_fixed_data_points_num += points
            continue

        summary.data_broker_total_num += 1
        if item.status == ExposureStatus.ACTION_NEEDED:
            summary.data_broker_action_needed_num += 1
            summary.data_broker_action_needed_data_points_num += points
        elif item.status == ExposureStatus.AUTO_FIXED:
            summary.data_broker_auto_fixed_num += 1
            summary.data_broker_auto_fixed_data_points_num += points
        elif item.status == ExposureStatus.MANUALLY_RESOLVED:
            summary.data_broker_manually_resolved_num += 1
            summary.data_broker_manually_resolved_data_points_num += points
        else:
            summary.data_broker_in_progress_num += 1
            summary.data_broker_in_progress_data_points_num += points

    return summary
