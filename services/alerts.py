"""Alert derivation for the kitchen dashboard.

Alerts are never stored. They are rebuilt from readings, cleaning tasks and
tracked products on every refresh and identified by ``Alert.key`` so that two
passes over the same data produce the same alerts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Collection, Dict, Iterable, List, Optional, Sequence

from models.records import (
    CleaningFrequency,
    CleaningTask,
    ProductStatus,
    ReceptionRecord,
    ShelfLifeItem,
    TemperatureReading,
    TemperatureZone,
)
from services.clock import local_day
from services.compliance import (
    ShelfLifeStatus,
    classify_shelf_life,
    days_until,
    is_conforming,
    needs_periodic_action,
)

DEFAULT_CLEANING_ESCALATION = 3

_FREQUENCY_LABELS = {
    CleaningFrequency.daily.value: "Daily",
    CleaningFrequency.weekly.value: "Weekly",
    CleaningFrequency.monthly.value: "Monthly",
}


class AlertCategory(str, Enum):
    temperature = "temperature"
    cleaning = "cleaning"
    dlc = "dlc"


class AlertSeverity(str, Enum):
    warning = "warning"
    critical = "critical"


WORKFLOW_ORDER = (AlertCategory.cleaning, AlertCategory.temperature, AlertCategory.dlc)


@dataclass(frozen=True)
class Alert:
    category: AlertCategory
    severity: AlertSeverity
    target_id: str
    title: str
    message: str
    area: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.category.value}:{self.target_id}"


@dataclass
class AlertsByCategory:
    temperature: List[Alert] = field(default_factory=list)
    cleaning: List[Alert] = field(default_factory=list)
    dlc: List[Alert] = field(default_factory=list)

    def for_category(self, category: AlertCategory) -> List[Alert]:
        return list(getattr(self, category.value))

    def all(self) -> List[Alert]:
        """All alerts in workflow order: cleaning, temperature, then DLC."""
        combined: List[Alert] = []
        for category in WORKFLOW_ORDER:
            combined.extend(self.for_category(category))
        return combined

    @property
    def total(self) -> int:
        return len(self.temperature) + len(self.cleaning) + len(self.dlc)


@dataclass
class DashboardStats:
    """Headline counters shown above the alert lists."""

    temperature_conformity: int = 100
    temperature_total: int = 0
    temperature_conforming: int = 0
    cleaning_pending: int = 0
    cleaning_done: int = 0
    cleaning_total: int = 0
    dlc_expired: int = 0
    dlc_critical: int = 0
    dlc_warning: int = 0
    reception_today: int = 0


def readings_on_day(
    readings: Iterable[TemperatureReading], now: datetime
) -> List[TemperatureReading]:
    today = now.date()
    return [r for r in readings if local_day(r.taken_at, now) == today]


def latest_by_zone(readings: Iterable[TemperatureReading]) -> Dict[str, TemperatureReading]:
    latest: Dict[str, TemperatureReading] = {}
    for reading in readings:
        current = latest.get(reading.zone_id)
        if current is None or reading.taken_at > current.taken_at:
            latest[reading.zone_id] = reading
    return latest


class AlertAggregator:
    """Pure alert derivation that can be unit tested in isolation."""

    def __init__(self, cleaning_escalation_threshold: int = DEFAULT_CLEANING_ESCALATION) -> None:
        # Policy knob: more than this many due posts turns every cleaning alert critical.
        self.cleaning_escalation_threshold = cleaning_escalation_threshold

    def aggregate(
        self,
        readings: Iterable[TemperatureReading],
        tasks: Iterable[CleaningTask],
        shelf_items: Iterable[ShelfLifeItem],
        zones: Sequence[TemperatureZone],
        now: datetime,
    ) -> AlertsByCategory:
        return AlertsByCategory(
            temperature=self._temperature_alerts(readings, zones, now),
            cleaning=self._cleaning_alerts(tasks, now),
            dlc=self._dlc_alerts(shelf_items, now),
        )

    def summarize(
        self,
        readings: Iterable[TemperatureReading],
        tasks: Iterable[CleaningTask],
        shelf_items: Iterable[ShelfLifeItem],
        now: datetime,
        receptions: Iterable[ReceptionRecord] = (),
    ) -> DashboardStats:
        stats = DashboardStats()
        stats.reception_today = sum(
            1 for r in receptions if local_day(r.received_at, now) == now.date()
        )

        today_readings = readings_on_day(readings, now)
        stats.temperature_total = len(today_readings)
        stats.temperature_conforming = sum(
            1 for r in today_readings if is_conforming(r.value, r.bound_min, r.bound_max)
        )
        if stats.temperature_total:
            ratio = stats.temperature_conforming * 100 / stats.temperature_total
            stats.temperature_conformity = math.floor(ratio + 0.5)

        periodic = [t for t in tasks if t.frequency != CleaningFrequency.on_demand.value]
        stats.cleaning_total = len(periodic)
        stats.cleaning_pending = sum(
            1 for t in periodic if needs_periodic_action(t.frequency, t.last_completed_at, now)
        )
        stats.cleaning_done = stats.cleaning_total - stats.cleaning_pending

        for item in shelf_items:
            if item.status is not ProductStatus.active:
                continue
            status = classify_shelf_life(item.expires_on, now)
            if status is ShelfLifeStatus.expired:
                stats.dlc_expired += 1
            elif status is ShelfLifeStatus.critical:
                stats.dlc_critical += 1
            elif status is ShelfLifeStatus.warning:
                stats.dlc_warning += 1

        return stats

    def _temperature_alerts(
        self,
        readings: Iterable[TemperatureReading],
        zones: Sequence[TemperatureZone],
        now: datetime,
    ) -> List[Alert]:
        latest = latest_by_zone(readings_on_day(readings, now))
        names = {zone.zone_id: zone.name for zone in zones}
        position = {zone.zone_id: index for index, zone in enumerate(zones)}
        alerts: List[Alert] = []

        for zone in zones:
            if zone.zone_id in latest:
                continue
            alerts.append(
                Alert(
                    category=AlertCategory.temperature,
                    severity=AlertSeverity.warning,
                    target_id=zone.zone_id,
                    title=f"Missing reading: {zone.name}",
                    message="No reading today",
                )
            )

        ordered = sorted(
            latest.values(),
            key=lambda r: (position.get(r.zone_id, len(position)), r.zone_id),
        )
        for reading in ordered:
            if is_conforming(reading.value, reading.bound_min, reading.bound_max):
                continue
            alerts.append(
                Alert(
                    category=AlertCategory.temperature,
                    severity=AlertSeverity.critical,
                    target_id=reading.zone_id,
                    title=f"Out of range: {names.get(reading.zone_id, 'Zone')}",
                    message=f"{reading.value:g}°C recorded",
                )
            )
        return alerts

    def _cleaning_alerts(self, tasks: Iterable[CleaningTask], now: datetime) -> List[Alert]:
        due = [
            task
            for task in tasks
            if needs_periodic_action(task.frequency, task.last_completed_at, now)
        ]
        severity = (
            AlertSeverity.critical
            if len(due) > self.cleaning_escalation_threshold
            else AlertSeverity.warning
        )
        alerts = []
        for task in due:
            label = _FREQUENCY_LABELS.get(task.frequency, str(task.frequency))
            alerts.append(
                Alert(
                    category=AlertCategory.cleaning,
                    severity=severity,
                    target_id=task.post_id,
                    title=task.name,
                    message=f"{task.area} ({label})" if task.area else label,
                    area=task.area,
                )
            )
        return alerts

    def _dlc_alerts(self, shelf_items: Iterable[ShelfLifeItem], now: datetime) -> List[Alert]:
        alerts = []
        for item in shelf_items:
            if item.status is not ProductStatus.active:
                continue
            remaining = days_until(item.expires_on, now)
            status = classify_shelf_life(item.expires_on, now)
            if status is ShelfLifeStatus.ok:
                continue

            if status is ShelfLifeStatus.expired:
                message = f"Expired {abs(remaining)} day(s) ago"
            elif remaining == 0:
                message = "Expires today"
            elif remaining == 1:
                message = "Expires tomorrow"
            else:
                message = f"Expires in {remaining} days"

            severity = (
                AlertSeverity.warning
                if status is ShelfLifeStatus.warning
                else AlertSeverity.critical
            )
            alerts.append(
                Alert(
                    category=AlertCategory.dlc,
                    severity=severity,
                    target_id=item.product_id,
                    title=item.name,
                    message=message,
                )
            )
        return alerts


def next_unresolved(
    alerts: Iterable[Alert], resolved: Collection[str]
) -> Optional[Alert]:
    """First alert whose key is not in ``resolved``, or ``None``."""
    for alert in alerts:
        if alert.key not in resolved:
            return alert
    return None
