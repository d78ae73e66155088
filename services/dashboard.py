"""Kitchen dashboard: fetch HACCP rows, derive alerts, record corrective actions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from typing import Any, Callable, ClassVar, Collection, Dict, List, Mapping, Optional, Union

from datastore.store import MockRelationalStore, Row, TenantStore, build_default_store
from models.records import (
    CleaningRecord,
    CleaningTask,
    ProductStatus,
    ReceptionRecord,
    ShelfLifeItem,
    TemperatureReading,
    TemperatureZone,
)
from services.activity import ActivityItem, DayTrend, build_activity, trend_by_day
from services.alerts import (
    Alert,
    AlertAggregator,
    AlertCategory,
    AlertsByCategory,
    DashboardStats,
    next_unresolved,
)
from services.clock import local_day, local_now, start_of_day, to_storage
from services.compliance import classify
from services.ticker import RefreshTicker
from services.workflow import order_for_workflow
from settings import get_settings
from storage.photos import PhotoBucket, build_default_bucket

logger = logging.getLogger(__name__)

ZONES_TABLE = "temperature_zones"
LOGS_TABLE = "temperature_logs"
POSTS_TABLE = "cleaning_posts"
CLEANING_TABLE = "cleaning_records"
PRODUCTS_TABLE = "dlc_products"
PRODUCT_ACTIONS_TABLE = "dlc_actions"
RECEPTIONS_TABLE = "reception_records"

CLEANING_LOOKBACK = timedelta(days=31)


@dataclass(frozen=True)
class UseProduct:
    action_type: ClassVar[str] = "used"
    reason: Optional[str] = None
    quantity: Optional[float] = None

    def patch(self) -> Dict[str, Any]:
        return {"status": ProductStatus.used.value}


@dataclass(frozen=True)
class DiscardProduct:
    action_type: ClassVar[str] = "discarded"
    reason: str = ""
    quantity: Optional[float] = None

    def patch(self) -> Dict[str, Any]:
        if not self.reason.strip():
            raise ValueError("A reason is required to discard a product.")
        return {"status": ProductStatus.discarded.value}


@dataclass(frozen=True)
class ExtendProduct:
    new_expires_on: date
    action_type: ClassVar[str] = "extended"
    reason: Optional[str] = None

    def patch(self) -> Dict[str, Any]:
        return {"dlc_date": self.new_expires_on.isoformat()}


@dataclass(frozen=True)
class MoveProduct:
    new_location: str
    action_type: ClassVar[str] = "moved"
    reason: Optional[str] = None

    def patch(self) -> Dict[str, Any]:
        if not self.new_location.strip():
            raise ValueError("A new storage location is required.")
        return {"storage_location": self.new_location.strip()}


ProductAction = Union[UseProduct, DiscardProduct, ExtendProduct, MoveProduct]


@dataclass
class DashboardInputs:
    zones: List[TemperatureZone] = field(default_factory=list)
    readings: List[TemperatureReading] = field(default_factory=list)
    tasks: List[CleaningTask] = field(default_factory=list)
    products: List[ShelfLifeItem] = field(default_factory=list)
    cleanings: List[CleaningRecord] = field(default_factory=list)
    receptions: List[ReceptionRecord] = field(default_factory=list)
    skipped_rows: int = 0


@dataclass
class DashboardSnapshot:
    restaurant_id: str
    stats: DashboardStats
    alerts: AlertsByCategory
    activity: List[ActivityItem]
    generated_at: datetime = field(compare=False)


@dataclass(frozen=True)
class NextAlert:
    alert: Optional[Alert]
    remaining: int


def _last_cleaning_by_post(records: List[CleaningRecord]) -> Dict[str, datetime]:
    latest: Dict[str, datetime] = {}
    for record in records:
        previous = latest.get(record.post_id)
        if previous is None or record.done_at > previous:
            latest[record.post_id] = record.done_at
    return latest


class DashboardService:
    """Reads tenant rows from the store and turns them into dashboard state."""

    def __init__(
        self,
        store: MockRelationalStore,
        aggregator: AlertAggregator,
        bucket: Optional[PhotoBucket] = None,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.bucket = bucket

    def tenant(self, restaurant_id: str) -> TenantStore:
        return TenantStore(self.store, restaurant_id)

    def load_inputs(
        self, restaurant_id: str, now: datetime, history_days: int = 1
    ) -> DashboardInputs:
        """Fetch and parse the tenant rows needed to derive dashboard state.

        Readings and deliveries are fetched for the last ``history_days`` local
        days plus one extra day, since stored instants are UTC and the callers
        keep only the local days they need. Malformed rows are logged and
        skipped.
        """
        tenant = self.tenant(restaurant_id)
        inputs = DashboardInputs()

        for row in tenant.select(ZONES_TABLE, order_by="name"):
            zone = self._parse(TemperatureZone.from_row, row, ZONES_TABLE, restaurant_id, inputs)
            if zone is not None:
                inputs.zones.append(zone)
        zones_by_id = {zone.zone_id: zone for zone in inputs.zones}

        since = to_storage(start_of_day(now) - timedelta(days=history_days))
        log_rows = tenant.select(
            LOGS_TABLE, {"created_at__gte": since}, order_by="created_at", descending=True
        )
        for row in log_rows:
            reading = self._parse(
                lambda r: TemperatureReading.from_row(r, zones_by_id.get(str(r.get("zone_id")))),
                row,
                LOGS_TABLE,
                restaurant_id,
                inputs,
            )
            if reading is not None:
                inputs.readings.append(reading)

        cleaning_since = to_storage(
            now - max(CLEANING_LOOKBACK, timedelta(days=history_days + 1))
        )
        for row in tenant.select(
            CLEANING_TABLE, {"created_at__gte": cleaning_since}, order_by="created_at", descending=True
        ):
            record = self._parse(CleaningRecord.from_row, row, CLEANING_TABLE, restaurant_id, inputs)
            if record is not None:
                inputs.cleanings.append(record)

        last_cleaned = _last_cleaning_by_post(inputs.cleanings)
        for row in tenant.select(POSTS_TABLE, {"is_active__ne": False}, order_by="name"):
            if "id" not in row:
                inputs.skipped_rows += 1
                continue
            post_id = str(row["id"])
            inputs.tasks.append(
                CleaningTask(
                    post_id=post_id,
                    name=str(row.get("name") or "Post"),
                    frequency=str(row.get("cleaning_frequency") or ""),
                    last_completed_at=last_cleaned.get(post_id),
                    area=row.get("area_name"),
                )
            )

        for row in tenant.select(
            PRODUCTS_TABLE, {"status": ProductStatus.active.value}, order_by="dlc_date"
        ):
            item = self._parse(ShelfLifeItem.from_row, row, PRODUCTS_TABLE, restaurant_id, inputs)
            if item is not None:
                inputs.products.append(item)

        for row in tenant.select(
            RECEPTIONS_TABLE, {"created_at__gte": since}, order_by="created_at", descending=True
        ):
            reception = self._parse(
                ReceptionRecord.from_row, row, RECEPTIONS_TABLE, restaurant_id, inputs
            )
            if reception is not None:
                inputs.receptions.append(reception)

        return inputs

    def snapshot(self, restaurant_id: str, now: datetime) -> DashboardSnapshot:
        inputs = self.load_inputs(restaurant_id, now)
        alerts = self.aggregator.aggregate(
            inputs.readings, inputs.tasks, inputs.products, inputs.zones, now
        )
        stats = self.aggregator.summarize(
            inputs.readings, inputs.tasks, inputs.products, now, inputs.receptions
        )
        activity = build_activity(
            inputs.readings,
            inputs.cleanings,
            inputs.receptions,
            now,
            zone_names={zone.zone_id: zone.name for zone in inputs.zones},
            post_names={task.post_id: task.name for task in inputs.tasks},
        )
        logger.info(
            "Dashboard computed %d alert(s)",
            alerts.total,
            extra={"restaurant_id": restaurant_id, "error_count": inputs.skipped_rows or None},
        )
        return DashboardSnapshot(
            restaurant_id=restaurant_id,
            stats=stats,
            alerts=alerts,
            activity=activity,
            generated_at=now,
        )

    def weekly_trend(self, restaurant_id: str, now: datetime, days: int = 7) -> List[DayTrend]:
        if days < 1:
            raise ValueError("At least one day is required.")
        inputs = self.load_inputs(restaurant_id, now, history_days=days)
        return trend_by_day(inputs.readings, inputs.cleanings, inputs.receptions, now, days)

    def next_alert(
        self,
        restaurant_id: str,
        now: datetime,
        resolved: Optional[Collection[str]] = None,
        category: Optional[AlertCategory] = None,
    ) -> NextAlert:
        """First open alert of the walk-through that is not in ``resolved``."""
        alerts = self.snapshot(restaurant_id, now).alerts
        candidates = order_for_workflow(alerts.for_category(category) if category else alerts.all())
        skipped = set(resolved or ())
        return NextAlert(
            alert=next_unresolved(candidates, skipped),
            remaining=sum(1 for alert in candidates if alert.key not in skipped),
        )

    def record_temperature(
        self,
        restaurant_id: str,
        zone_id: str,
        value: float,
        now: datetime,
        notes: Optional[str] = None,
        employee_id: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> TemperatureReading:
        if not math.isfinite(value):
            raise ValueError("Temperature must be a finite number.")
        tenant = self.tenant(restaurant_id)
        zone = TemperatureZone.from_row(tenant.get(ZONES_TABLE, zone_id))
        status = classify(value, zone.min_temp, zone.max_temp)
        row = tenant.insert(
            LOGS_TABLE,
            {
                "zone_id": zone.zone_id,
                "equipment_name": zone.name,
                "temperature": value,
                "status": status.value,
                "min_temp": zone.min_temp,
                "max_temp": zone.max_temp,
                "notes": notes or None,
                "employee_id": employee_id,
                "photo_url": photo_url,
                "created_at": to_storage(now),
            },
        )
        logger.info(
            "Temperature recorded",
            extra={"restaurant_id": restaurant_id, "record_id": row["id"], "status": status.value},
        )
        return TemperatureReading.from_row(row, zone)

    def complete_cleaning(
        self,
        restaurant_id: str,
        post_id: str,
        now: datetime,
        is_clean: bool = True,
        notes: Optional[str] = None,
        employee_id: Optional[str] = None,
    ) -> Row:
        tenant = self.tenant(restaurant_id)
        tenant.get(POSTS_TABLE, post_id)
        row = tenant.insert(
            CLEANING_TABLE,
            {
                "post_id": post_id,
                "is_clean": is_clean,
                "notes": notes or None,
                "employee_id": employee_id,
                "created_at": to_storage(now),
            },
        )
        logger.info(
            "Cleaning recorded", extra={"restaurant_id": restaurant_id, "record_id": post_id}
        )
        return row

    def apply_product_action(
        self,
        restaurant_id: str,
        product_id: str,
        action: ProductAction,
        now: datetime,
        employee_id: Optional[str] = None,
    ) -> ShelfLifeItem:
        tenant = self.tenant(restaurant_id)
        current = ShelfLifeItem.from_row(tenant.get(PRODUCTS_TABLE, product_id))
        if current.status is not ProductStatus.active:
            raise ValueError(f"Product {product_id!r} is already {current.status.value}.")

        patch = {**action.patch(), "updated_at": to_storage(now)}
        updated = tenant.update(PRODUCTS_TABLE, product_id, patch)
        tenant.insert(
            PRODUCT_ACTIONS_TABLE,
            {
                "product_id": product_id,
                "action_type": action.action_type,
                "reason": getattr(action, "reason", None) or None,
                "quantity_affected": getattr(action, "quantity", None),
                "new_dlc_date": patch.get("dlc_date"),
                "new_location": patch.get("storage_location"),
                "employee_id": employee_id,
                "created_at": to_storage(now),
            },
        )
        logger.info(
            "Product action %s applied",
            action.action_type,
            extra={"restaurant_id": restaurant_id, "record_id": product_id},
        )
        return ShelfLifeItem.from_row(updated)

    def record_reception(
        self,
        restaurant_id: str,
        supplier_name: str,
        product_name: str,
        now: datetime,
        is_compliant: bool = True,
        non_compliance_reason: Optional[str] = None,
        lot_number: Optional[str] = None,
        expires_on: Optional[date] = None,
        quantity: Optional[float] = None,
        unit: Optional[str] = None,
        storage_location: Optional[str] = None,
        temperature_on_arrival: Optional[float] = None,
        notes: Optional[str] = None,
        employee_id: Optional[str] = None,
    ) -> ReceptionRecord:
        """Log a delivery check; a refused delivery must say why."""
        if not supplier_name.strip() or not product_name.strip():
            raise ValueError("Supplier and product are required.")
        reason = (non_compliance_reason or "").strip()
        if not is_compliant and not reason:
            raise ValueError("A reason is required for a non-compliant delivery.")
        if temperature_on_arrival is not None and not math.isfinite(temperature_on_arrival):
            raise ValueError("Temperature must be a finite number.")

        row = self.tenant(restaurant_id).insert(
            RECEPTIONS_TABLE,
            {
                "supplier_name": supplier_name.strip(),
                "product_name": product_name.strip(),
                "lot_number": lot_number or None,
                "dlc_date": expires_on.isoformat() if expires_on else None,
                "reception_date": now.date().isoformat(),
                "quantity": quantity,
                "unit": unit or None,
                "storage_location": storage_location or None,
                "temperature_on_arrival": temperature_on_arrival,
                "is_compliant": is_compliant,
                "non_compliance_reason": None if is_compliant else reason,
                "notes": notes or None,
                "employee_id": employee_id,
                "created_at": to_storage(now),
            },
        )
        logger.info(
            "Reception recorded",
            extra={
                "restaurant_id": restaurant_id,
                "record_id": row["id"],
                "status": "compliant" if is_compliant else "non_compliant",
            },
        )
        return ReceptionRecord.from_row(row)

    def list_receptions(self, restaurant_id: str, on: date, now: datetime) -> List[ReceptionRecord]:
        """Deliveries received on local day ``on``, newest first."""
        day_start = datetime.combine(on, time(0), tzinfo=now.tzinfo)
        since = to_storage(day_start - timedelta(days=1))
        until = to_storage(day_start + timedelta(days=2))
        inputs = DashboardInputs()
        receptions: List[ReceptionRecord] = []
        for row in self.tenant(restaurant_id).select(
            RECEPTIONS_TABLE,
            {"created_at__gte": since, "created_at__lt": until},
            order_by="created_at",
            descending=True,
        ):
            reception = self._parse(
                ReceptionRecord.from_row, row, RECEPTIONS_TABLE, restaurant_id, inputs
            )
            if reception is not None and local_day(reception.received_at, now) == on:
                receptions.append(reception)
        return receptions

    def upload_photo(self, restaurant_id: str, filename: str, data: bytes) -> str:
        if self.bucket is None:
            raise ValueError("Photo storage is not configured.")
        return self.bucket.upload(f"{restaurant_id}/{filename}", data)

    def _parse(
        self,
        factory: Callable[[Row], Any],
        row: Row,
        table: str,
        restaurant_id: str,
        inputs: DashboardInputs,
    ):
        try:
            return factory(row)
        except (KeyError, TypeError, ValueError) as exc:
            self._note_skipped(table, row, restaurant_id, str(exc), inputs)
            return None

    def _note_skipped(
        self,
        table: str,
        row: Mapping[str, Any],
        restaurant_id: str,
        reason: str,
        inputs: DashboardInputs,
    ) -> None:
        inputs.skipped_rows += 1
        logger.warning(
            "Skipping malformed row",
            extra={
                "restaurant_id": restaurant_id,
                "table": table,
                "record_id": row.get("id"),
                "reason": reason,
            },
        )


class DashboardView:
    """A live dashboard for one restaurant, refreshed by its own ticker.

    Use as a context manager: entering loads the first snapshot and starts the
    ticker, leaving stops it. A refresh only replaces the snapshot when the
    derived stats or alerts changed.
    """

    def __init__(
        self,
        service: DashboardService,
        restaurant_id: str,
        interval: Optional[float] = None,
        clock: Callable[[], datetime] = local_now,
        on_change: Optional[Callable[[DashboardSnapshot], None]] = None,
    ) -> None:
        self.service = service
        self.restaurant_id = restaurant_id
        self.clock = clock
        self.on_change = on_change
        self.snapshot: Optional[DashboardSnapshot] = None
        self.ticker: RefreshTicker[DashboardSnapshot] = RefreshTicker(
            interval=interval or get_settings().refresh_seconds,
            refresh=self._fetch,
            apply=self._apply,
            name=f"dashboard-{restaurant_id}",
        )

    def _fetch(self) -> DashboardSnapshot:
        return self.service.snapshot(self.restaurant_id, self.clock())

    def _apply(self, snapshot: DashboardSnapshot) -> None:
        if snapshot == self.snapshot:
            return
        self.snapshot = snapshot
        if self.on_change is not None:
            self.on_change(snapshot)

    def refresh_now(self) -> bool:
        return self.ticker.tick()

    def __enter__(self) -> "DashboardView":
        self.ticker.start()
        self.ticker.tick()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.ticker.stop()


@lru_cache
def build_default_dashboard() -> DashboardService:
    """Factory that wires the dashboard with default mocks."""
    settings = get_settings()
    return DashboardService(
        store=build_default_store(),
        aggregator=AlertAggregator(settings.cleaning_escalation_threshold),
        bucket=build_default_bucket(),
    )
