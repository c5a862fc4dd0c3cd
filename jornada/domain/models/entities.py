import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from jornada.domain.clock import as_utc, utc_now
from jornada.domain.exceptions import BusinessRuleViolation, DomainError
from .domain_events import EventEdited
from .value_objects import EventSource, EventType, Location

MAX_TIMESTAMP_SKEW = timedelta(hours=24)

_PAIRS: Dict[EventType, EventType] = {
    EventType.SHIFT_START: EventType.SHIFT_END,
    EventType.SHIFT_END: EventType.SHIFT_START,
    EventType.MEAL_START: EventType.MEAL_END,
    EventType.MEAL_END: EventType.MEAL_START,
    EventType.REST_START: EventType.REST_END,
    EventType.REST_END: EventType.REST_START,
    EventType.DISPOSAL_START: EventType.DISPOSAL_END,
    EventType.DISPOSAL_END: EventType.DISPOSAL_START,
    EventType.INSPECTION_START: EventType.INSPECTION_END,
    EventType.INSPECTION_END: EventType.INSPECTION_START,
}


def pair_type(event_type: EventType) -> EventType:
    """Start <-> End counterpart of an event type."""
    try:
        return _PAIRS[event_type]
    except KeyError:
        raise DomainError(f"No pair event type for {event_type}")


def _new_id() -> str:
    return str(uuid.uuid4())


class Entity:
    def __init__(self, id: Optional[str] = None, created_at: Optional[datetime] = None):
        self.id = id or _new_id()
        self.created_at = created_at or utc_now()
        self.updated_at: Optional[datetime] = None

    def _mark_updated(self, when: Optional[datetime] = None):
        self.updated_at = when or utc_now()

    def __eq__(self, other):
        if not isinstance(other, Entity) or type(self) is not type(other):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash((type(self).__name__, self.id))


class Event(Entity):
    """
    A single start/[end] record of the driver's workday.

    Start-type events are intervals, closed by `end()`. End-type events
    (MEAL_END, SHIFT_END, ...) are instant markers written when the driver
    taps the matching button; they are never active and cannot be ended.
    """

    def __init__(
        self,
        driver_id: str,
        company_id: str,
        type: EventType,
        started_at: datetime,
        *,
        reference_time: datetime,
        location_start: Optional[Location] = None,
        source: EventSource = EventSource.MOBILE_MANUAL,
        vehicle_id: Optional[str] = None,
        device_time_skew_ms: Optional[int] = None,
        id: Optional[str] = None,
    ):
        if not driver_id:
            raise DomainError("DriverId cannot be empty")
        if not company_id:
            raise DomainError("CompanyId cannot be empty")

        started_at = as_utc(started_at)
        Event.validate_timestamp(started_at, reference_time)

        super().__init__(id=id, created_at=as_utc(reference_time))
        self.driver_id = driver_id
        self.company_id = company_id
        self.vehicle_id = vehicle_id
        self.type = type
        self.started_at = started_at
        self.ended_at: Optional[datetime] = None
        self.location_start = location_start
        self.location_end: Optional[Location] = None
        self.source = source
        self.edited_by: Optional[str] = None
        self.edit_reason: Optional[str] = None
        self.device_time_skew_ms = device_time_skew_ms

    @staticmethod
    def validate_timestamp(started_at: datetime, reference_time: datetime):
        """Rejects timestamps more than 24h away from the reference instant."""
        diff = abs(as_utc(started_at) - as_utc(reference_time))
        if diff > MAX_TIMESTAMP_SKEW:
            raise DomainError(
                f"Event timestamp is too far from current time: {diff.total_seconds() / 3600:.1f} hours"
            )

    @classmethod
    def restore(
        cls,
        id: str,
        driver_id: str,
        company_id: str,
        type: EventType,
        started_at: datetime,
        ended_at: Optional[datetime] = None,
        location_start: Optional[Location] = None,
        location_end: Optional[Location] = None,
        source: EventSource = EventSource.MOBILE_MANUAL,
        vehicle_id: Optional[str] = None,
        edited_by: Optional[str] = None,
        edit_reason: Optional[str] = None,
        device_time_skew_ms: Optional[int] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> "Event":
        """Rehydrates a stored event. The creation-time skew window is not applied."""
        started_at = as_utc(started_at)
        if ended_at is not None and as_utc(ended_at) <= started_at:
            raise DomainError(f"Stored event {id} ends before it starts")

        event = cls.__new__(cls)
        Entity.__init__(event, id=id, created_at=as_utc(created_at) if created_at else started_at)
        event.updated_at = as_utc(updated_at) if updated_at else None
        event.driver_id = driver_id
        event.company_id = company_id
        event.vehicle_id = vehicle_id
        event.type = type
        event.started_at = started_at
        event.ended_at = as_utc(ended_at) if ended_at else None
        event.location_start = location_start
        event.location_end = location_end
        event.source = source
        event.edited_by = edited_by
        event.edit_reason = edit_reason
        event.device_time_skew_ms = device_time_skew_ms
        return event

    # Calculated properties
    @property
    def duration(self) -> Optional[timedelta]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    @property
    def is_start_event(self) -> bool:
        return self.type.is_start

    @property
    def is_end_event(self) -> bool:
        return self.type.is_end

    @property
    def is_active(self) -> bool:
        return self.is_start_event and self.ended_at is None

    @property
    def is_completed(self) -> bool:
        return self.ended_at is not None

    def pair_type(self) -> EventType:
        return pair_type(self.type)

    def end(self, ended_at: datetime, location: Optional[Location] = None,
            now: Optional[datetime] = None):
        if self.is_end_event:
            raise DomainError(f"{self.type.value} is an instant marker and cannot be ended")
        if self.is_completed:
            raise DomainError("Event is already completed")
        ended_at = as_utc(ended_at)
        if ended_at <= self.started_at:
            raise DomainError("End time must be after start time")

        self.ended_at = ended_at
        self.location_end = location
        self._mark_updated(now)

    def edit(
        self,
        edited_by: str,
        reason: str,
        new_started_at: Optional[datetime] = None,
        new_ended_at: Optional[datetime] = None,
        new_location_start: Optional[Location] = None,
        new_location_end: Optional[Location] = None,
        now: Optional[datetime] = None,
    ) -> List[EventEdited]:
        """
        Applies a post-hoc correction. Only supplied fields that actually differ
        are changed. Returns the audit notification, or an empty list when
        nothing changed.
        """
        if not reason or not reason.strip():
            raise BusinessRuleViolation("EditReasonRequired", "Edit reason is required")

        new_started_at = as_utc(new_started_at) if new_started_at else None
        new_ended_at = as_utc(new_ended_at) if new_ended_at else None
        if new_ended_at is not None and self.is_end_event:
            raise DomainError(f"{self.type.value} is an instant marker and has no end time")

        start = new_started_at or self.started_at
        end = new_ended_at or self.ended_at
        if end is not None and start >= end:
            raise DomainError("Start time must be before end time")

        changes: Dict[str, Dict] = {}
        if new_started_at is not None and new_started_at != self.started_at:
            changes["started_at"] = {"old": self.started_at, "new": new_started_at}
            self.started_at = new_started_at

        if new_ended_at is not None and new_ended_at != self.ended_at:
            changes["ended_at"] = {"old": self.ended_at, "new": new_ended_at}
            self.ended_at = new_ended_at

        if new_location_start is not None and new_location_start != self.location_start:
            changes["location_start"] = {
                "old": str(self.location_start) if self.location_start else None,
                "new": str(new_location_start),
            }
            self.location_start = new_location_start

        if new_location_end is not None and new_location_end != self.location_end:
            changes["location_end"] = {
                "old": str(self.location_end) if self.location_end else None,
                "new": str(new_location_end),
            }
            self.location_end = new_location_end

        if not changes:
            return []

        self.edited_by = edited_by
        self.edit_reason = reason
        self._mark_updated(now)
        return [EventEdited(event_id=self.id, edited_by=edited_by, reason=reason,
                            changes=changes, occurred_on=now or utc_now())]

    def conflicts_with(self, other: Optional["Event"]) -> bool:
        """Temporal overlap with a different-type event of the same driver."""
        if other is None or other.driver_id != self.driver_id:
            return False
        if other.type == self.type:
            return False

        open_end = datetime.max.replace(tzinfo=timezone.utc)
        this_end = self.ended_at or open_end
        other_end = other.ended_at or open_end
        return self.started_at < other_end and other.started_at < this_end

    def distance_km(self) -> Optional[float]:
        if self.location_start is None or self.location_end is None:
            return None
        return self.location_start.distance_to_km(self.location_end)

    def __repr__(self):
        return (f"Event({self.type.value}, started_at={self.started_at.isoformat()}, "
                f"ended_at={self.ended_at.isoformat() if self.ended_at else None})")


@dataclass(eq=False)
class Assignment:
    driver_id: str
    vehicle_id: str
    start_at: datetime
    end_at: Optional[datetime] = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if not self.driver_id:
            raise DomainError("DriverId cannot be empty")
        if not self.vehicle_id:
            raise DomainError("VehicleId cannot be empty")
        self.start_at = as_utc(self.start_at)

    @property
    def is_active(self) -> bool:
        return self.end_at is None

    @property
    def duration(self) -> Optional[timedelta]:
        return self.end_at - self.start_at if self.end_at else None

    def end(self, end_at: datetime):
        if not self.is_active:
            raise DomainError("Assignment is already ended")
        end_at = as_utc(end_at)
        if end_at <= self.start_at:
            raise DomainError("End time must be after start time")
        self.end_at = end_at


def _require(value: str, message: str):
    if not value or not value.strip():
        raise DomainError(message)


@dataclass(eq=False)
class Vehicle:
    company_id: str
    plate: str
    model: str
    brand: str
    year: int
    is_active: bool = True
    assignments: List[Assignment] = field(default_factory=list)
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        _require(self.plate, "Vehicle plate cannot be empty")
        self._validate_info(self.model, self.brand, self.year)
        self.plate = self.plate.upper().replace("-", "").replace(" ", "")

    @staticmethod
    def _validate_info(model: str, brand: str, year: int):
        _require(model, "Vehicle model cannot be empty")
        _require(brand, "Vehicle brand cannot be empty")
        if year < 1900 or year > utc_now().year + 1:
            raise DomainError(f"Invalid vehicle year: {year}")

    def update_info(self, model: str, brand: str, year: int):
        self._validate_info(model, brand, year)
        self.model = model
        self.brand = brand
        self.year = year

    def activate(self):
        self.is_active = True

    def deactivate(self):
        self.is_active = False

    def assign(self, driver_id: str, start_at: datetime) -> Assignment:
        assignment = Assignment(driver_id=driver_id, vehicle_id=self.id, start_at=start_at)
        self.assignments.append(assignment)
        return assignment

    def current_assignment(self) -> Optional[Assignment]:
        active = [a for a in self.assignments if a.is_active]
        if not active:
            return None
        return max(active, key=lambda a: a.start_at)


@dataclass(eq=False)
class WorkdaySummary:
    """Derived per-day totals. A cache of the calculator, never authoritative."""
    driver_id: str
    date: date
    total_worked: timedelta = timedelta(0)
    total_rest: timedelta = timedelta(0)
    total_meal: timedelta = timedelta(0)
    total_disposal: timedelta = timedelta(0)
    longest_continuous_work: timedelta = timedelta(0)
    anomalies: List[str] = field(default_factory=list)
    calculated_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=_new_id)

    @property
    def total_shift(self) -> timedelta:
        return self.total_worked + self.total_rest + self.total_meal + self.total_disposal

    @property
    def has_anomalies(self) -> bool:
        return len(self.anomalies) > 0

    def update(self, other: "WorkdaySummary"):
        """Replaces the computed figures with a fresh calculation for the same day."""
        if other.driver_id != self.driver_id or other.date != self.date:
            raise DomainError("Cannot update a summary with another driver/day calculation")
        self.total_worked = other.total_worked
        self.total_rest = other.total_rest
        self.total_meal = other.total_meal
        self.total_disposal = other.total_disposal
        self.longest_continuous_work = other.longest_continuous_work
        self.anomalies = list(other.anomalies)
        self.calculated_at = other.calculated_at
