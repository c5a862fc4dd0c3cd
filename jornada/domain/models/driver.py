import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, Union

from jornada.domain.clock import as_utc, utc_now
from jornada.domain.exceptions import DomainError, EventConflictError
from jornada.domain.services.state_machine import EventStateMachine
from .domain_events import DomainEvent, DriverStateChanged, EventCreated, EventEnded
from .entities import Entity, Event, pair_type
from .value_objects import Cpf, DriverState, DriverStatus, EventSource, EventType, Location

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    """Outcome of an aggregate operation. Rejections are data, not exceptions."""
    is_success: bool
    value: Optional[Event] = None
    error: str = ""
    suggested_events: List[EventType] = field(default_factory=list)
    notifications: List[DomainEvent] = field(default_factory=list)

    def __post_init__(self):
        if self.is_success and self.error:
            raise ValueError("Success result cannot have error message")
        if not self.is_success and not self.error:
            raise ValueError("Failure result must have error message")

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @classmethod
    def success(cls, value: Optional[Event] = None,
                notifications: Optional[List[DomainEvent]] = None) -> "EventResult":
        return cls(True, value=value, notifications=notifications or [])

    @classmethod
    def failure(cls, error: str,
                suggested_events: Optional[List[EventType]] = None) -> "EventResult":
        return cls(False, error=error, suggested_events=suggested_events or [])


class Driver(Entity):
    """
    Aggregate root owning the driver's append-only event log.

    The current state is never stored: it is projected from the open events
    through the state machine each time it is needed. Callers must serialise
    mutations per driver.
    """

    def __init__(
        self,
        company_id: str,
        name: str,
        cpf: Union[Cpf, str],
        phone: str,
        email: str,
        status: DriverStatus = DriverStatus.ACTIVE,
        events: Optional[Iterable[Event]] = None,
        id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        state_machine: Optional[EventStateMachine] = None,
    ):
        if not company_id:
            raise DomainError("CompanyId cannot be empty")
        if not name or not name.strip():
            raise DomainError("Driver name cannot be empty")
        if not phone or not phone.strip():
            raise DomainError("Driver phone cannot be empty")
        if not email or not email.strip():
            raise DomainError("Driver email cannot be empty")

        super().__init__(id=id)
        self.company_id = company_id
        self.name = name
        self.cpf = cpf if isinstance(cpf, Cpf) else Cpf(cpf)
        self.phone = phone
        self.email = email
        self.status = status
        self._events: List[Event] = list(events or [])
        self._clock = clock
        self._machine = state_machine or EventStateMachine()

    # ── Projections ───────────────────────────────────────────────────────────

    @property
    def events(self) -> Tuple[Event, ...]:
        return tuple(self._events)

    def active_events(self) -> List[Event]:
        return [e for e in self._events if e.is_active]

    def active_event_of_type(self, event_type: EventType) -> Optional[Event]:
        """Most recently started open event of the given type."""
        latest = None
        for e in self._events:
            if e.type == event_type and e.is_active:
                if latest is None or e.started_at >= latest.started_at:
                    latest = e
        return latest

    def determine_current_state(self) -> DriverState:
        return self._machine.current_state(self.active_events())

    def allowed_events(self) -> List[EventType]:
        """Event types `start_event` would accept right now (UI button enablement)."""
        if self.status != DriverStatus.ACTIVE:
            return []
        active = self.active_events()
        return [t for t in EventType if self._validation_state(t, active)[1]]

    # ── Commands ──────────────────────────────────────────────────────────────

    def start_event(
        self,
        event_type: EventType,
        started_at: datetime,
        location: Optional[Location] = None,
        source: EventSource = EventSource.MOBILE_MANUAL,
        vehicle_id: Optional[str] = None,
        device_time_skew_ms: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> EventResult:
        now = as_utc(now) if now else self._clock()
        started_at = as_utc(started_at)

        if self.status != DriverStatus.ACTIVE:
            return EventResult.failure("Driver is not active")

        try:
            Event.validate_timestamp(started_at, now)
        except DomainError as e:
            return EventResult.failure(str(e))

        backdated = self._precedes_log(started_at)
        if backdated:
            return EventResult.failure(f"{event_type.value} {backdated}")

        active = self.active_events()
        current_state = self._machine.current_state(active)
        effective_state, allowed = self._validation_state(event_type, active)
        if not allowed:
            logger.debug("Driver %s: rejected %s in state %s",
                         self.id, event_type.value, current_state.value)
            return EventResult.failure(
                f"Cannot start {event_type.value} while in {current_state.value} state",
                self._machine.suggested_events(current_state))

        to_close = self._events_closed_by(event_type, active)
        for e in to_close:
            if started_at <= e.started_at:
                return EventResult.failure(
                    f"{event_type.value} must happen after the open {e.type.value} "
                    f"started at {e.started_at.isoformat()}")

        notifications: List[DomainEvent] = []
        for e in to_close:
            e.end(started_at, location, now=now)
            notifications.append(EventEnded(
                event_id=e.id, driver_id=self.id, type=e.type, ended_at=started_at,
                duration=started_at - e.started_at, auto_closed=True, occurred_on=now))
            logger.info("Driver %s: %s closed by %s at %s",
                        self.id, e.type.value, event_type.value, started_at.isoformat())

        new_event = Event(
            self.id,
            self.company_id,
            event_type,
            started_at,
            reference_time=now,
            location_start=location,
            source=source,
            vehicle_id=vehicle_id,
            device_time_skew_ms=device_time_skew_ms,
        )
        self._events.append(new_event)
        self._mark_updated(now)
        notifications.append(EventCreated(
            event_id=new_event.id, driver_id=self.id, type=event_type,
            started_at=started_at, occurred_on=now))

        expected_state = self._machine.next_state(effective_state, event_type)
        new_state = self.determine_current_state()
        if new_state != expected_state:
            logger.warning("Driver %s: derived state %s differs from transition table %s",
                           self.id, new_state.value, expected_state.value)
        if new_state != current_state:
            notifications.append(DriverStateChanged(
                driver_id=self.id, previous_state=current_state, new_state=new_state,
                reason=f"Started {event_type.value}", occurred_on=now))

        return EventResult.success(new_event, notifications)

    def end_event(
        self,
        event_type: EventType,
        ended_at: datetime,
        location: Optional[Location] = None,
        now: Optional[datetime] = None,
    ) -> EventResult:
        now = as_utc(now) if now else self._clock()
        ended_at = as_utc(ended_at)

        target = self.active_event_of_type(event_type)
        if target is None:
            return EventResult.failure(f"No active {event_type.value} event to end")
        if ended_at <= target.started_at:
            return EventResult.failure("End time must be after start time")

        try:
            Event.validate_timestamp(ended_at, now)
        except DomainError as e:
            return EventResult.failure(str(e))

        backdated = self._precedes_log(ended_at)
        if backdated:
            return EventResult.failure(f"End of {event_type.value} {backdated}")

        previous_state = self.determine_current_state()

        # a shift cannot end with a sub-activity still open inside it
        nested: List[Event] = []
        if event_type == EventType.SHIFT_START:
            nested = [e for e in self.active_events() if e.type.is_sub_activity]
            for e in nested:
                if ended_at <= e.started_at:
                    return EventResult.failure(
                        f"Shift end must happen after the open {e.type.value} "
                        f"started at {e.started_at.isoformat()}")

        notifications: List[DomainEvent] = []
        closed = nested + [target]
        for e in closed:
            e.end(ended_at, location, now=now)
            notifications.append(EventEnded(
                event_id=e.id, driver_id=self.id, type=e.type, ended_at=ended_at,
                duration=ended_at - e.started_at, auto_closed=e is not target, occurred_on=now))

        # the log must carry the END markers the workday calculator pairs against
        for e in closed:
            marker = Event(
                self.id,
                self.company_id,
                pair_type(e.type),
                ended_at,
                reference_time=now,
                location_start=location,
                source=e.source,
                vehicle_id=e.vehicle_id,
            )
            self._events.append(marker)
            notifications.append(EventCreated(
                event_id=marker.id, driver_id=self.id, type=marker.type,
                started_at=ended_at, occurred_on=now))
        self._mark_updated(now)

        new_state = self.determine_current_state()
        if new_state != previous_state:
            notifications.append(DriverStateChanged(
                driver_id=self.id, previous_state=previous_state, new_state=new_state,
                reason=f"Ended {event_type.value}", occurred_on=now))

        return EventResult.success(target, notifications)

    def edit_event(
        self,
        event_id: str,
        edited_by: str,
        reason: str,
        new_started_at: Optional[datetime] = None,
        new_ended_at: Optional[datetime] = None,
        new_location_start: Optional[Location] = None,
        new_location_end: Optional[Location] = None,
        now: Optional[datetime] = None,
    ) -> EventResult:
        now = as_utc(now) if now else self._clock()
        event = next((e for e in self._events if e.id == event_id), None)
        if event is None:
            return EventResult.failure(f"Event {event_id} not found for driver {self.id}")

        try:
            self._check_edit_overlap(event, new_started_at, new_ended_at)
            notifications = event.edit(edited_by, reason, new_started_at, new_ended_at,
                                       new_location_start, new_location_end, now=now)
        except DomainError as e:
            return EventResult.failure(str(e))

        if notifications:
            self._mark_updated(now)
        return EventResult.success(event, list(notifications))

    def update_status(self, status: DriverStatus):
        self.status = status
        self._mark_updated(self._clock())

    def update_contact_info(self, phone: str, email: str):
        if not phone or not phone.strip():
            raise DomainError("Phone cannot be empty")
        if not email or not email.strip():
            raise DomainError("Email cannot be empty")
        self.phone = phone
        self.email = email
        self._mark_updated(self._clock())

    # ── Internals ─────────────────────────────────────────────────────────────

    def _validation_state(self, event_type: EventType,
                          active: List[Event]) -> Tuple[DriverState, bool]:
        """
        State the transition is checked against. A conflicting sub-activity is
        auto-closed before the new one starts, so a sub-activity start is
        validated as if that conflicting event were already ended.
        """
        target_type = self._machine.auto_close_target(event_type, active)
        remaining = active
        if target_type is not None and event_type != EventType.SHIFT_END:
            remaining = [e for e in active if e.type != target_type]
        state = self._machine.current_state(remaining)
        return state, self._machine.can_start(event_type, state)

    def _precedes_log(self, instant: datetime) -> Optional[str]:
        """The log is append-only in time: nothing may be recorded before its last entry."""
        latest = max((e.started_at for e in self._events), default=None)
        if latest is not None and instant < latest:
            return (f"at {instant.isoformat()} is earlier than the last recorded "
                    f"event at {latest.isoformat()}")
        return None

    def _check_edit_overlap(self, event: Event, new_started_at: Optional[datetime],
                            new_ended_at: Optional[datetime]):
        """Sub-activities are mutually exclusive, also after a correction."""
        if not (event.is_start_event and event.type.is_sub_activity):
            return
        if new_started_at is None and new_ended_at is None:
            return

        # dry run on a detached copy so the stored event is untouched on rejection
        candidate = Event.restore(
            id=event.id, driver_id=event.driver_id, company_id=event.company_id, type=event.type,
            started_at=new_started_at or event.started_at,
            ended_at=new_ended_at or event.ended_at,
        )
        for other in self._events:
            if other.id == event.id or not (other.is_start_event and other.type.is_sub_activity):
                continue
            if candidate.conflicts_with(other):
                raise EventConflictError(
                    f"Edited {event.type.value} would overlap {other.type.value} "
                    f"started at {other.started_at.isoformat()}")

    def _events_closed_by(self, event_type: EventType, active: List[Event]) -> List[Event]:
        closing: List[Event] = []
        target_type = self._machine.auto_close_target(event_type, active)
        if target_type is not None:
            conflicting = self.active_event_of_type(target_type)
            if conflicting is not None:
                closing.append(conflicting)

        # an END marker closes its own START (SHIFT_END closes the shift last)
        if event_type.is_end:
            own_start = self.active_event_of_type(pair_type(event_type))
            if own_start is not None and own_start not in closing:
                closing.append(own_start)
        return closing
