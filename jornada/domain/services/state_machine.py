"""
Event state machine.

Pure and stateless: a fixed transition table (DriverState, EventType) -> DriverState
plus the projections the Driver aggregate needs (current state, auto-close target).
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from jornada.domain.exceptions import InvalidTransitionError
from jornada.domain.models.value_objects import DriverState, EventType

S = DriverState
E = EventType

TRANSITIONS: Dict[Tuple[DriverState, EventType], DriverState] = {
    # Off shift
    (S.OFF_SHIFT, E.SHIFT_START): S.WORKING,

    # Working
    (S.WORKING, E.MEAL_START): S.MEAL,
    (S.WORKING, E.REST_START): S.REST,
    (S.WORKING, E.DISPOSAL_START): S.DISPOSAL,
    (S.WORKING, E.INSPECTION_START): S.INSPECTION,
    (S.WORKING, E.SHIFT_END): S.OFF_SHIFT,

    # Sub-states back to working
    (S.MEAL, E.MEAL_END): S.WORKING,
    (S.REST, E.REST_END): S.WORKING,
    (S.DISPOSAL, E.DISPOSAL_END): S.WORKING,
    (S.INSPECTION, E.INSPECTION_END): S.WORKING,

    # SHIFT_END forces off shift from any sub-state
    (S.MEAL, E.SHIFT_END): S.OFF_SHIFT,
    (S.REST, E.SHIFT_END): S.OFF_SHIFT,
    (S.DISPOSAL, E.SHIFT_END): S.OFF_SHIFT,
    (S.INSPECTION, E.SHIFT_END): S.OFF_SHIFT,
}

SUB_ACTIVITY_STARTS = (E.MEAL_START, E.REST_START, E.DISPOSAL_START, E.INSPECTION_START)

STATE_BY_SUB_START = {
    E.MEAL_START: S.MEAL,
    E.REST_START: S.REST,
    E.DISPOSAL_START: S.DISPOSAL,
    E.INSPECTION_START: S.INSPECTION,
}


@dataclass
class TransitionValidation:
    is_valid: bool
    message: str = ""
    suggested_events: List[EventType] = field(default_factory=list)


def _sorted_types(types: Iterable[EventType]) -> List[EventType]:
    order = list(EventType)
    return sorted(types, key=order.index)


class EventStateMachine:

    def can_start(self, event_type: EventType, current_state: DriverState) -> bool:
        return (current_state, event_type) in TRANSITIONS

    def next_state(self, current_state: DriverState, event_type: EventType) -> DriverState:
        try:
            return TRANSITIONS[(current_state, event_type)]
        except KeyError:
            raise InvalidTransitionError(current_state, event_type,
                                         self.allowed_events(current_state))

    def allowed_events(self, current_state: DriverState) -> Set[EventType]:
        return {event for (state, event) in TRANSITIONS if state == current_state}

    def suggested_events(self, current_state: DriverState) -> List[EventType]:
        """Allowed events in enum order, for messages and buttons."""
        return _sorted_types(self.allowed_events(current_state))

    def validate_transition(self, current_state: DriverState,
                            event_type: EventType) -> TransitionValidation:
        if self.can_start(event_type, current_state):
            next_state = TRANSITIONS[(current_state, event_type)]
            return TransitionValidation(
                True,
                f"Transition from {current_state.value} to {next_state.value} via {event_type.value}")
        return TransitionValidation(
            False,
            f"Invalid transition: Cannot execute {event_type.value} while in {current_state.value} state",
            self.suggested_events(current_state))

    def auto_close_target(self, new_type: EventType, active_events: Sequence) -> Optional[EventType]:
        """
        Type of the open event that must be ended implicitly when `new_type` starts.

        SHIFT_END closes any open sub-activity; a sub-activity start closes
        whichever of the other three is open.
        """
        open_events = [e for e in active_events if e.ended_at is None]

        if new_type == E.SHIFT_END:
            for e in open_events:
                if e.type in SUB_ACTIVITY_STARTS:
                    return e.type
            return None

        if new_type in SUB_ACTIVITY_STARTS:
            conflicting = [t for t in SUB_ACTIVITY_STARTS if t != new_type]
            for e in open_events:
                if e.type in conflicting:
                    return e.type
        return None

    def current_state(self, active_events: Sequence) -> DriverState:
        open_events = [e for e in active_events if e.ended_at is None]
        if not any(e.type == E.SHIFT_START for e in open_events):
            return S.OFF_SHIFT

        latest = None
        for e in open_events:
            if e.type not in STATE_BY_SUB_START:
                continue
            # '>=' keeps the later-inserted event on equal timestamps
            if latest is None or e.started_at >= latest.started_at:
                latest = e

        if latest is None:
            return S.WORKING
        return STATE_BY_SUB_START[latest.type]

    def replay(self, event_types: Iterable[EventType],
               initial: DriverState = S.OFF_SHIFT) -> List[DriverState]:
        """States reached after each step. Raises on the first illegal transition."""
        states = []
        state = initial
        for event_type in event_types:
            state = self.next_state(state, event_type)
            states.append(state)
        return states
