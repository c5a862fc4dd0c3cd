"""
Domain notifications emitted by the Driver aggregate and the Event entity.

They are returned to the caller together with the operation result; the
audit/outbox layer decides what to record and dispatch.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jornada.domain.clock import utc_now
from .value_objects import DriverState, EventType


@dataclass(frozen=True)
class DomainEvent:
    occurred_on: datetime = field(default_factory=utc_now, kw_only=True)
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class EventCreated(DomainEvent):
    event_id: str
    driver_id: str
    type: EventType
    started_at: datetime


@dataclass(frozen=True)
class EventEnded(DomainEvent):
    event_id: str
    driver_id: str
    type: EventType
    ended_at: datetime
    duration: timedelta
    auto_closed: bool = False


@dataclass(frozen=True)
class DriverStateChanged(DomainEvent):
    driver_id: str
    previous_state: DriverState
    new_state: DriverState
    reason: str


@dataclass(frozen=True)
class EventEdited(DomainEvent):
    event_id: str
    edited_by: str
    reason: str
    # field name -> {"old": ..., "new": ...}
    changes: Dict[str, Dict[str, Optional[Any]]]
