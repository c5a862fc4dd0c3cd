from dataclasses import fields
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging

from jornada.domain.exceptions import DomainError
from jornada.domain.models.domain_events import DomainEvent
from jornada.domain.models.driver import Driver
from jornada.domain.models.entities import Event, WorkdaySummary
from jornada.domain.models.settings import CompanySettings
from jornada.domain.models.value_objects import DriverStatus, EventSource, EventType, Location
from jornada.domain.clock import format_duration

logger = logging.getLogger(__name__)


class JornadaMapper:
    """Plain dict (JSON) <-> domain objects."""

    @staticmethod
    def to_domain(data: Dict[str, Any]) -> Tuple[Driver, CompanySettings]:
        driver_data = data.get("driver")
        if not driver_data:
            raise ValueError("Missing 'driver' block")
        if not driver_data.get("id"):
            raise ValueError("The 'driver' block needs an 'id'")

        settings = CompanySettings.from_dict(data.get("settings") or {})
        events, rejected = JornadaMapper.split_events(data.get("events", []), driver_data)
        for raw, error in rejected:
            row_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
            logger.warning(f"Skipping invalid event {row_id}: {error}")

        driver = Driver(
            company_id=driver_data.get("company_id", ""),
            name=driver_data.get("name", ""),
            cpf=driver_data.get("cpf", ""),
            phone=driver_data.get("phone", ""),
            email=driver_data.get("email", ""),
            status=DriverStatus(driver_data.get("status", DriverStatus.ACTIVE.value)),
            events=events,
            id=driver_data.get("id"),
        )
        return driver, settings

    @staticmethod
    def to_dict(driver: Driver, settings: CompanySettings) -> Dict[str, Any]:
        return {
            "driver": {
                "id": driver.id,
                "company_id": driver.company_id,
                "name": driver.name,
                "cpf": driver.cpf.value,
                "phone": driver.phone,
                "email": driver.email,
                "status": driver.status.value,
            },
            "settings": settings.to_dict(),
            "events": [JornadaMapper.event_to_dict(e) for e in driver.events],
        }

    @staticmethod
    def split_events(raw_events: List[Any],
                     driver_data: Dict[str, Any]) -> Tuple[List[Event], List[Tuple[Any, Exception]]]:
        """
        Parses the stored rows. Rows that do not parse (unknown type, bad timestamp)
        come back untouched with the error so a later save can write them back.
        """
        events = []
        rejected = []
        for raw in raw_events:
            try:
                if not isinstance(raw, dict):
                    raise ValueError(f"Event row must be an object, got {type(raw).__name__}")
                events.append(JornadaMapper.event_from_dict(raw, driver_data))
            except (KeyError, ValueError) as e:
                # DomainError is a ValueError
                rejected.append((raw, e))
        events.sort(key=lambda ev: ev.started_at)
        return events, rejected

    @staticmethod
    def event_from_dict(raw: Dict[str, Any], driver_data: Optional[Dict[str, Any]] = None) -> Event:
        driver_data = driver_data or {}
        return Event.restore(
            id=raw["id"],
            driver_id=raw.get("driver_id") or driver_data.get("id"),
            company_id=raw.get("company_id") or driver_data.get("company_id"),
            type=EventType(raw["type"]),
            started_at=JornadaMapper._parse_datetime(raw["started_at"]),
            ended_at=JornadaMapper._parse_datetime(raw.get("ended_at")),
            location_start=JornadaMapper.location_from_dict(raw.get("location_start")),
            location_end=JornadaMapper.location_from_dict(raw.get("location_end")),
            source=EventSource(raw.get("source", EventSource.MOBILE_MANUAL.value)),
            vehicle_id=raw.get("vehicle_id"),
            edited_by=raw.get("edited_by"),
            edit_reason=raw.get("edit_reason"),
            device_time_skew_ms=raw.get("device_time_skew_ms"),
            created_at=JornadaMapper._parse_datetime(raw.get("created_at")),
            updated_at=JornadaMapper._parse_datetime(raw.get("updated_at")),
        )

    @staticmethod
    def event_to_dict(event: Event) -> Dict[str, Any]:
        return {
            "id": event.id,
            "driver_id": event.driver_id,
            "company_id": event.company_id,
            "vehicle_id": event.vehicle_id,
            "type": event.type.value,
            "started_at": event.started_at.isoformat(),
            "ended_at": event.ended_at.isoformat() if event.ended_at else None,
            "location_start": JornadaMapper.location_to_dict(event.location_start),
            "location_end": JornadaMapper.location_to_dict(event.location_end),
            "source": event.source.value,
            "edited_by": event.edited_by,
            "edit_reason": event.edit_reason,
            "device_time_skew_ms": event.device_time_skew_ms,
            "created_at": event.created_at.isoformat(),
            "updated_at": event.updated_at.isoformat() if event.updated_at else None,
        }

    @staticmethod
    def location_from_dict(data: Optional[Dict[str, Any]]) -> Optional[Location]:
        if not data:
            return None
        return Location(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=int(data.get("accuracy_meters", 0)),
        )

    @staticmethod
    def location_to_dict(location: Optional[Location]) -> Optional[Dict[str, Any]]:
        if location is None:
            return None
        return {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "accuracy_meters": location.accuracy_meters,
        }

    @staticmethod
    def summary_to_dict(summary: WorkdaySummary) -> Dict[str, Any]:
        return {
            "driver_id": summary.driver_id,
            "date": summary.date.isoformat(),
            "total_worked": format_duration(summary.total_worked),
            "total_rest": format_duration(summary.total_rest),
            "total_meal": format_duration(summary.total_meal),
            "total_disposal": format_duration(summary.total_disposal),
            "total_shift": format_duration(summary.total_shift),
            "longest_continuous_work": format_duration(summary.longest_continuous_work),
            "anomalies": list(summary.anomalies),
            "calculated_at": summary.calculated_at.isoformat(),
        }

    @staticmethod
    def notification_to_dict(notification: DomainEvent) -> Dict[str, Any]:
        data = {"name": notification.name}
        for f in fields(notification):
            data[f.name] = JornadaMapper._plain(getattr(notification, f.name))
        return data

    @staticmethod
    def _plain(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, timedelta):
            return format_duration(value)
        if isinstance(value, dict):
            return {k: JornadaMapper._plain(v) for k, v in value.items()}
        return value

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            raise DomainError(f"Invalid timestamp: {value}")
