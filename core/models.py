from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from datetime import datetime, date

from jornada.domain.clock import utc_now
from jornada.domain.models.domain_events import DomainEvent
from jornada.domain.models.driver import Driver
from jornada.domain.models.settings import CompanySettings
from jornada.domain.services.workday_calculator import WorkdayCalculator
from jornada.infrastructure.mappers.jornada_mapper import JornadaMapper


@dataclass
class JornadaReport:
    metadata: Dict[str, Any] = field(default_factory=lambda: {
        "filename": "N/A",
        "generated_at": utc_now().isoformat(),
        "timezone": "UTC",
        "event_count": 0,
    })
    driver: Dict[str, Any] = field(default_factory=lambda: {
        "id": "N/A",
        "name": "N/A",
        "cpf": "N/A",
        "status": "N/A",
    })
    current_state: str = "OFF_SHIFT"
    allowed_events: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    daily_summaries: List[Dict[str, Any]] = field(default_factory=list)
    notifications: List[Dict[str, Any]] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_driver(
        cls,
        driver: Driver,
        settings: CompanySettings,
        filename: str = "N/A",
        day: Optional[date] = None,
        notifications: Optional[List[DomainEvent]] = None,
        now: Optional[datetime] = None,
    ) -> "JornadaReport":
        """Replays the driver's log into a flat report. `day` limits the summaries to one date."""
        now = now or utc_now()
        calculator = WorkdayCalculator(settings)
        events = list(driver.events)

        if day is not None:
            summaries = [calculator.calculate(driver.id, day, events, now=now)]
        else:
            summaries = calculator.calculate_range(driver.id, date.min, date.max, events, now=now)

        return cls(
            metadata={
                "filename": filename,
                "generated_at": now.isoformat(),
                "timezone": settings.timezone,
                "event_count": len(events),
            },
            driver={
                "id": driver.id,
                "name": driver.name,
                "cpf": driver.cpf.formatted,
                "status": driver.status.value,
            },
            current_state=driver.determine_current_state().value,
            allowed_events=[t.value for t in driver.allowed_events()],
            events=[JornadaMapper.event_to_dict(e) for e in events],
            daily_summaries=[JornadaMapper.summary_to_dict(s) for s in summaries],
            notifications=[JornadaMapper.notification_to_dict(n) for n in notifications or []],
            settings=settings.to_dict(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata,
            "driver": self.driver,
            "current_state": self.current_state,
            "allowed_events": self.allowed_events,
            "events": self.events,
            "daily_summaries": self.daily_summaries,
            "notifications": self.notifications,
            "settings": self.settings,
        }
