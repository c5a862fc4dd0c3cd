from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

import pytz

from jornada.domain.exceptions import DomainError


def _hours(value: Any, name: str) -> timedelta:
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise DomainError(f"Invalid value for {name}: {value!r} (expected hours)")
    if hours < 0:
        raise DomainError(f"{name} cannot be negative: {hours}")
    return timedelta(hours=hours)


def _timezone(value: Any) -> str:
    name = str(value)
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise DomainError(f"Unknown timezone: {name!r}")
    return name


@dataclass
class CompanySettings:
    """Per-company limits used by the workday calculator."""
    max_daily_work: timedelta = timedelta(hours=8)
    min_rest_between_shifts: timedelta = timedelta(hours=11)
    max_continuous_work: timedelta = timedelta(hours=4)
    require_location_on_events: bool = True
    clock_skew_tolerance_minutes: int = 5
    timezone: str = "UTC"

    def __post_init__(self):
        self.timezone = _timezone(self.timezone)

    @classmethod
    def default(cls) -> "CompanySettings":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompanySettings":
        """
        Builds settings from a plain mapping (e.g. a JSON block).
        Durations are expressed in hours; missing keys keep their defaults.
        """
        settings = cls()
        if "max_daily_work" in data:
            settings.max_daily_work = _hours(data["max_daily_work"], "max_daily_work")
        if "min_rest_between_shifts" in data:
            settings.min_rest_between_shifts = _hours(
                data["min_rest_between_shifts"], "min_rest_between_shifts")
        if "max_continuous_work" in data:
            settings.max_continuous_work = _hours(data["max_continuous_work"], "max_continuous_work")
        if "require_location_on_events" in data:
            settings.require_location_on_events = bool(data["require_location_on_events"])
        if "clock_skew_tolerance_minutes" in data:
            try:
                tolerance = int(data["clock_skew_tolerance_minutes"])
            except (TypeError, ValueError):
                raise DomainError(
                    f"Invalid value for clock_skew_tolerance_minutes: {data['clock_skew_tolerance_minutes']!r}")
            if tolerance < 0:
                raise DomainError(f"clock_skew_tolerance_minutes cannot be negative: {tolerance}")
            settings.clock_skew_tolerance_minutes = tolerance
        if data.get("timezone"):
            settings.timezone = _timezone(data["timezone"])
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_daily_work": self.max_daily_work.total_seconds() / 3600,
            "min_rest_between_shifts": self.min_rest_between_shifts.total_seconds() / 3600,
            "max_continuous_work": self.max_continuous_work.total_seconds() / 3600,
            "require_location_on_events": self.require_location_on_events,
            "clock_skew_tolerance_minutes": self.clock_skew_tolerance_minutes,
            "timezone": self.timezone,
        }
