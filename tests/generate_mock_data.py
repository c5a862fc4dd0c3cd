"""Builders for synthetic driver files and domain objects used across the test suite."""
import json
import os
import uuid
from datetime import datetime, timezone

from jornada.domain.models.driver import Driver
from jornada.domain.models.entities import Event
from jornada.domain.models.value_objects import EventType, Location

COMPANY_ID = "company-1"
VALID_CPF = "11144477735"
OTHER_CPF = "52998224725"
VALID_CNPJ = "11222333000181"
SAO_PAULO = Location(-23.5505, -46.6333, 10)


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_driver(events=None, clock=None, cpf=VALID_CPF, driver_id="driver-1", **kwargs):
    params = dict(
        company_id=COMPANY_ID,
        name="João da Silva",
        cpf=cpf,
        phone="+55 11 99999-0000",
        email="joao@example.com",
        events=events,
        id=driver_id,
    )
    params.update(kwargs)
    if clock is not None:
        params["clock"] = clock
    return Driver(**params)


def make_event(event_type, started_at, ended_at=None, location=SAO_PAULO,
               driver_id="driver-1", device_time_skew_ms=None):
    """Stored event (no creation-time skew check), optionally already closed."""
    return Event.restore(
        id=str(uuid.uuid4()),
        driver_id=driver_id,
        company_id=COMPANY_ID,
        type=event_type,
        started_at=started_at,
        ended_at=ended_at,
        location_start=location,
        device_time_skew_ms=device_time_skew_ms,
    )


def standard_day(day=(2024, 3, 1), location=SAO_PAULO):
    """08:00 shift start, 12:00-12:30 meal, 17:00 shift end (closed shift and markers)."""
    y, m, d = day
    return [
        make_event(EventType.SHIFT_START, utc(y, m, d, 8), utc(y, m, d, 17), location=location),
        make_event(EventType.MEAL_START, utc(y, m, d, 12), utc(y, m, d, 12, 30), location=location),
        make_event(EventType.MEAL_END, utc(y, m, d, 12, 30), location=location),
        make_event(EventType.SHIFT_END, utc(y, m, d, 17), location=location),
    ]


def driver_file_data(name="João da Silva", cpf=VALID_CPF, driver_id="driver-1",
                     events=None, settings=None):
    """Dict in the JSON driver-file layout: {"driver": ..., "settings": ..., "events": [...]}."""
    raw_events = []
    for ev in events or []:
        event_type, started_at = ev[0], ev[1]
        ended_at = ev[2] if len(ev) > 2 else None
        raw_events.append({
            "id": str(uuid.uuid4()),
            "type": event_type,
            "started_at": started_at,
            "ended_at": ended_at,
            "location_start": {"latitude": -23.5505, "longitude": -46.6333, "accuracy_meters": 10},
            "source": "MOBILE_MANUAL",
        })
    return {
        "driver": {
            "id": driver_id,
            "company_id": COMPANY_ID,
            "name": name,
            "cpf": cpf,
            "phone": "+55 11 99999-0000",
            "email": "driver@example.com",
            "status": "ACTIVE",
        },
        "settings": settings if settings is not None else {"max_daily_work": 8, "timezone": "UTC"},
        "events": raw_events,
    }


STANDARD_DAY_ROWS = [
    ("SHIFT_START", "2024-03-01T08:00:00+00:00", "2024-03-01T17:00:00+00:00"),
    ("MEAL_START", "2024-03-01T12:00:00+00:00", "2024-03-01T12:30:00+00:00"),
    ("MEAL_END", "2024-03-01T12:30:00+00:00"),
    ("SHIFT_END", "2024-03-01T17:00:00+00:00"),
]


def write_driver_file(folder, filename="driver.json", **kwargs):
    path = os.path.join(folder, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(driver_file_data(**kwargs), f, indent=2, ensure_ascii=False)
    return path


if __name__ == "__main__":
    out = write_driver_file(os.path.dirname(os.path.abspath(__file__)), "sample_driver.json",
                            events=STANDARD_DAY_ROWS)
    print(f"Mock driver file written to {out}")
