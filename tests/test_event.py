"""Tests for the Event entity and the other domain entities."""
import os
import sys
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jornada.domain.exceptions import BusinessRuleViolation, DomainError
from jornada.domain.models.company import Company
from jornada.domain.models.entities import Event, Vehicle, WorkdaySummary, pair_type
from jornada.domain.models.value_objects import EventType, Location
from generate_mock_data import COMPANY_ID, OTHER_CPF, VALID_CNPJ, make_driver, make_event, utc

NOW = utc(2024, 3, 1, 12)


def _event(event_type=EventType.MEAL_START, started_at=NOW, **kwargs):
    return Event("driver-1", COMPANY_ID, event_type, started_at, reference_time=NOW, **kwargs)


class TestEventCreation:

    def test_timestamp_within_window(self):
        ev = _event(started_at=NOW - timedelta(hours=23))
        assert ev.is_active

    def test_timestamp_outside_window(self):
        with pytest.raises(DomainError, match="too far"):
            _event(started_at=NOW - timedelta(hours=25))

    def test_future_timestamp_outside_window(self):
        with pytest.raises(DomainError):
            _event(started_at=NOW + timedelta(hours=25))

    def test_requires_ids(self):
        with pytest.raises(DomainError):
            Event("", COMPANY_ID, EventType.SHIFT_START, NOW, reference_time=NOW)
        with pytest.raises(DomainError):
            Event("driver-1", "", EventType.SHIFT_START, NOW, reference_time=NOW)

    def test_naive_datetime_is_utc(self):
        ev = _event(started_at=NOW.replace(tzinfo=None))
        assert ev.started_at == NOW

    def test_restore_skips_window(self):
        ev = make_event(EventType.SHIFT_START, utc(2020, 1, 1, 8))
        assert ev.started_at.year == 2020

    def test_restore_rejects_inverted_interval(self):
        with pytest.raises(DomainError):
            make_event(EventType.SHIFT_START, utc(2024, 3, 1, 8), utc(2024, 3, 1, 7))


class TestEventEnd:

    def test_end_sets_duration(self):
        ev = _event()
        ev.end(NOW + timedelta(minutes=30), Location(1, 1), now=NOW)
        assert ev.duration == timedelta(minutes=30)
        assert ev.is_completed
        assert not ev.is_active
        assert ev.location_end == Location(1, 1)

    def test_end_before_start(self):
        ev = _event()
        with pytest.raises(DomainError, match="after start"):
            ev.end(NOW)

    def test_end_twice(self):
        ev = _event()
        ev.end(NOW + timedelta(minutes=5))
        with pytest.raises(DomainError, match="already completed"):
            ev.end(NOW + timedelta(minutes=10))

    def test_marker_cannot_be_ended(self):
        marker = _event(EventType.MEAL_END)
        assert not marker.is_active
        with pytest.raises(DomainError):
            marker.end(NOW + timedelta(minutes=5))


class TestEventEdit:

    def test_edit_changes_start(self):
        ev = _event()
        notes = ev.edit("supervisor", "Driver forgot to tap", new_started_at=NOW - timedelta(minutes=10), now=NOW)
        assert len(notes) == 1
        assert notes[0].name == "EventEdited"
        assert "started_at" in notes[0].changes
        assert ev.edited_by == "supervisor"
        assert ev.started_at == NOW - timedelta(minutes=10)

    def test_noop_edit_returns_empty(self):
        ev = _event()
        assert ev.edit("supervisor", "check", new_started_at=NOW) == []
        assert ev.edited_by is None

    def test_blank_reason(self):
        ev = _event()
        with pytest.raises(BusinessRuleViolation) as exc:
            ev.edit("supervisor", "   ", new_started_at=NOW - timedelta(minutes=1))
        assert exc.value.rule_name == "EditReasonRequired"

    def test_inverted_interval_leaves_event_untouched(self):
        ev = _event()
        ev.end(NOW + timedelta(hours=1))
        with pytest.raises(DomainError):
            ev.edit("supervisor", "typo", new_started_at=NOW + timedelta(hours=2))
        assert ev.started_at == NOW

    def test_edit_location(self):
        ev = _event()
        notes = ev.edit("supervisor", "GPS fix", new_location_start=Location(-23, -46))
        assert notes[0].changes["location_start"]["old"] is None


class TestEventRelations:

    def test_pair_type(self):
        assert pair_type(EventType.MEAL_START) == EventType.MEAL_END
        assert pair_type(EventType.SHIFT_END) == EventType.SHIFT_START
        assert _event(EventType.REST_START).pair_type() == EventType.REST_END

    def test_conflicts_with_open_events(self):
        meal = _event(EventType.MEAL_START)
        rest = _event(EventType.REST_START, NOW + timedelta(hours=3))
        # both open: extend to infinity
        assert meal.conflicts_with(rest)
        assert rest.conflicts_with(meal)

    def test_no_conflict_when_adjacent(self):
        meal = _event(EventType.MEAL_START)
        meal.end(NOW + timedelta(minutes=30))
        rest = _event(EventType.REST_START, NOW + timedelta(minutes=30))
        assert not meal.conflicts_with(rest)

    def test_same_type_or_other_driver_never_conflict(self):
        a = _event(EventType.MEAL_START)
        b = _event(EventType.MEAL_START)
        other = Event("driver-2", COMPANY_ID, EventType.REST_START, NOW, reference_time=NOW)
        assert not a.conflicts_with(b)
        assert not a.conflicts_with(other)
        assert not a.conflicts_with(None)

    def test_distance_km(self):
        ev = _event(location_start=Location(-23.5505, -46.6333))
        assert ev.distance_km() is None
        ev.end(NOW + timedelta(hours=1), Location(-23.5505, -46.6333))
        assert ev.distance_km() == 0


class TestCompanyAndVehicle:

    def test_vehicle_plate_normalised(self):
        v = Vehicle(COMPANY_ID, "abc-1d23", "FH", "Volvo", 2020)
        assert v.plate == "ABC1D23"

    def test_vehicle_year(self):
        with pytest.raises(DomainError):
            Vehicle(COMPANY_ID, "ABC1234", "FH", "Volvo", 1800)

    def test_vehicle_assignment(self):
        v = Vehicle(COMPANY_ID, "ABC1234", "FH", "Volvo", 2020)
        first = v.assign("driver-1", utc(2024, 3, 1, 8))
        first.end(utc(2024, 3, 1, 17))
        second = v.assign("driver-2", utc(2024, 3, 2, 8))
        assert first.duration == timedelta(hours=9)
        assert v.current_assignment() is second

    def test_company_rejects_duplicate_cpf(self):
        company = Company("Transportes Ltda", VALID_CNPJ, id=COMPANY_ID)
        company.add_driver(make_driver(driver_id="d1"))
        with pytest.raises(DomainError, match="already exists"):
            company.add_driver(make_driver(driver_id="d2"))
        company.add_driver(make_driver(driver_id="d3", cpf=OTHER_CPF))
        assert len(company.drivers) == 2

    def test_company_rejects_foreign_driver(self):
        company = Company("Transportes Ltda", VALID_CNPJ)
        with pytest.raises(DomainError):
            company.add_driver(make_driver())

    def test_company_rejects_duplicate_plate(self):
        company = Company("Transportes Ltda", VALID_CNPJ, id=COMPANY_ID)
        company.add_vehicle(Vehicle(COMPANY_ID, "ABC1234", "FH", "Volvo", 2020))
        with pytest.raises(DomainError):
            company.add_vehicle(Vehicle(COMPANY_ID, "abc-1234", "R450", "Scania", 2021))


class TestWorkdaySummary:

    def test_total_shift_and_update(self):
        day = utc(2024, 3, 1).date()
        s = WorkdaySummary("driver-1", day, total_worked=timedelta(hours=8), total_meal=timedelta(hours=1))
        assert s.total_shift == timedelta(hours=9)
        assert not s.has_anomalies

        fresh = WorkdaySummary("driver-1", day, total_worked=timedelta(hours=9), anomalies=["x"])
        s.update(fresh)
        assert s.total_worked == timedelta(hours=9)
        assert s.has_anomalies

    def test_update_other_day(self):
        s = WorkdaySummary("driver-1", utc(2024, 3, 1).date())
        with pytest.raises(DomainError):
            s.update(WorkdaySummary("driver-1", utc(2024, 3, 2).date()))
