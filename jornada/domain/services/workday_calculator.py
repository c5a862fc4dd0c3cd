import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

import pytz

from jornada.domain.clock import as_utc, format_duration, utc_now
from jornada.domain.models.entities import Event, WorkdaySummary, pair_type
from jornada.domain.models.settings import CompanySettings
from jornada.domain.models.value_objects import EventType

logger = logging.getLogger(__name__)


@dataclass
class EventPair:
    type: EventType
    started_at: datetime
    ended_at: Optional[datetime]
    duration: Optional[timedelta]


class WorkdayCalculator:
    """
    Daily totals and anomaly flags for labor-compliance review.

    Totals come from pairing each start event with the earliest later event of
    its END type (greedy forward scan, not interval matching). Anomalies are
    independent: every rule that fires is reported.
    """

    def __init__(self, settings: Optional[CompanySettings] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.settings = settings or CompanySettings.default()
        self._tz = pytz.timezone(self.settings.timezone)
        self._clock = clock

    def local_date(self, instant: datetime) -> date:
        return as_utc(instant).astimezone(self._tz).date()

    def calculate(self, driver_id: str, day: date, events: Iterable[Event],
                  now: Optional[datetime] = None) -> WorkdaySummary:
        driver_events = [e for e in events if e.driver_id == driver_id]
        day_events = sorted(
            (e for e in driver_events if self.local_date(e.started_at) == day),
            key=lambda e: e.started_at)

        pairs = self.create_event_pairs(day_events)
        total_meal, total_rest, total_disposal = self._sum_breaks(pairs)

        total_worked = timedelta(0)
        shift_pair = next((p for p in pairs if p.type == EventType.SHIFT_START), None)
        if shift_pair is not None and shift_pair.duration is not None:
            # not clamped: a negative figure points at inconsistent data
            total_worked = shift_pair.duration - total_meal - total_rest - total_disposal

        continuous = self.longest_continuous_work(day_events)
        anomalies = self._detect_anomalies(day_events, driver_events, total_worked, continuous)
        if anomalies:
            logger.debug("Driver %s on %s: %d anomalies", driver_id, day.isoformat(), len(anomalies))

        return WorkdaySummary(
            driver_id=driver_id,
            date=day,
            total_worked=total_worked,
            total_rest=total_rest,
            total_meal=total_meal,
            total_disposal=total_disposal,
            longest_continuous_work=continuous,
            anomalies=anomalies,
            calculated_at=as_utc(now) if now else self._clock(),
        )

    def calculate_range(self, driver_id: str, start_date: date, end_date: date,
                        events: Iterable[Event], now: Optional[datetime] = None) -> List[WorkdaySummary]:
        """One summary per local calendar day in [start_date, end_date] that has events."""
        events = list(events)
        days = sorted({self.local_date(e.started_at) for e in events
                       if e.driver_id == driver_id})
        return [self.calculate(driver_id, d, events, now=now)
                for d in days if start_date <= d <= end_date]

    def create_event_pairs(self, events: Sequence[Event]) -> List[EventPair]:
        """
        Pairs every start with the earliest END of its pair type that starts
        after it. Two consecutive starts of the same type can claim the same
        END.
        """
        ordered = sorted(events, key=lambda e: e.started_at)
        pairs = []
        for start in ordered:
            if not start.is_start_event:
                continue
            end_type = pair_type(start.type)
            end = next((e for e in ordered
                        if e.type == end_type and e.started_at > start.started_at), None)
            ended_at = end.started_at if end else None
            duration = ended_at - start.started_at if ended_at else None
            pairs.append(EventPair(start.type, start.started_at, ended_at, duration))
        return pairs

    def longest_continuous_work(self, events: Sequence[Event]) -> timedelta:
        """
        Longest stretch without a meal or rest break. Disposal and inspection
        count as work for continuity, so their starts do not close a stretch.
        """
        periods: List[timedelta] = []
        work_start: Optional[datetime] = None

        for e in sorted(events, key=lambda ev: ev.started_at):
            if e.type == EventType.SHIFT_START:
                work_start = e.started_at
            elif e.type in (EventType.MEAL_START, EventType.REST_START):
                if work_start is not None:
                    periods.append(e.started_at - work_start)
                    work_start = None
            elif e.type in (EventType.MEAL_END, EventType.REST_END):
                work_start = e.started_at
            elif e.type == EventType.SHIFT_END:
                if work_start is not None:
                    periods.append(e.started_at - work_start)

        return max(periods) if periods else timedelta(0)

    # ── Anomalies ─────────────────────────────────────────────────────────────

    def _sum_breaks(self, pairs: List[EventPair]):
        meal = rest = disposal = timedelta(0)
        for p in pairs:
            if p.duration is None:
                continue
            if p.type == EventType.MEAL_START:
                meal += p.duration
            elif p.type == EventType.REST_START:
                rest += p.duration
            elif p.type == EventType.DISPOSAL_START:
                disposal += p.duration
        return meal, rest, disposal

    def _detect_anomalies(self, day_events: List[Event], driver_events: List[Event],
                          total_worked: timedelta, continuous: timedelta) -> List[str]:
        s = self.settings
        anomalies = []

        if total_worked > s.max_daily_work:
            anomalies.append(
                f"Jornada excede limite diário: {format_duration(total_worked)} > "
                f"{format_duration(s.max_daily_work)}")

        if continuous > s.max_continuous_work:
            anomalies.append(
                f"Trabalho contínuo excede limite: {format_duration(continuous)} > "
                f"{format_duration(s.max_continuous_work)}")

        if s.require_location_on_events:
            without_location = sum(1 for e in day_events if e.location_start is None)
            if without_location > 0:
                anomalies.append(f"{without_location} eventos sem localização")

        open_events = [e for e in day_events if e.is_start_event and e.is_active]
        if open_events:
            types = ", ".join(e.type.value for e in open_events)
            anomalies.append(f"{len(open_events)} eventos não finalizados: {types}")

        rest_gap = self._rest_before_first_shift(day_events, driver_events)
        if rest_gap is not None and rest_gap < s.min_rest_between_shifts:
            anomalies.append(
                f"Descanso entre jornadas insuficiente: {format_duration(rest_gap)} < "
                f"{format_duration(s.min_rest_between_shifts)}")

        tolerance_ms = s.clock_skew_tolerance_minutes * 60 * 1000
        skewed = sum(1 for e in day_events
                     if e.device_time_skew_ms is not None and abs(e.device_time_skew_ms) > tolerance_ms)
        if skewed > 0:
            anomalies.append(
                f"{skewed} eventos com divergência de relógio acima de "
                f"{s.clock_skew_tolerance_minutes} min")

        return anomalies

    def _rest_before_first_shift(self, day_events: List[Event],
                                 driver_events: List[Event]) -> Optional[timedelta]:
        first_shift = next((e for e in day_events if e.type == EventType.SHIFT_START), None)
        if first_shift is None:
            return None

        previous_ends = []
        for e in driver_events:
            if e.type == EventType.SHIFT_END and e.started_at < first_shift.started_at:
                previous_ends.append(e.started_at)
            elif (e.type == EventType.SHIFT_START and e is not first_shift
                  and e.ended_at is not None and e.ended_at <= first_shift.started_at):
                previous_ends.append(e.ended_at)
        if not previous_ends:
            return None
        return first_shift.started_at - max(previous_ends)
